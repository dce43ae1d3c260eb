from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from deltakey.services.errors import InvalidConfigurationError
from deltakey.services.file_selection import SourceFile
from deltakey.services.sheets_client import extract_spreadsheet_id


class CloudSourceConfig(BaseModel):
    mode: Literal["cloud"] = "cloud"
    spreadsheet_id_or_url: Annotated[str, Field(alias="spreadsheetIdOrUrl")]
    api_key: Annotated[str, Field(alias="apiKey")]

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    @field_validator("spreadsheet_id_or_url", "api_key")
    @classmethod
    def _require_text(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("spreadsheet id and api key must be non-empty")
        return text

    @property
    def spreadsheet_id(self) -> str:
        return extract_spreadsheet_id(self.spreadsheet_id_or_url)


class LocalSourceConfig(BaseModel):
    mode: Literal["local"] = "local"
    files: Annotated[list[SourceFile], Field(min_length=1)]

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", frozen=True)


SourceConfig = Annotated[
    Union[CloudSourceConfig, LocalSourceConfig],
    Field(discriminator="mode"),
]

_SOURCE_CONFIG_ADAPTER: TypeAdapter[CloudSourceConfig | LocalSourceConfig] = TypeAdapter(SourceConfig)


def parse_source_config(data: Any) -> CloudSourceConfig | LocalSourceConfig:
    """Validate a raw mapping (or pass through a model) into one of the two source modes."""
    if isinstance(data, (CloudSourceConfig, LocalSourceConfig)):
        return data
    try:
        return _SOURCE_CONFIG_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise InvalidConfigurationError("Invalid Configuration") from exc
