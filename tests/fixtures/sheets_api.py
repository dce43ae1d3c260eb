from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from deltakey.services.errors import SourceFetchError
from deltakey.services.sheets_client import SpreadsheetMetadata


class FakeSheetsClient:
    """Stand-in for the Sheets client that records every call it receives."""

    def __init__(
        self,
        *,
        title: str = "Translations",
        sheets: dict[str, list[list[str]]] | None = None,
        metadata_error: str | None = None,
        values_error: str | None = None,
    ) -> None:
        self.title = title
        self.sheets = dict(sheets or {})
        self.metadata_error = metadata_error
        self.values_error = values_error
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def __enter__(self) -> "FakeSheetsClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def fetch_metadata(self) -> SpreadsheetMetadata:
        self.calls.append(("metadata", None))
        if self.metadata_error:
            raise SourceFetchError(self.metadata_error)
        return SpreadsheetMetadata(
            spreadsheet_id="sheet-123",
            title=self.title,
            sheet_names=tuple(self.sheets),
        )

    def fetch_all_sheet_values(self, sheet_names: Sequence[str]) -> dict[str, list[list[str]]]:
        self.calls.append(("values", list(sheet_names)))
        if self.values_error:
            raise SourceFetchError(self.values_error)
        return {name: self.sheets[name] for name in sheet_names}


class FakeResponse:
    def __init__(self, payload: Any, *, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class RecordingSession:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append({"url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True
