"""Thin Google Sheets v4 REST client with timeouts and no retries."""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import TracebackType
from typing import Any
from urllib.parse import quote

import requests

from deltakey.services.errors import SourceFetchError
from deltakey.utils.config import SheetsApiConfig, load_sheets_api_config
from deltakey.utils.logging import get_logger

LOGGER = get_logger(__name__)

SPREADSHEET_URL_PATTERN = re.compile(r"/d/([a-zA-Z0-9\-_]+)")

MALFORMED_METADATA = "Failed to fetch spreadsheet metadata: unexpected response shape"
MALFORMED_VALUES = "Failed to fetch cell data: unexpected response shape"

Rows = list[list[str]]


def extract_spreadsheet_id(value: str) -> str:
    """Pull the id out of a ``.../d/<id>/...`` URL, or return the input unchanged."""
    match = SPREADSHEET_URL_PATTERN.search(value)
    return match.group(1) if match else value


@dataclass(frozen=True)
class SpreadsheetMetadata:
    spreadsheet_id: str
    title: str
    sheet_names: tuple[str, ...]

    @classmethod
    def from_payload(cls, spreadsheet_id: str, payload: dict[str, Any]) -> "SpreadsheetMetadata":
        """Read title and sheet names; raises ``SourceFetchError`` for an unexpected shape."""
        properties = payload.get("properties") or {}
        sheets = payload.get("sheets") or []
        if not isinstance(properties, dict) or not isinstance(sheets, list):
            raise SourceFetchError(MALFORMED_METADATA)

        names: list[str] = []
        for sheet in sheets:
            sheet_properties = sheet.get("properties") if isinstance(sheet, dict) else None
            if not isinstance(sheet_properties, dict):
                raise SourceFetchError(MALFORMED_METADATA)
            names.append(str(sheet_properties.get("title", "")))

        return cls(
            spreadsheet_id=str(payload.get("spreadsheetId", spreadsheet_id)),
            title=str(properties.get("title", "Unknown Sheet")),
            sheet_names=tuple(names),
        )


class GoogleSheetsClient:
    def __init__(
        self,
        api_key: str,
        spreadsheet_id: str,
        *,
        config: SheetsApiConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.spreadsheet_id = spreadsheet_id
        self.config = config or load_sheets_api_config()
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "GoogleSheetsClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def spreadsheet_url(self) -> str:
        return f"{self.config.base_url}/{quote(self.spreadsheet_id, safe='')}"

    def fetch_metadata(self) -> SpreadsheetMetadata:
        payload = self._get_json(
            self.spreadsheet_url,
            params=[("key", self.api_key)],
            default_error="Failed to fetch spreadsheet metadata",
        )
        return SpreadsheetMetadata.from_payload(self.spreadsheet_id, payload)

    def fetch_all_sheet_values(self, sheet_names: list[str] | tuple[str, ...]) -> dict[str, Rows]:
        """Fetch every sheet in one ``values:batchGet`` call, keyed by sheet name."""
        params = [("ranges", f"{name}!{self.config.value_range}") for name in sheet_names]
        params.append(("key", self.api_key))
        payload = self._get_json(
            f"{self.spreadsheet_url}/values:batchGet",
            params=params,
            default_error="Failed to fetch cell data",
        )

        value_ranges = payload.get("valueRanges") or []
        if not isinstance(value_ranges, list):
            raise SourceFetchError(MALFORMED_VALUES)

        result: dict[str, Rows] = {}
        # valueRanges come back in the order of the requested ranges
        for sheet_name, value_range in zip(sheet_names, value_ranges):
            if not isinstance(value_range, dict):
                raise SourceFetchError(MALFORMED_VALUES)
            values = value_range.get("values") or []
            if not isinstance(values, list) or not all(isinstance(row, list) for row in values):
                raise SourceFetchError(MALFORMED_VALUES)
            result[sheet_name] = values
        return result

    def _get_json(
        self,
        url: str,
        *,
        params: list[tuple[str, str]],
        default_error: str,
    ) -> dict[str, Any]:
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=(self.config.connect_timeout, self.config.read_timeout),
            )
        except requests.RequestException as exc:
            LOGGER.warning("Sheets request to %s failed: %s", url, exc)
            raise SourceFetchError(f"{default_error}: {exc}") from exc

        if not response.ok:
            raise SourceFetchError(self._error_message(response, default_error))

        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceFetchError(f"{default_error}: invalid JSON payload") from exc
        if not isinstance(payload, dict):
            raise SourceFetchError(f"{default_error}: unexpected response body")
        return payload

    def _error_message(self, response: requests.Response, default_error: str) -> str:
        try:
            payload = response.json()
        except ValueError:
            return default_error
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return default_error
