from __future__ import annotations

from typing import Any

import pytest
import requests

from deltakey.services.errors import SourceFetchError
from deltakey.services.sheets_client import (
    GoogleSheetsClient,
    SpreadsheetMetadata,
    extract_spreadsheet_id,
)
from deltakey.utils.config import SheetsApiConfig
from tests.fixtures.sheets_api import FakeResponse, RecordingSession

API_CONFIG = SheetsApiConfig(
    base_url="https://sheets.example.test/v4/spreadsheets",
    connect_timeout=1.5,
    read_timeout=9.0,
    value_range="A:C",
)


def _client(*responses: Any) -> GoogleSheetsClient:
    return GoogleSheetsClient("secret", "abc123", config=API_CONFIG, session=RecordingSession(*responses))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("https://docs.google.com/spreadsheets/d/1AbC-d_9/edit#gid=0", "1AbC-d_9"),
        ("1AbC-d_9", "1AbC-d_9"),
        ("not a url", "not a url"),
    ],
)
def test_extract_spreadsheet_id(value: str, expected: str) -> None:
    assert extract_spreadsheet_id(value) == expected


def test_fetch_metadata_parses_title_and_sheet_order() -> None:
    client = _client(
        FakeResponse(
            {
                "spreadsheetId": "abc123",
                "properties": {"title": "Release Keys"},
                "sheets": [{"properties": {"title": "Welcome"}}, {"properties": {"title": "Billing"}}],
            }
        )
    )

    metadata = client.fetch_metadata()

    assert metadata == SpreadsheetMetadata("abc123", "Release Keys", ("Welcome", "Billing"))
    sent = client.session.requests[0]
    assert sent["url"] == "https://sheets.example.test/v4/spreadsheets/abc123"
    assert sent["params"] == [("key", "secret")]
    assert sent["timeout"] == (1.5, 9.0)


def test_metadata_without_sheets_yields_empty_list() -> None:
    client = _client(FakeResponse({"properties": {"title": "Empty"}}))

    assert client.fetch_metadata().sheet_names == ()


def test_batch_values_are_requested_in_one_call_and_zipped_in_order() -> None:
    client = _client(
        FakeResponse(
            {
                "valueRanges": [
                    {"range": "Welcome!A1:C3", "values": [["1", "a.b.c.T__1210__en"]]},
                    {"range": "Billing!A1:C1"},
                ]
            }
        )
    )

    values = client.fetch_all_sheet_values(["Welcome", "Billing"])

    assert values == {"Welcome": [["1", "a.b.c.T__1210__en"]], "Billing": []}
    assert len(client.session.requests) == 1
    sent = client.session.requests[0]
    assert sent["url"].endswith("/abc123/values:batchGet")
    assert sent["params"] == [
        ("ranges", "Welcome!A:C"),
        ("ranges", "Billing!A:C"),
        ("key", "secret"),
    ]


def test_api_error_message_is_surfaced() -> None:
    client = _client(
        FakeResponse({"error": {"code": 403, "message": "API key not valid."}}, status_code=403)
    )

    with pytest.raises(SourceFetchError, match="API key not valid."):
        client.fetch_metadata()


def test_error_without_message_uses_default() -> None:
    client = _client(FakeResponse(ValueError("no json"), status_code=500))

    with pytest.raises(SourceFetchError, match="Failed to fetch cell data"):
        client.fetch_all_sheet_values(["Welcome"])


def test_network_failure_becomes_fetch_error() -> None:
    client = _client(requests.ConnectionError("connection refused"))

    with pytest.raises(SourceFetchError) as excinfo:
        client.fetch_metadata()

    assert excinfo.value.error_code == "SOURCE_FETCH_FAILURE"
    assert "Failed to fetch spreadsheet metadata" in str(excinfo.value)


def test_context_manager_closes_session() -> None:
    session = RecordingSession()
    with GoogleSheetsClient("k", "id", config=API_CONFIG, session=session):
        pass

    assert session.closed


@pytest.mark.parametrize(
    "payload",
    [
        {"sheets": ["Sheet1"]},
        {"sheets": [{"properties": "Sheet1"}]},
        {"sheets": {"Sheet1": {}}},
        {"properties": ["title"], "sheets": []},
    ],
)
def test_malformed_metadata_becomes_fetch_error(payload: dict[str, Any]) -> None:
    client = _client(FakeResponse(payload))

    with pytest.raises(SourceFetchError, match="unexpected response shape"):
        client.fetch_metadata()


@pytest.mark.parametrize(
    "payload",
    [
        {"valueRanges": {"Welcome": []}},
        {"valueRanges": ["Welcome!A:C"]},
        {"valueRanges": [{"values": "1,key"}]},
        {"valueRanges": [{"values": ["1", "key"]}]},
    ],
)
def test_malformed_value_ranges_become_fetch_error(payload: dict[str, Any]) -> None:
    client = _client(FakeResponse(payload))

    with pytest.raises(SourceFetchError, match="Failed to fetch cell data"):
        client.fetch_all_sheet_values(["Welcome"])


@pytest.mark.parametrize("body", [["not", "an", "object"], "text", 42, None])
def test_non_object_json_body_becomes_fetch_error(body: Any) -> None:
    client = _client(FakeResponse(body))

    with pytest.raises(SourceFetchError, match="unexpected response body"):
        client.fetch_metadata()
