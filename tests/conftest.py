from __future__ import annotations

from collections.abc import Iterator, Sequence

import pytest

from deltakey.services.decode_worker import DecodeWorker
from deltakey.services.file_selection import SourceFile
from deltakey.services.ingestion import IngestionOrchestrator
from deltakey.utils.config import DEFAULT_ALLOWED_TYPES, IngestConfig
from tests.fixtures.sheet_sources.factory import (
    CORRUPT_WORKBOOK,
    SheetDefinition,
    build_workbook_bytes,
)
from tests.fixtures.sheets_api import FakeSheetsClient


@pytest.fixture
def ingest_config() -> IngestConfig:
    return IngestConfig(
        key_column_index=1,
        allowed_types=DEFAULT_ALLOWED_TYPES,
        max_upload_bytes=5 * 1024 * 1024,
        decode_executor="thread",
        decode_timeout=30.0,
        top_brands=5,
    )


@pytest.fixture
def decode_worker() -> Iterator[DecodeWorker]:
    with DecodeWorker(kind="thread", timeout=30.0) as worker:
        yield worker


@pytest.fixture
def workbook_builder():
    def _builder(
        *,
        sheets: Sequence[SheetDefinition] | None = None,
        filename: str = "translations.xlsx",
    ) -> SourceFile:
        return SourceFile(name=filename, content=build_workbook_bytes(sheets))

    return _builder


@pytest.fixture
def corrupt_file():
    def _builder(filename: str = "broken.xlsx") -> SourceFile:
        return SourceFile(name=filename, content=CORRUPT_WORKBOOK)

    return _builder


@pytest.fixture
def fake_sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient(
        title="Translations",
        sheets={
            "Welcome": [
                ["Id", "Key"],
                ["1", "RingCentral.uns.a1b2.WelcomeEmail__email__1210__en_US"],
                ["2", "RingCentral.uns.a1b2.WelcomeEmail__email__1210__fr_CA"],
            ],
            "Billing": [
                ["1", "RingCentral.uns.e5f6.InvoiceReady__email__3420__en_GB"],
                ["2"],
                ["3", ""],
            ],
        },
    )


@pytest.fixture
def orchestrator_factory(ingest_config: IngestConfig, decode_worker: DecodeWorker):
    def _factory(client: FakeSheetsClient | None = None) -> IngestionOrchestrator:
        def _client_factory(api_key: str, spreadsheet_id: str) -> FakeSheetsClient:
            assert client is not None, "cloud ingestion requested without a fake client"
            client.calls.append(("open", (api_key, spreadsheet_id)))
            return client

        return IngestionOrchestrator(
            config=ingest_config,
            decode_worker=decode_worker,
            sheets_client_factory=_client_factory,
        )

    return _factory
