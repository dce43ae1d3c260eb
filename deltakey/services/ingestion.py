from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from deltakey.models.config import CloudSourceConfig, LocalSourceConfig, parse_source_config
from deltakey.models.record import ParsedRecord, UnifiedDataset
from deltakey.services.decode_worker import DecodeWorker
from deltakey.services.errors import (
    EmptyResultSetError,
    EmptySheetListError,
    IngestionError,
    InvalidTransitionError,
    SourceDecodeError,
    SourceFetchError,
)
from deltakey.services.excel_reader import derive_title
from deltakey.services.extraction import extract_workbook_records
from deltakey.services.file_selection import SourceFile, is_supported_filename
from deltakey.services.sheets_client import GoogleSheetsClient
from deltakey.utils.config import IngestConfig, load_ingest_config
from deltakey.utils.logging import get_logger, ingestion_context, log_event, log_timing, log_warning

LOGGER = get_logger(__name__)


class IngestionStatus(str, Enum):
    IDLE = "idle"
    FETCHING_METADATA = "fetching_metadata"
    FETCHING_ROWS = "fetching_rows"
    PARSING = "parsing"
    READY = "ready"
    ERROR = "error"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


STATUS_LABELS: dict[IngestionStatus, str] = {
    IngestionStatus.IDLE: "Idle",
    IngestionStatus.FETCHING_METADATA: "Connecting...",
    IngestionStatus.FETCHING_ROWS: "Processing Files...",
    IngestionStatus.PARSING: "Indexing Keys...",
    IngestionStatus.READY: "Ready",
    IngestionStatus.ERROR: "Error",
}

TERMINAL_STATUSES = frozenset({IngestionStatus.READY, IngestionStatus.ERROR})

ALLOWED_TRANSITIONS: dict[IngestionStatus, frozenset[IngestionStatus]] = {
    IngestionStatus.IDLE: frozenset({IngestionStatus.FETCHING_METADATA, IngestionStatus.ERROR}),
    IngestionStatus.FETCHING_METADATA: frozenset({IngestionStatus.FETCHING_ROWS, IngestionStatus.ERROR}),
    IngestionStatus.FETCHING_ROWS: frozenset({IngestionStatus.PARSING, IngestionStatus.ERROR}),
    IngestionStatus.PARSING: frozenset({IngestionStatus.READY, IngestionStatus.ERROR}),
    IngestionStatus.READY: frozenset(),
    IngestionStatus.ERROR: frozenset(),
}

StatusListener = Callable[[IngestionStatus, str], None]
SheetsClientFactory = Callable[[str, str], GoogleSheetsClient]


@dataclass(frozen=True)
class FileFailure:
    filename: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "reason": self.reason}


class IngestionRun:
    """One pass through the ingestion state machine; a finished run is never reused."""

    def __init__(self, listener: StatusListener | None = None) -> None:
        self.listener = listener
        self.run_id = uuid.uuid4().hex[:8]
        self.status = IngestionStatus.IDLE
        self.history: list[IngestionStatus] = [IngestionStatus.IDLE]
        self.mode: str | None = None
        self.dataset: UnifiedDataset | None = None
        self.error: str | None = None
        self.error_code: str | None = None
        self.failures: list[FileFailure] = []
        self.started_at = datetime.now(UTC)
        self.completed_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    def can_transition(self, target: IngestionStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def transition(self, target: IngestionStatus) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Cannot move ingestion from {self.status.value} to {target.value}"
            )
        self.status = target
        self.history.append(target)
        if target.is_terminal:
            self.completed_at = datetime.now(UTC)
        if self.listener is not None:
            self.listener(target, target.label)

    def record_failure(self, filename: str, reason: str) -> None:
        self.failures.append(FileFailure(filename=filename, reason=reason))

    def complete(self, dataset: UnifiedDataset) -> None:
        self.dataset = dataset
        self.transition(IngestionStatus.READY)

    def fail(self, error: BaseException) -> None:
        self.error = str(error) or "An unexpected error occurred"
        self.error_code = getattr(error, "error_code", "UNEXPECTED_ERROR")
        self.transition(IngestionStatus.ERROR)

    def summary(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "status": self.status.value,
            "label": self.status.label,
            "mode": self.mode,
            "title": self.dataset.title if self.dataset else None,
            "recordCount": len(self.dataset) if self.dataset else 0,
            "error": self.error,
            "errorCode": self.error_code,
            "failures": [failure.to_dict() for failure in self.failures],
            "history": [status.value for status in self.history],
        }


def unique_titles(filenames: Sequence[str]) -> list[str]:
    """Source titles for a batch, suffixing repeats so namespaced task names stay distinct."""
    titles: list[str] = []
    seen: set[str] = set()
    for name in filenames:
        base = derive_title(name)
        candidate = base
        counter = 2
        while candidate in seen:
            candidate = f"{base} ({counter})"
            counter += 1
        seen.add(candidate)
        titles.append(candidate)
    return titles


def merged_title(titles: Sequence[str]) -> str:
    if len(titles) == 1:
        return titles[0]
    return f"{len(titles)} Local Files"


class IngestionOrchestrator:
    """Drive cloud or local sources through extraction into one unified dataset."""

    def __init__(
        self,
        *,
        config: IngestConfig | None = None,
        decode_worker: DecodeWorker | None = None,
        sheets_client_factory: SheetsClientFactory | None = None,
    ) -> None:
        self.config = config or load_ingest_config()
        self.decode_worker = decode_worker or DecodeWorker(
            kind=self.config.decode_executor,
            timeout=self.config.decode_timeout,
            key_column_index=self.config.key_column_index,
        )
        self.sheets_client_factory = sheets_client_factory or GoogleSheetsClient

    def close(self) -> None:
        self.decode_worker.shutdown()

    def run(self, source: Any, *, listener: StatusListener | None = None) -> IngestionRun:
        """Execute one ingestion; the returned run is READY with a dataset or ERROR with a message."""
        run = IngestionRun(listener)
        with ingestion_context(run.run_id):
            return self._execute(run, source)

    def _execute(self, run: IngestionRun, source: Any) -> IngestionRun:
        timer = time.perf_counter()
        try:
            config = parse_source_config(source)
            run.mode = config.mode
            if isinstance(config, CloudSourceConfig):
                title, records = self._run_cloud(run, config)
            else:
                title, records = self._run_local(run, config)

            if not records:
                raise EmptyResultSetError("No valid keys found in the source data.")
            run.complete(UnifiedDataset(title=title, records=tuple(records)))
        except IngestionError as error:
            log_warning(
                LOGGER,
                "ingestion.run.failed",
                mode=run.mode,
                status=run.status.value,
                error_code=error.error_code,
                error=str(error),
            )
            run.fail(error)
            return run
        except Exception as error:
            LOGGER.exception("Ingestion run failed unexpectedly: %s", error)
            if not run.is_finished:
                run.fail(error)
            return run

        log_event(
            LOGGER,
            "ingestion.run.ready",
            mode=run.mode,
            title=run.dataset.title if run.dataset else None,
            record_count=len(run.dataset) if run.dataset else 0,
            failed_files=len(run.failures),
            elapsed_ms=(time.perf_counter() - timer) * 1000.0,
        )
        return run

    def _run_cloud(self, run: IngestionRun, config: CloudSourceConfig) -> tuple[str, list[ParsedRecord]]:
        run.transition(IngestionStatus.FETCHING_METADATA)
        spreadsheet_id = config.spreadsheet_id
        with self.sheets_client_factory(config.api_key, spreadsheet_id) as client:
            with log_timing(LOGGER, "ingestion.cloud.metadata", spreadsheet_id=spreadsheet_id):
                metadata = client.fetch_metadata()
            if not metadata.sheet_names:
                raise EmptySheetListError("No sheets found in this spreadsheet.")

            run.transition(IngestionStatus.FETCHING_ROWS)
            with log_timing(
                LOGGER,
                "ingestion.cloud.values",
                spreadsheet_id=spreadsheet_id,
                sheet_count=len(metadata.sheet_names),
            ):
                sheets = client.fetch_all_sheet_values(list(metadata.sheet_names))

        run.transition(IngestionStatus.PARSING)
        records = extract_workbook_records(sheets, key_column_index=self.config.key_column_index)
        return metadata.title, records

    def _run_local(self, run: IngestionRun, config: LocalSourceConfig) -> tuple[str, list[ParsedRecord]]:
        run.transition(IngestionStatus.FETCHING_METADATA)
        files: list[SourceFile] = []
        for file in config.files:
            if is_supported_filename(file.name, self.config.allowed_types):
                files.append(file)
            else:
                run.record_failure(file.name, "unsupported file type")
        titles = unique_titles([file.name for file in files])

        run.transition(IngestionStatus.FETCHING_ROWS)
        succeeded: list[str] = []
        records: list[ParsedRecord] = []
        # One file at a time keeps a single workbook in flight.
        for file, title in zip(files, titles):
            started = time.perf_counter()
            try:
                file_title, file_records = self.decode_worker.process(file.to_payload(title))
            except SourceDecodeError as error:
                log_warning(
                    LOGGER,
                    "ingestion.local.file_failed",
                    filename=file.name,
                    reason=error.reason,
                )
                run.record_failure(file.name, error.reason)
                continue
            log_event(
                LOGGER,
                "ingestion.local.file_decoded",
                filename=file.name,
                record_count=len(file_records),
                elapsed_ms=(time.perf_counter() - started) * 1000.0,
            )
            succeeded.append(file_title)
            records.extend(file_records)

        if not succeeded:
            raise SourceFetchError(
                "Failed to read all uploaded files.",
                failures=[failure.filename for failure in run.failures],
            )

        run.transition(IngestionStatus.PARSING)
        return merged_title(succeeded), records
