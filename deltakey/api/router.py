from __future__ import annotations

import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from deltakey.models.record import UnifiedDataset
from deltakey.services.errors import (
    EmptyResultSetError,
    EmptySheetListError,
    InvalidConfigurationError,
    SourceFetchError,
)
from deltakey.services.file_selection import FileSelection, SourceFile
from deltakey.services.ingestion import IngestionOrchestrator, IngestionRun, IngestionStatus
from deltakey.services.query_index import ALL, TOP_BRANDS_LIMIT, QueryIndex
from deltakey.utils.config import load_ingest_config
from deltakey.utils.logging import get_logger, log_event

LOGGER = get_logger(__name__)

ERROR_STATUS_CODES: dict[str, int] = {
    InvalidConfigurationError.error_code: status.HTTP_400_BAD_REQUEST,
    EmptySheetListError.error_code: 422,
    EmptyResultSetError.error_code: 422,
    SourceFetchError.error_code: status.HTTP_502_BAD_GATEWAY,
    "UNEXPECTED_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class CloudIngestRequest(BaseModel):
    spreadsheet_id_or_url: Annotated[str | None, Field(alias="spreadsheetIdOrUrl", default=None)]
    api_key: Annotated[str | None, Field(alias="apiKey", default=None)]

    model_config = ConfigDict(populate_by_name=True)


class SessionDataset:
    """In-memory holder for the latest run; a successful run replaces the index wholesale."""

    def __init__(self, *, top_limit: int = TOP_BRANDS_LIMIT) -> None:
        self.top_limit = top_limit
        self.last_run: IngestionRun | None = None
        self.dataset: UnifiedDataset | None = None
        self.index: QueryIndex | None = None
        self._busy = threading.Lock()

    def begin(self) -> bool:
        return self._busy.acquire(blocking=False)

    def finish(self, run: IngestionRun | None) -> None:
        if run is not None:
            self.last_run = run
            if run.dataset is not None:
                self.dataset = run.dataset
                self.index = QueryIndex(run.dataset.records, top_limit=self.top_limit)
        self._busy.release()


def create_app(
    *,
    orchestrator: IngestionOrchestrator | None = None,
) -> FastAPI:
    """Create a FastAPI instance exposing ingestion and key query endpoints."""
    ingest_config = load_ingest_config()
    service = orchestrator or IngestionOrchestrator(config=ingest_config)
    session = SessionDataset(top_limit=ingest_config.top_brands)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            service.close()

    app = FastAPI(
        title="DeltaKey Explorer API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = service
    app.state.session = session

    def _execute(source: object) -> dict[str, object]:
        if not session.begin():
            raise HTTPException(status_code=409, detail="An ingestion run is already in progress.")
        run: IngestionRun | None = None
        try:
            run = service.run(source)
        finally:
            session.finish(run)

        summary = run.summary()
        if run.status == IngestionStatus.ERROR:
            code = ERROR_STATUS_CODES.get(run.error_code or "", status.HTTP_400_BAD_REQUEST)
            raise HTTPException(status_code=code, detail=summary)
        return summary

    def _require_index() -> QueryIndex:
        if session.index is None:
            raise HTTPException(status_code=404, detail="No dataset loaded; run an ingestion first.")
        return session.index

    @app.post("/api/ingest/cloud")
    def ingest_cloud(payload: CloudIngestRequest) -> dict[str, object]:
        source: dict[str, object] = {"mode": "cloud"}
        if payload.spreadsheet_id_or_url is not None:
            source["spreadsheet_id_or_url"] = payload.spreadsheet_id_or_url
        if payload.api_key is not None:
            source["api_key"] = payload.api_key
        return _execute(source)

    @app.post("/api/ingest/local")
    def ingest_local(
        files: Annotated[list[UploadFile], File(...)],
    ) -> dict[str, object]:
        selection = FileSelection(
            allowed_types=ingest_config.allowed_types,
            max_bytes=ingest_config.max_upload_bytes,
        )
        outcome = selection.add_many(
            SourceFile(name=upload.filename or "upload", content=upload.file.read())
            for upload in files
        )
        log_event(
            LOGGER,
            "api.ingest.local.selection",
            added=len(outcome.added),
            duplicates=outcome.duplicates,
            rejected=outcome.rejected,
        )
        if not len(selection):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error": "No supported spreadsheet files provided.",
                    "rejected": outcome.rejected,
                    "reasons": outcome.reasons,
                },
            )
        summary = _execute({"mode": "local", "files": list(selection.files)})
        summary["rejected"] = outcome.rejected
        summary["duplicates"] = outcome.duplicates
        return summary

    @app.get("/api/status")
    def ingestion_status() -> dict[str, object]:
        if session.last_run is None:
            return {"status": IngestionStatus.IDLE.value, "label": IngestionStatus.IDLE.label}
        return session.last_run.summary()

    @app.get("/api/records")
    def search_records(
        query: Annotated[str | None, Query()] = None,
        brand: Annotated[str, Query()] = ALL,
        task: Annotated[str, Query()] = ALL,
    ) -> dict[str, object]:
        index = _require_index()
        groups = index.search(query, brand, task)
        return {
            "groupCount": len(groups),
            "recordCount": sum(len(group.records) for group in groups),
            "groups": [group.to_dict() for group in groups],
        }

    @app.get("/api/stats")
    def dataset_stats() -> dict[str, object]:
        index = _require_index()
        return {
            "title": session.dataset.title if session.dataset else None,
            "stats": index.stats.to_dict(),
            "topBrands": [
                {"brandId": entry.brand_id, "count": entry.count} for entry in index.top_brands
            ],
            "brands": index.brand_options(),
            "tasks": index.task_options(),
        }

    return app
