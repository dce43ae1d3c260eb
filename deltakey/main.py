from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import streamlit as st

# Ensure package imports work when launched as a file via `streamlit run deltakey/main.py`.
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from deltakey.services.ingestion import IngestionOrchestrator, IngestionStatus  # noqa: E402
from deltakey.ui.connect_form import render_connect_form  # noqa: E402
from deltakey.ui.dashboard import render_dashboard  # noqa: E402
from deltakey.utils.config import load_ingest_config  # noqa: E402
from deltakey.utils.logging import get_logger, log_event  # noqa: E402
from deltakey.utils.session_state import ensure_session_defaults, store_ingestion_run  # noqa: E402

LOGGER = get_logger(__name__)

APP_TITLE = "DeltaKey Explorer"


@st.cache_resource(show_spinner=False)
def _get_orchestrator() -> IngestionOrchestrator:
    return IngestionOrchestrator(config=load_ingest_config())


def _run_ingestion(source: dict[str, Any]) -> None:
    state = ensure_session_defaults()
    orchestrator = _get_orchestrator()
    with st.status(IngestionStatus.IDLE.label, expanded=False) as progress:

        def _on_status(status: IngestionStatus, label: str) -> None:
            if status == IngestionStatus.ERROR:
                progress.update(label=label, state="error")
            elif status == IngestionStatus.READY:
                progress.update(label=label, state="complete")
            else:
                progress.update(label=label, state="running")
                progress.write(label)

        run = orchestrator.run(source, listener=_on_status)

    store_ingestion_run(state, run)
    log_event(LOGGER, "streamlit.ingestion.finished", **run.summary())
    if run.status == IngestionStatus.READY:
        st.rerun()


def run() -> None:
    st.set_page_config(page_title=APP_TITLE, page_icon="🔑", layout="wide")
    state = ensure_session_defaults()

    last_run = state.get("ingestion_run")
    if last_run is not None and last_run.failures:
        skipped = ", ".join(failure.filename for failure in last_run.failures)
        st.warning(f"Some files could not be read and were skipped: {skipped}")

    dataset = state.get("dataset")
    index = state.get("query_index")
    if dataset is not None and index is not None:
        render_dashboard(dataset, index, state)
        return

    error = last_run.error if last_run is not None else None
    render_connect_form(_run_ingestion, load_ingest_config(), error=error)


if __name__ == "__main__":
    run()
