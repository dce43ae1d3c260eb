from __future__ import annotations

from collections.abc import Callable
from typing import Any

import streamlit as st

from deltakey.services.file_selection import FileSelection, SelectionResult, SourceFile
from deltakey.utils.config import IngestConfig

SubmitHandler = Callable[[dict[str, Any]], None]


def build_selection(uploads: list[Any] | None, config: IngestConfig) -> tuple[FileSelection, SelectionResult]:
    """Collect Streamlit uploads into a deduplicated, extension-checked selection."""
    selection = FileSelection(allowed_types=config.allowed_types, max_bytes=config.max_upload_bytes)
    outcome = selection.add_many(
        SourceFile(name=upload.name, content=upload.getvalue()) for upload in uploads or []
    )
    return selection, outcome


def _render_cloud_tab(on_submit: SubmitHandler, *, disabled: bool) -> None:
    with st.form("cloud_connect_form"):
        sheet_input = st.text_input(
            "Spreadsheet ID or URL",
            placeholder="https://docs.google.com/spreadsheets/d/<id>/edit",
        )
        api_key = st.text_input("Google API key", type="password")
        submitted = st.form_submit_button("Connect", type="primary", disabled=disabled)
    if submitted:
        on_submit({"mode": "cloud", "spreadsheet_id_or_url": sheet_input, "api_key": api_key})


def _render_local_tab(on_submit: SubmitHandler, config: IngestConfig, *, disabled: bool) -> None:
    uploads = st.file_uploader(
        "Upload Excel workbooks",
        type=list(config.allowed_types),
        accept_multiple_files=True,
        key="local_workbook_uploader",
    )
    selection, outcome = build_selection(uploads, config)
    for name in outcome.rejected:
        st.warning(f"Skipped {name}: {outcome.reasons.get(name, 'file rejected')}")
    if outcome.duplicates:
        st.caption(f"Ignored duplicates: {', '.join(outcome.duplicates)}")

    if len(selection):
        st.dataframe(
            [
                {"File": file.name, "Size (KB)": round(file.size / 1024, 1)}
                for file in selection
            ],
            hide_index=True,
            width="stretch",
        )

    if st.button("Process files", type="primary", disabled=disabled or not len(selection)):
        on_submit({"mode": "local", "files": list(selection.files)})


def render_connect_form(
    on_submit: SubmitHandler,
    config: IngestConfig,
    *,
    error: str | None = None,
    disabled: bool = False,
) -> None:
    st.title("DeltaKey Explorer")
    st.caption("Sync, parse, and search translation keys.")

    if error:
        st.error(error)

    cloud_tab, local_tab = st.tabs(["Google Sheets", "Local files"])
    with cloud_tab:
        _render_cloud_tab(on_submit, disabled=disabled)
    with local_tab:
        _render_local_tab(on_submit, config, disabled=disabled)
