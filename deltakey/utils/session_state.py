from __future__ import annotations

from collections.abc import MutableMapping, Sequence
from copy import deepcopy
from typing import Any

from deltakey.services.query_index import ALL, QueryIndex
from deltakey.utils.config import load_ingest_config

SessionStore = MutableMapping[str, Any]

SESSION_DEFAULTS: dict[str, Any] = {
    "ingestion_run": None,
    "dataset": None,
    "query_index": None,
    "search_term": "",
    "brand_filter": ALL,
    "task_filter": ALL,
}

FILTER_KEYS: tuple[str, ...] = ("search_term", "brand_filter", "task_filter")


def _get_store(store: SessionStore | None) -> SessionStore:
    if store is not None:
        return store
    try:
        import streamlit as st  # type: ignore
    except (
        ModuleNotFoundError
    ) as error:  # pragma: no cover - Streamlit only available in app runtime
        raise RuntimeError("Streamlit session state is unavailable outside the app.") from error
    return st.session_state


def ensure_session_defaults(
    store: SessionStore | None = None,
    *,
    defaults: dict[str, Any] | None = None,
) -> SessionStore:
    """Populate default keys without overwriting existing selections."""
    state = _get_store(store)
    baseline = defaults or SESSION_DEFAULTS
    for key, value in baseline.items():
        if key not in state:
            state[key] = deepcopy(value)
    return state


def update_session_state(store: SessionStore | None = None, **updates: object) -> SessionStore:
    """Update session state with provided values after defaults are ensured."""
    state = ensure_session_defaults(store)
    for key, value in updates.items():
        state[key] = value
    return state


def store_ingestion_run(store: SessionStore | None, run: Any) -> SessionStore:
    """Record a finished run; a successful run replaces the dataset and clears filters."""
    state = ensure_session_defaults(store)
    state["ingestion_run"] = run
    dataset = getattr(run, "dataset", None)
    if dataset is not None:
        state["dataset"] = dataset
        state["query_index"] = QueryIndex(dataset.records, top_limit=load_ingest_config().top_brands)
        reset_filters(state)
    return state


def reset_filters(store: SessionStore | None = None, *, keys: Sequence[str] | None = None) -> SessionStore:
    state = ensure_session_defaults(store)
    for key in keys or FILTER_KEYS:
        state[key] = deepcopy(SESSION_DEFAULTS[key])
    return state


def disconnect(store: SessionStore | None = None) -> SessionStore:
    """Drop the loaded dataset so the connect form is shown again."""
    state = ensure_session_defaults(store)
    state["dataset"] = None
    state["query_index"] = None
    state["ingestion_run"] = None
    return reset_filters(state)
