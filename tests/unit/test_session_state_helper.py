from deltakey.models.record import UnifiedDataset
from deltakey.services.ingestion import IngestionRun, IngestionStatus
from deltakey.services.key_parser import parse_key
from deltakey.services.query_index import ALL, QueryIndex
from deltakey.utils.session_state import (
    disconnect,
    ensure_session_defaults,
    reset_filters,
    store_ingestion_run,
    update_session_state,
)


def _ready_run() -> IngestionRun:
    run = IngestionRun()
    run.transition(IngestionStatus.FETCHING_METADATA)
    run.transition(IngestionStatus.FETCHING_ROWS)
    run.transition(IngestionStatus.PARSING)
    record = parse_key("a.b.c.T__1210__en_US", "Sheet1", 0)
    run.complete(UnifiedDataset(title="Keys", records=(record,)))
    return run


def test_defaults_preserve_existing_values() -> None:
    store: dict[str, object] = {"search_term": "welcome"}
    ensure_session_defaults(store)

    assert store["search_term"] == "welcome"
    assert store["brand_filter"] == ALL
    assert store["dataset"] is None


def test_update_session_state_sets_values() -> None:
    store: dict[str, object] = {}
    update_session_state(store, brand_filter="1210", task_filter="Sheet1")

    assert store["brand_filter"] == "1210"
    assert store["task_filter"] == "Sheet1"


def test_successful_run_replaces_dataset_and_resets_filters() -> None:
    store: dict[str, object] = {"search_term": "old", "brand_filter": "9999"}

    store_ingestion_run(store, _ready_run())

    assert store["dataset"].title == "Keys"
    assert isinstance(store["query_index"], QueryIndex)
    assert store["search_term"] == ""
    assert store["brand_filter"] == ALL


def test_failed_run_keeps_previous_dataset() -> None:
    store: dict[str, object] = {}
    store_ingestion_run(store, _ready_run())
    previous = store["dataset"]

    failed = IngestionRun()
    failed.fail(RuntimeError("boom"))
    store_ingestion_run(store, failed)

    assert store["dataset"] is previous
    assert store["ingestion_run"] is failed


def test_disconnect_clears_dataset_and_filters() -> None:
    store: dict[str, object] = {}
    store_ingestion_run(store, _ready_run())
    update_session_state(store, task_filter="Sheet1")

    disconnect(store)

    assert store["dataset"] is None
    assert store["query_index"] is None
    assert store["ingestion_run"] is None
    assert store["task_filter"] == ALL


def test_reset_filters_only_touches_requested_keys() -> None:
    store: dict[str, object] = {}
    update_session_state(store, search_term="abc", brand_filter="1210")

    reset_filters(store, keys=["search_term"])

    assert store["search_term"] == ""
    assert store["brand_filter"] == "1210"
