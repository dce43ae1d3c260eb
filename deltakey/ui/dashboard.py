from __future__ import annotations

from collections.abc import Sequence

import pandas as pd
import streamlit as st

from deltakey.models.record import UnifiedDataset
from deltakey.services.query_index import ALL, BrandCount, QueryIndex, RecordGroup
from deltakey.utils.session_state import SessionStore, disconnect


def groups_dataframe(groups: Sequence[RecordGroup]) -> pd.DataFrame:
    if not groups:
        return pd.DataFrame(columns=["Template", "Brand", "Keys", "Locales", "Tasks", "Example key"])
    rows = []
    for group in groups:
        locales = sorted({record.locale for record in group.records if record.locale})
        tasks = sorted({record.task_name for record in group.records})
        rows.append(
            {
                "Template": group.template_name,
                "Brand": group.brand_id,
                "Keys": len(group.records),
                "Locales": ", ".join(locales),
                "Tasks": ", ".join(tasks),
                "Example key": group.head.original_key,
            }
        )
    return pd.DataFrame(rows)


def top_brands_dataframe(entries: Sequence[BrandCount]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Brand": entry.brand_id, "Keys": entry.count} for entry in entries],
        columns=["Brand", "Keys"],
    )


def render_dashboard(dataset: UnifiedDataset, index: QueryIndex, state: SessionStore) -> None:
    header, action = st.columns([4, 1])
    header.title(dataset.title)
    if action.button("New source"):
        disconnect(state)
        st.rerun()

    stats = index.stats
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total keys", f"{stats.total_keys:,}")
    col2.metric("Tasks", stats.total_tasks)
    col3.metric("Templates", f"{stats.unique_templates:,}")
    col4.metric("Brands", stats.unique_brands)

    search_col, brand_col, task_col = st.columns([3, 1, 2])
    search_term = search_col.text_input("Search templates or keys", key="search_term")
    brand_options = [ALL, *index.brand_options()]
    brand = brand_col.selectbox("Brand", brand_options, key="brand_filter")
    task_options = [ALL, *index.task_options()]
    task = task_col.selectbox("Task", task_options, key="task_filter")

    groups = index.search(search_term, brand, task)

    chart_col, results_col = st.columns([1, 3])
    with chart_col:
        st.subheader("Top brands")
        chart = top_brands_dataframe(index.top_brands)
        if not chart.empty:
            st.bar_chart(chart, x="Brand", y="Keys")
    with results_col:
        st.subheader(f"{len(groups)} templates found")
        if not groups:
            st.info("No keys match. Try adjusting your filters.")
        else:
            st.dataframe(groups_dataframe(groups), hide_index=True, width="stretch")
