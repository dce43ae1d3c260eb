from __future__ import annotations

from collections.abc import Mapping, Sequence

from deltakey.models.record import ParsedRecord
from deltakey.services.key_parser import parse_key

KEY_COLUMN_INDEX = 1
"""Column B holds the translation key in every sheet."""

TASK_NAMESPACE_SEPARATOR = " :: "

Row = Sequence[object]


def namespaced_task_name(source_title: str, sheet_name: str) -> str:
    return f"{source_title}{TASK_NAMESPACE_SEPARATOR}{sheet_name}"


def extract_sheet_records(
    task_name: str,
    rows: Sequence[Row],
    key_column_index: int = KEY_COLUMN_INDEX,
) -> list[ParsedRecord]:
    """Parse the key column of every row, skipping blank or short rows in place."""
    records: list[ParsedRecord] = []
    for index, row in enumerate(rows):
        if row is None or key_column_index >= len(row):
            continue
        key_cell = row[key_column_index]
        if not key_cell:
            continue
        parsed = parse_key(key_cell, task_name, index)
        if parsed is not None:
            records.append(parsed)
    return records


def extract_workbook_records(
    sheets: Mapping[str, Sequence[Row]],
    *,
    source_title: str | None = None,
    key_column_index: int = KEY_COLUMN_INDEX,
) -> list[ParsedRecord]:
    """Extract every sheet in mapping order, namespacing task names when a source title is given."""
    records: list[ParsedRecord] = []
    for sheet_name, rows in sheets.items():
        task_name = namespaced_task_name(source_title, sheet_name) if source_title else sheet_name
        records.extend(extract_sheet_records(task_name, rows, key_column_index))
    return records
