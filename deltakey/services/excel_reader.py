from __future__ import annotations

import io
from pathlib import PurePath

import pandas as pd

from deltakey.models.record import ParsedRecord
from deltakey.services.extraction import KEY_COLUMN_INDEX, extract_workbook_records

EXCEL_ENGINES: dict[str, str] = {
    ".xlsx": "openpyxl",
    ".xls": "xlrd",
}

Rows = list[list[str]]


def derive_title(filename: str) -> str:
    """File name without its extension, used as the source title."""
    return PurePath(filename).stem


def _normalize_cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value)


def read_workbook(content: bytes, filename: str) -> dict[str, Rows]:
    """Decode every sheet of a workbook into a row matrix of strings, blanks as ``""``."""
    if not content:
        raise ValueError("File is empty")
    suffix = PurePath(filename).suffix.lower()
    engine = EXCEL_ENGINES.get(suffix)
    if engine is None:
        raise ValueError(f"Unsupported file type: {suffix or filename}")

    frames = pd.read_excel(
        io.BytesIO(content),
        sheet_name=None,
        header=None,
        dtype=str,
        keep_default_na=False,
        engine=engine,
    )
    sheets: dict[str, Rows] = {}
    for sheet_name, frame in frames.items():
        sheets[str(sheet_name)] = [
            [_normalize_cell(value) for value in row]
            for row in frame.itertuples(index=False, name=None)
        ]
    return sheets


def decode_and_extract(
    filename: str,
    content: bytes,
    key_column_index: int = KEY_COLUMN_INDEX,
    title: str | None = None,
) -> tuple[str, list[ParsedRecord]]:
    """Worker entry point: decode one workbook and extract its namespaced records."""
    title = title or derive_title(filename)
    sheets = read_workbook(content, filename)
    records = extract_workbook_records(
        sheets,
        source_title=title,
        key_column_index=key_column_index,
    )
    return title, records
