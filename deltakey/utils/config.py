from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

SHEETS_API_BASE_ENV = "DELTAKEY_SHEETS_API_BASE"
HTTP_CONNECT_TIMEOUT_ENV = "DELTAKEY_HTTP_CONNECT_TIMEOUT"
HTTP_READ_TIMEOUT_ENV = "DELTAKEY_HTTP_READ_TIMEOUT"
SHEETS_RANGE_ENV = "DELTAKEY_SHEETS_RANGE"
KEY_COLUMN_ENV = "DELTAKEY_KEY_COLUMN"
ALLOWED_TYPES_ENV = "DELTAKEY_ALLOWED_TYPES"
MAX_UPLOAD_BYTES_ENV = "DELTAKEY_MAX_UPLOAD_BYTES"
DECODE_EXECUTOR_ENV = "DELTAKEY_DECODE_EXECUTOR"
DECODE_TIMEOUT_ENV = "DELTAKEY_DECODE_TIMEOUT"
TOP_BRANDS_ENV = "DELTAKEY_TOP_BRANDS"

DEFAULT_SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_SHEETS_RANGE = "A:C"
DEFAULT_ALLOWED_TYPES: tuple[str, ...] = ("xlsx", "xls")

ExecutorKind = Literal["process", "thread"]


@dataclass(frozen=True)
class SheetsApiConfig:
    base_url: str
    connect_timeout: float
    read_timeout: float
    value_range: str


@dataclass(frozen=True)
class IngestConfig:
    key_column_index: int
    allowed_types: tuple[str, ...]
    max_upload_bytes: int
    decode_executor: ExecutorKind
    decode_timeout: float
    top_brands: int


def load_sheets_api_config() -> SheetsApiConfig:
    return SheetsApiConfig(
        base_url=os.getenv(SHEETS_API_BASE_ENV, DEFAULT_SHEETS_API_BASE).rstrip("/"),
        connect_timeout=float(os.getenv(HTTP_CONNECT_TIMEOUT_ENV, 10.0)),
        read_timeout=float(os.getenv(HTTP_READ_TIMEOUT_ENV, 60.0)),
        value_range=os.getenv(SHEETS_RANGE_ENV, DEFAULT_SHEETS_RANGE),
    )


def _parse_executor_kind(value: str | None) -> ExecutorKind:
    kind = (value or "process").strip().lower()
    if kind not in {"process", "thread"}:
        raise ValueError(f"{DECODE_EXECUTOR_ENV} must be 'process' or 'thread', got {value!r}")
    return kind  # type: ignore[return-value]


def load_ingest_config() -> IngestConfig:
    allowed_env = os.getenv(ALLOWED_TYPES_ENV)
    if allowed_env:
        allowed_types = tuple(
            part.strip().lower().lstrip(".") for part in allowed_env.split(",") if part.strip()
        )
    else:
        allowed_types = DEFAULT_ALLOWED_TYPES
    return IngestConfig(
        key_column_index=int(os.getenv(KEY_COLUMN_ENV, 1)),
        allowed_types=allowed_types,
        max_upload_bytes=int(os.getenv(MAX_UPLOAD_BYTES_ENV, 50 * 1024 * 1024)),
        decode_executor=_parse_executor_kind(os.getenv(DECODE_EXECUTOR_ENV)),
        decode_timeout=float(os.getenv(DECODE_TIMEOUT_ENV, 120.0)),
        top_brands=int(os.getenv(TOP_BRANDS_ENV, 5)),
    )
