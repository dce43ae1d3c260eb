from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, MutableMapping

DEFAULT_LOG_LEVEL = os.getenv("DELTAKEY_LOG_LEVEL", "INFO")
DEFAULT_LOG_DIR = Path(os.getenv("DELTAKEY_LOG_DIR", "data/logs"))
LOG_FILENAME = "deltakey.log"

_RUN_ID: ContextVar[str | None] = ContextVar("deltakey_run_id", default=None)


class RunContextFilter(logging.Filter):
    """Stamp every record with the id of the ingestion run active in this context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _RUN_ID.get()
        return True


def configure_logging(log_level: str | None = None, log_path: Path | None = None) -> None:
    """Console output for humans plus a JSON-lines file for later inspection."""
    level = getattr(logging, (log_level or DEFAULT_LOG_LEVEL).upper(), logging.INFO)
    run_filter = RunContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.addFilter(run_filter)

    destination = log_path or DEFAULT_LOG_DIR / LOG_FILENAME
    destination.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(destination, encoding="utf-8")
    file_handler.setFormatter(JsonFormatter())
    file_handler.addFilter(run_filter)

    logging.basicConfig(level=level, handlers=[console_handler, file_handler])


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


@contextmanager
def ingestion_context(run_id: str) -> Iterator[str]:
    token = _RUN_ID.set(run_id)
    try:
        yield run_id
    finally:
        _RUN_ID.reset(token)


def current_run_id() -> str | None:
    return _RUN_ID.get()


def format_event(event: str, extra: MutableMapping[str, Any] | None = None) -> str:
    payload: dict[str, Any] = {"event": event}
    if extra:
        payload.update(extra)
    return json.dumps(payload, default=str)


def split_event(message: str) -> tuple[str | None, dict[str, Any]]:
    """Return ``(event, fields)`` for a structured message, ``(None, {})`` for plain text."""
    try:
        payload = json.loads(message)
    except json.JSONDecodeError:
        return None, {}
    if not isinstance(payload, dict):
        return None, {}
    event = payload.pop("event", None)
    return event, payload


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "logger": record.name,
            "severity": record.levelname,
        }
        run_id = getattr(record, "run_id", None)
        if run_id:
            data["run_id"] = run_id

        message = record.getMessage()
        event, fields = split_event(message)
        if event is not None or fields:
            if event is not None:
                data["event"] = event
            data.update(fields)
        else:
            data["message"] = message

        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class ConsoleFormatter(logging.Formatter):
    """One line per record: ``time | level | logger | [run] event key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = time.strftime("%H:%M:%S", time.localtime(record.created))
        message = record.getMessage()
        event, fields = split_event(message)
        if event is not None:
            message = event
        details = "".join(f" {key}={fields[key]}" for key in sorted(fields))

        run_id = getattr(record, "run_id", None)
        prefix = f"[{run_id}] " if run_id else ""
        output = f"{timestamp} | {record.levelname:<8} | {record.name} | {prefix}{message}{details}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def log_event(logger: logging.Logger, event: str, **extra: Any) -> None:
    logger.info(format_event(event, extra))


def log_warning(logger: logging.Logger, event: str, **extra: Any) -> None:
    logger.warning(format_event(event, extra))


@contextmanager
def log_timing(logger: logging.Logger, event: str, **extra: Any):
    """Emit ``<event>.start`` then ``.complete`` or ``.error``, both with ``elapsed_ms``."""
    start = time.perf_counter()
    logger.info(format_event(f"{event}.start", extra))
    try:
        yield
    except Exception:
        elapsed = (time.perf_counter() - start) * 1000.0
        logger.exception(format_event(f"{event}.error", {**extra, "elapsed_ms": elapsed}))
        raise
    elapsed = (time.perf_counter() - start) * 1000.0
    logger.info(format_event(f"{event}.complete", {**extra, "elapsed_ms": elapsed}))
