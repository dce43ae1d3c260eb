"""Run workbook decoding outside the interactive thread.

Decoding a multi-megabyte workbook is CPU heavy, so it is handed to a single
worker (a separate process by default). The workbook bytes travel inside a
``WorkbookPayload`` whose ownership moves to the worker on submission; the
caller can no longer read them afterwards.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures.process import BrokenProcessPool
from types import TracebackType

from deltakey.models.record import ParsedRecord
from deltakey.services.errors import PayloadConsumedError, SourceDecodeError
from deltakey.services.excel_reader import decode_and_extract, derive_title
from deltakey.services.extraction import KEY_COLUMN_INDEX
from deltakey.utils.config import ExecutorKind
from deltakey.utils.logging import get_logger

LOGGER = get_logger(__name__)

DecodeResult = tuple[str, list[ParsedRecord]]


class WorkbookPayload:
    """Workbook bytes that can be taken exactly once."""

    def __init__(self, filename: str, content: bytes, *, title: str | None = None) -> None:
        self.filename = filename
        self.title = title or derive_title(filename)
        self.size = len(content)
        self._content: bytes | None = content

    @property
    def consumed(self) -> bool:
        return self._content is None

    def take(self) -> bytes:
        if self._content is None:
            raise PayloadConsumedError(f"Payload for '{self.filename}' was already handed off.")
        content, self._content = self._content, None
        return content

    def __repr__(self) -> str:
        state = "consumed" if self.consumed else f"{self.size} bytes"
        return f"WorkbookPayload({self.filename!r}, {state})"


def _terminate_workers(executor: ProcessPoolExecutor) -> None:
    terminate = getattr(executor, "terminate_workers", None)
    if terminate is not None:
        terminate()
        return
    # executors before 3.14 expose no public way to stop a running worker
    for process in list((getattr(executor, "_processes", None) or {}).values()):
        if process.is_alive():
            process.terminate()


class DecodeWorker:
    """Single-slot executor for workbook decoding; files are processed one at a time."""

    max_workers = 1

    def __init__(
        self,
        *,
        kind: ExecutorKind = "process",
        timeout: float | None = None,
        key_column_index: int = KEY_COLUMN_INDEX,
    ) -> None:
        self.kind = kind
        self.timeout = timeout
        self.key_column_index = key_column_index
        self._executor: Executor | None = None

    def _get_executor(self) -> Executor:
        if self._executor is None:
            if self.kind == "thread":
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="deltakey-decode",
                )
            else:
                self._executor = ProcessPoolExecutor(max_workers=self.max_workers)
        return self._executor

    def submit(self, payload: WorkbookPayload) -> Future[DecodeResult]:
        content = payload.take()
        return self._get_executor().submit(
            decode_and_extract,
            payload.filename,
            content,
            self.key_column_index,
            payload.title,
        )

    def process(self, payload: WorkbookPayload) -> DecodeResult:
        """Decode one payload and wait for it; every failure surfaces as ``SourceDecodeError``."""
        filename = payload.filename
        future = self.submit(payload)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as exc:
            # a running future ignores cancel(); the slot is only freed by a new pool
            LOGGER.warning("Decode of %s timed out after %ss; restarting pool", filename, self.timeout)
            self.shutdown(terminate=True)
            raise SourceDecodeError(filename, f"timed out after {self.timeout}s") from exc
        except BrokenProcessPool as exc:
            LOGGER.warning("Decode worker crashed on %s; restarting pool", filename)
            self.shutdown()
            raise SourceDecodeError(filename, "decode worker terminated unexpectedly") from exc
        except Exception as exc:
            raise SourceDecodeError(filename, str(exc) or type(exc).__name__) from exc

    def shutdown(self, *, terminate: bool = False) -> None:
        """Release the executor; ``terminate`` also kills worker processes still busy decoding."""
        executor, self._executor = self._executor, None
        if executor is None:
            return
        if terminate and isinstance(executor, ProcessPoolExecutor):
            _terminate_workers(executor)
        executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "DecodeWorker":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()
