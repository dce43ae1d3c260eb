"""Ingestion error taxonomy."""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for failures that end an ingestion run."""

    error_code = "INGESTION_ERROR"


class InvalidConfigurationError(IngestionError):
    """Raised when neither the cloud nor the local source configuration is satisfied."""

    error_code = "INVALID_CONFIGURATION"


class SourceFetchError(IngestionError):
    """Raised when a remote call fails or when no local file could be read."""

    error_code = "SOURCE_FETCH_FAILURE"

    def __init__(self, message: str, *, failures: list[str] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])


class SourceDecodeError(IngestionError):
    """Raised for a single local file that could not be decoded."""

    error_code = "SOURCE_DECODE_FAILURE"

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Failed to decode '{filename}': {reason}")
        self.filename = filename
        self.reason = reason


class EmptySheetListError(IngestionError):
    error_code = "EMPTY_SHEET_LIST"


class EmptyResultSetError(IngestionError):
    """Raised when every source was processed but no key was extracted."""

    error_code = "EMPTY_RESULT_SET"


class InvalidTransitionError(RuntimeError):
    """Raised for a status change the ingestion state machine does not allow."""


class PayloadConsumedError(RuntimeError):
    """Raised when a workbook payload is read after its ownership was handed off."""


class RejectedFileError(ValueError):
    """Raised when a file cannot join the upload selection."""


class UnsupportedFileTypeError(RejectedFileError):
    """Raised when a selected file does not carry a spreadsheet extension."""


class FileTooLargeError(RejectedFileError):
    """Raised when a selected file exceeds the configured upload size."""
