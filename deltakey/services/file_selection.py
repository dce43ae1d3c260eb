from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from deltakey.services.decode_worker import WorkbookPayload
from deltakey.services.errors import FileTooLargeError, RejectedFileError, UnsupportedFileTypeError
from deltakey.utils.config import DEFAULT_ALLOWED_TYPES


def is_supported_filename(name: str, allowed_types: Sequence[str] = DEFAULT_ALLOWED_TYPES) -> bool:
    lower = name.lower()
    return any(lower.endswith(f".{ext}") for ext in allowed_types)


@dataclass(frozen=True)
class SourceFile:
    name: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def identity(self) -> tuple[str, int]:
        return self.name, self.size

    def to_payload(self, title: str | None = None) -> WorkbookPayload:
        return WorkbookPayload(self.name, self.content, title=title)


@dataclass
class SelectionResult:
    added: list[SourceFile] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    reasons: dict[str, str] = field(default_factory=dict)


class FileSelection:
    """Ordered set of uploaded workbooks, unique by (name, size)."""

    def __init__(
        self,
        files: Iterable[SourceFile] = (),
        *,
        allowed_types: Sequence[str] = DEFAULT_ALLOWED_TYPES,
        max_bytes: int | None = None,
    ) -> None:
        self.allowed_types = tuple(allowed_types)
        self.max_bytes = max_bytes
        self._files: list[SourceFile] = []
        for file in files:
            self.add(file)

    @property
    def files(self) -> tuple[SourceFile, ...]:
        return tuple(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self):
        return iter(self._files)

    def __contains__(self, file: object) -> bool:
        if not isinstance(file, SourceFile):
            return False
        return any(existing.identity == file.identity for existing in self._files)

    def validate(self, file: SourceFile) -> None:
        if not is_supported_filename(file.name, self.allowed_types):
            allowed = ", ".join(f".{ext}" for ext in self.allowed_types)
            raise UnsupportedFileTypeError(f"Unsupported file type for {file.name}; expected {allowed}")
        if self.max_bytes is not None and file.size > self.max_bytes:
            raise FileTooLargeError(f"File too large: {file.size} > {self.max_bytes}")

    def add(self, file: SourceFile) -> bool:
        """Add a file; returns False when an identical (name, size) file is already selected."""
        self.validate(file)
        if file in self:
            return False
        self._files.append(file)
        return True

    def add_many(self, files: Iterable[SourceFile]) -> SelectionResult:
        result = SelectionResult()
        for file in files:
            try:
                added = self.add(file)
            except RejectedFileError as error:
                result.rejected.append(file.name)
                result.reasons[file.name] = str(error)
                continue
            if added:
                result.added.append(file)
            else:
                result.duplicates.append(file.name)
        return result

    def remove(self, index: int) -> SourceFile:
        return self._files.pop(index)

    def discard(self, name: str, size: int | None = None) -> bool:
        for position, existing in enumerate(self._files):
            if existing.name == name and (size is None or existing.size == size):
                del self._files[position]
                return True
        return False

    def clear(self) -> None:
        self._files.clear()
