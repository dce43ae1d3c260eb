from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

UNKNOWN_BRAND = "Unknown"
"""Sentinel brand id for keys whose core segment carries no 4-digit numeral."""


@dataclass(frozen=True)
class ParsedRecord:
    id: str
    original_key: str
    task_name: str
    template_name: str
    brand_id: str
    locale: str | None
    raw_parts: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "originalKey": self.original_key,
            "taskName": self.task_name,
            "templateName": self.template_name,
            "brandId": self.brand_id,
            "locale": self.locale,
            "rawParts": list(self.raw_parts),
        }


@dataclass(frozen=True)
class UnifiedDataset:
    """All records of one successful ingestion run, in source, sheet, row order."""

    title: str
    records: tuple[ParsedRecord, ...]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __len__(self) -> int:
        return len(self.records)
