from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from deltakey.models.record import ParsedRecord

ALL = "All"
"""Wildcard value for the brand and task selectors."""

TOP_BRANDS_LIMIT = 5


@dataclass(frozen=True)
class DatasetStats:
    total_keys: int
    total_tasks: int
    unique_templates: int
    unique_brands: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalKeys": self.total_keys,
            "totalTasks": self.total_tasks,
            "uniqueTemplates": self.unique_templates,
            "uniqueBrands": self.unique_brands,
        }


@dataclass(frozen=True)
class BrandCount:
    brand_id: str
    count: int


@dataclass
class RecordGroup:
    key: str
    template_name: str
    brand_id: str
    records: list[ParsedRecord] = field(default_factory=list)

    @property
    def head(self) -> ParsedRecord:
        return self.records[0]

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "templateName": self.template_name,
            "brandId": self.brand_id,
            "count": len(self.records),
            "records": [record.to_dict() for record in self.records],
        }


def _is_wildcard(value: str | None) -> bool:
    return value is None or value == "" or value == ALL


def filter_records(
    records: Sequence[ParsedRecord],
    *,
    query: str | None = None,
    brand_id: str | None = None,
    task_name: str | None = None,
) -> list[ParsedRecord]:
    """Free text on template or key (case-insensitive) AND brand AND task; all three must hold."""
    term = (query or "").lower()
    any_brand = _is_wildcard(brand_id)
    any_task = _is_wildcard(task_name)

    matched: list[ParsedRecord] = []
    for record in records:
        if term and term not in record.template_name.lower() and term not in record.original_key.lower():
            continue
        if not any_brand and record.brand_id != brand_id:
            continue
        if not any_task and record.task_name != task_name:
            continue
        matched.append(record)
    return matched


def group_key(record: ParsedRecord) -> str:
    return f"{record.template_name}__{record.brand_id}"


def group_records(records: Sequence[ParsedRecord]) -> list[RecordGroup]:
    """Bucket by template and brand, buckets ordered by first occurrence."""
    groups: dict[str, RecordGroup] = {}
    for record in records:
        key = group_key(record)
        group = groups.get(key)
        if group is None:
            group = RecordGroup(key=key, template_name=record.template_name, brand_id=record.brand_id)
            groups[key] = group
        group.records.append(record)
    return list(groups.values())


def compute_stats(records: Sequence[ParsedRecord]) -> DatasetStats:
    return DatasetStats(
        total_keys=len(records),
        total_tasks=len({record.task_name for record in records}),
        unique_templates=len({record.template_name for record in records}),
        unique_brands=len({record.brand_id for record in records}),
    )


def top_brands(records: Sequence[ParsedRecord], limit: int = TOP_BRANDS_LIMIT) -> list[BrandCount]:
    """Most frequent brand ids; ties keep the order brands were first seen."""
    counts = Counter(record.brand_id for record in records)
    # most_common sorts stably, so equal counts stay in insertion order
    return [BrandCount(brand_id=brand, count=count) for brand, count in counts.most_common(limit)]


class QueryIndex:
    """Filter, group and aggregate one dataset; recomputed from scratch on every query."""

    def __init__(self, records: Sequence[ParsedRecord], *, top_limit: int = TOP_BRANDS_LIMIT) -> None:
        self.records = tuple(records)
        self.top_limit = top_limit
        self._stats: DatasetStats | None = None
        self._top_brands: list[BrandCount] | None = None

    @property
    def stats(self) -> DatasetStats:
        if self._stats is None:
            self._stats = compute_stats(self.records)
        return self._stats

    @property
    def top_brands(self) -> list[BrandCount]:
        if self._top_brands is None:
            self._top_brands = top_brands(self.records, self.top_limit)
        return list(self._top_brands)

    def brand_options(self) -> list[str]:
        return sorted({record.brand_id for record in self.records})

    def task_options(self) -> list[str]:
        return sorted({record.task_name for record in self.records})

    def filter(
        self,
        query: str | None = None,
        brand_id: str | None = None,
        task_name: str | None = None,
    ) -> list[ParsedRecord]:
        return filter_records(self.records, query=query, brand_id=brand_id, task_name=task_name)

    def search(
        self,
        query: str | None = None,
        brand_id: str | None = None,
        task_name: str | None = None,
    ) -> list[RecordGroup]:
        return group_records(self.filter(query, brand_id, task_name))
