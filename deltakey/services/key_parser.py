"""Decompose translation keys into template, brand and locale.

Keys follow the upstream convention ``Product.namespace.hash.Template__type__1234__en_US``:
dot-separated segments, one of which (the core segment) packs the template name,
a 4-digit brand id and a locale separated by double underscores.
"""

from __future__ import annotations

import re

from deltakey.models.record import UNKNOWN_BRAND, ParsedRecord

SEGMENT_SEPARATOR = "."
CORE_SEPARATOR = "__"
CORE_FALLBACK_INDEX = 3
MIN_SEGMENTS = 3

BRAND_ID_PATTERN = re.compile(r"[0-9]{4}")


def build_record_id(task_name: str, row_index: int) -> str:
    return f"{task_name}-{row_index}"


def find_core_segment(parts: list[str]) -> str:
    """Return the first segment containing ``__``, else index 3, else the last segment."""
    for part in parts:
        if CORE_SEPARATOR in part:
            return part
    if len(parts) > CORE_FALLBACK_INDEX and parts[CORE_FALLBACK_INDEX]:
        return parts[CORE_FALLBACK_INDEX]
    return parts[-1]


def parse_key(raw_key: object, task_name: str, row_index: int) -> ParsedRecord | None:
    """Parse one raw key; ``None`` only for empty or non-string input.

    Keys with fewer than three dot segments still produce a record with the raw
    key as template name so malformed entries remain visible.
    """
    if not raw_key or not isinstance(raw_key, str):
        return None

    record_id = build_record_id(task_name, row_index)
    parts = raw_key.split(SEGMENT_SEPARATOR)

    if len(parts) < MIN_SEGMENTS:
        return ParsedRecord(
            id=record_id,
            original_key=raw_key,
            task_name=task_name,
            template_name=raw_key,
            brand_id=UNKNOWN_BRAND,
            locale=None,
            raw_parts=tuple(parts),
        )

    segments = find_core_segment(parts).split(CORE_SEPARATOR)
    template_name = segments[0]
    brand_id = next(
        (segment for segment in segments if BRAND_ID_PATTERN.fullmatch(segment)),
        UNKNOWN_BRAND,
    )
    possible_locale = segments[-1]
    locale = possible_locale if possible_locale not in (template_name, brand_id) else None

    return ParsedRecord(
        id=record_id,
        original_key=raw_key,
        task_name=task_name,
        template_name=template_name,
        brand_id=brand_id,
        locale=locale,
        raw_parts=tuple(parts),
    )
