from __future__ import annotations

import pytest

from deltakey.models.record import UNKNOWN_BRAND
from deltakey.services.key_parser import build_record_id, find_core_segment, parse_key


def test_standard_key_is_decomposed() -> None:
    record = parse_key("RingCentral.uns.a1b2.WelcomeEmail__email__1210__en_US", "Welcome", 4)

    assert record is not None
    assert record.id == "Welcome-4"
    assert record.template_name == "WelcomeEmail"
    assert record.brand_id == "1210"
    assert record.locale == "en_US"
    assert record.task_name == "Welcome"
    assert record.raw_parts == ("RingCentral", "uns", "a1b2", "WelcomeEmail__email__1210__en_US")


def test_core_segment_is_found_anywhere_in_the_key() -> None:
    record = parse_key("Brand.Reset__3420__de_DE.extra.tail", "Task", 0)

    assert record is not None
    assert record.template_name == "Reset"
    assert record.brand_id == "3420"
    assert record.locale == "de_DE"


def test_short_key_yields_degraded_record() -> None:
    record = parse_key("malformed_key", "Billing", 2)

    assert record is not None
    assert record.template_name == "malformed_key"
    assert record.brand_id == UNKNOWN_BRAND
    assert record.locale is None
    assert record.raw_parts == ("malformed_key",)


def test_two_segment_key_is_still_degraded() -> None:
    record = parse_key("only.two", "T", 1)

    assert record is not None
    assert record.template_name == "only.two"
    assert record.brand_id == UNKNOWN_BRAND


@pytest.mark.parametrize("raw", [None, "", 42, 3.5])
def test_empty_or_non_string_keys_return_none(raw: object) -> None:
    assert parse_key(raw, "T", 0) is None


def test_missing_brand_uses_unknown_and_keeps_locale() -> None:
    record = parse_key("a.b.c.Template__email__en_US", "T", 0)

    assert record is not None
    assert record.brand_id == UNKNOWN_BRAND
    assert record.locale == "en_US"


def test_brand_must_be_exactly_four_digits() -> None:
    record = parse_key("a.b.c.Template__12345__123__en_US", "T", 0)

    assert record is not None
    assert record.brand_id == UNKNOWN_BRAND


def test_locale_is_dropped_when_it_equals_the_brand() -> None:
    record = parse_key("a.b.c.Template__email__1210", "T", 0)

    assert record is not None
    assert record.brand_id == "1210"
    assert record.locale is None


def test_locale_is_dropped_when_core_has_no_separator() -> None:
    record = parse_key("a.b.c.Plain", "T", 0)

    assert record is not None
    assert record.template_name == "Plain"
    assert record.locale is None
    assert record.brand_id == UNKNOWN_BRAND


def test_core_fallback_prefers_fourth_segment_then_last() -> None:
    assert find_core_segment(["a", "b", "c", "d", "e"]) == "d"
    assert find_core_segment(["a", "b", "c"]) == "c"
    assert find_core_segment(["a", "b", "c", "", "e"]) == "e"
    assert find_core_segment(["a", "x__y", "c", "d"]) == "x__y"


def test_header_cell_parses_as_degraded_record() -> None:
    record = parse_key("Key", "Welcome", 0)

    assert record is not None
    assert record.template_name == "Key"
    assert record.id == build_record_id("Welcome", 0) == "Welcome-0"


@pytest.mark.parametrize(
    "raw",
    [
        "RingCentral.uns.a1b2.WelcomeEmail__email__1210__en_US",
        "malformed_key",
        "a.b.c.Plain",
    ],
)
def test_parsing_is_idempotent(raw: str) -> None:
    first = parse_key(raw, "Welcome", 7)
    second = parse_key(raw, "Welcome", 7)

    assert first == second
    assert first.id == second.id == "Welcome-7"
