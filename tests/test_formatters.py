import os
import sys
from datetime import timezone

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock.utils.formatters import (
    coerce_quantity,
    format_currency,
    parse_int,
    parse_timestamp,
    safe_number,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("12", 12),
        ("12 boxes", 12),
        ("  -3", -3),
        (7.9, 7),
        ("abc", 0),
        ("", 0),
        (None, 0),
        (True, 0),
        (float("nan"), 0),
    ],
)
def test_parse_int(value, expected):
    assert parse_int(value) == expected


def test_coerce_quantity_never_negative():
    assert coerce_quantity("-5") == 0
    assert coerce_quantity("abc") == 0
    assert coerce_quantity("10") == 10


def test_safe_number_fallback():
    assert safe_number("2.5") == 2.5
    assert safe_number("n/a", 1.0) == 1.0
    assert safe_number(float("inf")) == 0.0


def test_format_currency():
    assert format_currency(12.5) == "€12.50"
    assert format_currency("bad", currency="$") == "$0.00"


def test_parse_timestamp_handles_zulu_and_naive_values():
    zulu = parse_timestamp("2024-03-01T10:00:00Z")
    naive = parse_timestamp("2024-03-01T10:00:00")

    assert zulu == naive
    assert zulu.tzinfo == timezone.utc
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None
