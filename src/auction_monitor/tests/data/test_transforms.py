# tests/data/test_transforms.py
from decimal import Decimal

import pytest

from auction_monitor.core.data.transforms import (
    _parse_timestamp,
    _parse_units,
    format_time_label,
    smart_round,
    units_to_decimal,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 0),
        ("", 0),
        (12, 12),
        ("1000000000000000000", 10**18),
        ("1.1e18", 11 * 10**17),
        (1.1e18, 11 * 10**17),
        ("garbage", 0),
        ("NaN", 0),
    ],
)
def test_parse_units(value, expected):
    assert _parse_units(value) == expected


def test_parse_timestamp():
    assert _parse_timestamp("1530000000") == 1530000000
    assert _parse_timestamp(1530000000.7) == 1530000000.7
    assert _parse_timestamp("nan") == 0
    assert _parse_timestamp("yesterday") == 0


def test_units_to_decimal():
    assert units_to_decimal(15 * 10**17) == Decimal("1.5")


def test_smart_round():
    assert smart_round(1234.5678) == 1235
    assert smart_round(1.23456) == 1.23
    assert smart_round(0.0123456) == 0.012
    assert smart_round(0) == 0
    assert smart_round(512.3456, 3, 2, 2) == 512.35


def test_format_time_label():
    assert format_time_label(0, "UTC") == "12:00"
    assert format_time_label(13 * 3600 * 1000 + 5 * 60 * 1000, "UTC") == "01:05"
