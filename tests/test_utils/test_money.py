"""
Tests for money helpers
"""
from decimal import Decimal

import pytest

from mymess.utils.money import format_money, non_negative, to_decimal


def test_format_money_inr_prefix():
    assert format_money(Decimal("15000")) == "₹15,000"


def test_format_money_other_currency_suffix():
    assert format_money("1200.5", "USD", decimals=2) == "1,200.50 USD"


@pytest.mark.parametrize("value,expected", [
    (2500, Decimal("2500")),
    (1200.5, Decimal("1200.5")),
    (" 800 ", Decimal("800")),
    (Decimal("42"), Decimal("42")),
])
def test_to_decimal_reads_numbers(value, expected):
    assert to_decimal(value) == expected


@pytest.mark.parametrize("value", [None, True, "", "abc", "NaN", "Infinity", float("inf"), [1]])
def test_to_decimal_falls_back_to_default(value):
    assert to_decimal(value) == Decimal("0")
    assert to_decimal(value, default=None) is None


def test_non_negative():
    assert non_negative(Decimal("-5")) == Decimal("0")
    assert non_negative(Decimal("5")) == Decimal("5")
