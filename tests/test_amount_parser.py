"""Tests for amount parsing and rupiah formatting."""

from decimal import Decimal

import pytest

from freightdesk.utils.amount_parser import (
    format_compact,
    format_idr,
    parse_amount,
    round_rupiah,
    to_decimal,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1500000", Decimal("1500000")),
        ("1.500.000", Decimal("1500000")),
        ("Rp 1.500.000", Decimal("1500000")),
        ("Rp. 2.000", Decimal("2000")),
        ("IDR 750000", Decimal("750000")),
        ("1.500.000,50", Decimal("1500000.50")),
        ("1,500,000.50", Decimal("1500000.50")),
        ("1.500", Decimal("1500")),
        ("2.5", Decimal("2.5")),
        ("12,5", Decimal("12.5")),
        ("(250000)", Decimal("-250000")),
        ("-Rp 5.000", Decimal("-5000")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "abc", "Rp"])
def test_parse_amount_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_amount(text)


@pytest.mark.parametrize("text", ["nan", "NaN", "sNaN", "inf", "-Infinity", "Rp inf"])
def test_parse_amount_rejects_non_finite(text):
    with pytest.raises(ValueError, match="finite"):
        parse_amount(text)


def test_to_decimal_goes_through_string_for_floats():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(None) == Decimal("0")
    assert to_decimal(5) == Decimal("5")


def test_round_rupiah_rounds_half_up():
    assert round_rupiah(Decimal("1000.5")) == Decimal("1001")
    assert round_rupiah(Decimal("1000.49")) == Decimal("1000")
    assert round_rupiah(Decimal("-1000.5")) == Decimal("-1001")


def test_format_idr():
    assert format_idr(Decimal("15000000")) == "Rp 15.000.000"
    assert format_idr(Decimal("999.6")) == "Rp 1.000"
    assert format_idr(Decimal("-5000")) == "-Rp 5.000"
    assert format_idr(0) == "Rp 0"


def test_format_compact():
    assert format_compact(Decimal("185500000")) == "Rp 185.5M"
    assert format_compact(Decimal("2000000000")) == "Rp 2.0B"
    assert format_compact(Decimal("1500")) == "Rp 1.5K"
    assert format_compact(Decimal("500")) == "Rp 500"
