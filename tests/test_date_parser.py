"""Tests for date parsing, named periods and month helpers."""

from datetime import date, timedelta

import pytest
from dateutil.relativedelta import relativedelta

from freightdesk.utils.date_parser import (
    get_date_range,
    month_bounds,
    parse_date,
    to_roman_month,
)


def test_parse_absolute_date():
    assert parse_date("2025-01-15") == date(2025, 1, 15)


def test_parse_free_form_date():
    assert parse_date("15 Jan 2025") == date(2025, 1, 15)


def test_parse_today_and_yesterday():
    assert parse_date("today") == date.today()
    assert parse_date(" Yesterday ") == date.today() - timedelta(days=1)


def test_parse_this_month():
    assert parse_date("this month") == date.today().replace(day=1)


def test_parse_last_month():
    expected = date.today().replace(day=1) - relativedelta(months=1)
    assert parse_date("last month") == expected


def test_parse_last_week_is_a_monday():
    result = parse_date("last week")
    assert result.weekday() == 0
    assert result == date.today() - timedelta(days=date.today().weekday() + 7)


def test_parse_invalid_date():
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date("gibberish")


def test_this_month_range_ends_today():
    start, end = get_date_range("this-month")
    assert start == date.today().replace(day=1)
    assert end == date.today()


def test_last_month_range_covers_whole_month():
    start, end = get_date_range("last-month")
    first_of_this_month = date.today().replace(day=1)
    assert start == first_of_this_month - relativedelta(months=1)
    assert end == first_of_this_month - timedelta(days=1)


def test_last_year_range():
    start, end = get_date_range("last-year")
    year = date.today().year - 1
    assert start == date(year, 1, 1)
    assert end == date(year, 12, 31)


def test_unknown_period():
    with pytest.raises(ValueError, match="Unknown period"):
        get_date_range("next-decade")


def test_month_bounds_handles_leap_february():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2025, 2) == (date(2025, 2, 1), date(2025, 2, 28))


@pytest.mark.parametrize(
    "month,roman",
    [(1, "I"), (3, "III"), (4, "IV"), (9, "IX"), (12, "XII")],
)
def test_to_roman_month(month, roman):
    assert to_roman_month(month) == roman


@pytest.mark.parametrize("month", [0, 13])
def test_to_roman_month_rejects_out_of_range(month):
    with pytest.raises(ValueError):
        to_roman_month(month)
