"""Date parsing and period utilities."""

import calendar
from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

ROMAN_MONTHS = ("I", "II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X", "XI", "XII")

SUPPORTED_PERIODS = (
    "this-month",
    "this-year",
    "this-week",
    "last-month",
    "last-year",
    "last-week",
)


def _start_of(unit: str, today: date) -> date:
    if unit == "month":
        return today.replace(day=1)
    if unit == "year":
        return today.replace(month=1, day=1)
    if unit == "week":
        return today - timedelta(days=today.weekday())
    raise ValueError(f"Unknown period unit: '{unit}'")


def _shift(unit: str, anchor: date, steps: int) -> date:
    if unit == "month":
        return anchor + relativedelta(months=steps)
    if unit == "year":
        return anchor + relativedelta(years=steps)
    return anchor + timedelta(weeks=steps)


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2025-01-15", "15 Jan 2025") and relative
    expressions ("today", "yesterday", "this month", "last year",
    "next week").

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = date.today()

    fixed = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if text in fixed:
        return fixed[text]

    offsets = {"last": -1, "this": 0, "next": 1}
    words = text.split()
    if len(words) == 2 and words[0] in offsets and words[1] in ("week", "month", "year"):
        unit = words[1]
        return _shift(unit, _start_of(unit, today), offsets[words[0]])

    try:
        return date_parser.parse(text, dayfirst=False).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_date_range(period: str) -> tuple[date, date]:
    """Get start and end dates (both inclusive) for a named period.

    "this-*" periods end today; "last-*" periods cover the whole previous
    week, month or year.
    """
    period = period.strip().lower()
    if period not in SUPPORTED_PERIODS:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: {', '.join(SUPPORTED_PERIODS)}"
        )

    today = date.today()
    which, unit = period.split("-")
    current_start = _start_of(unit, today)
    if which == "this":
        return current_start, today

    previous_start = _shift(unit, current_start, -1)
    return previous_start, current_start - timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return the first and last day of a calendar month."""
    if month < 1 or month > 12:
        raise ValueError("Month must be between 1 and 12")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def to_roman_month(month: int) -> str:
    """Return the Roman numeral used for a month in document numbers."""
    if month < 1 or month > 12:
        raise ValueError("Month must be between 1 and 12")
    return ROMAN_MONTHS[month - 1]
