"""Utility functions for freightdesk."""

from freightdesk.utils.date_parser import parse_date, get_date_range, to_roman_month
from freightdesk.utils.amount_parser import parse_amount, format_idr, round_rupiah

__all__ = ["parse_date", "get_date_range", "to_roman_month", "parse_amount", "format_idr", "round_rupiah"]
