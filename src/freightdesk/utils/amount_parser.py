"""Amount parsing and rupiah formatting utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re

_THOUSANDS_DOT = re.compile(r"^\d{1,3}(\.\d{3})+$")
_THOUSANDS_COMMA = re.compile(r"^\d{1,3}(,\d{3})+$")
_CURRENCY = re.compile(r"(rp|idr)\.?|[$€£¥]", re.IGNORECASE)

WHOLE_RUPIAH = Decimal("1")


def to_decimal(value) -> Decimal:
    """Coerce int, float, str or Decimal into a Decimal.

    Floats go through their string form so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_rupiah(amount: Decimal) -> Decimal:
    """Round to whole rupiah, half away from zero."""
    return to_decimal(amount).quantize(WHOLE_RUPIAH, rounding=ROUND_HALF_UP)


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "1500000"
    - "Rp 1.500.000" (dots as thousand separators)
    - "1.500.000,50" (comma as decimal separator)
    - "1,500,000.50"
    - "-Rp 5.000"
    - "(250000)" (negative in parentheses)

    A lone dot followed by exactly three digits is read as a thousand
    separator, so "1.500" is fifteen hundred.

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip()

    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1]

    text = _CURRENCY.sub("", text).replace(" ", "")
    if text.startswith("-"):
        is_negative = not is_negative
        text = text[1:]

    if "." in text and "," in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "." in text:
        if _THOUSANDS_DOT.match(text):
            text = text.replace(".", "")
    elif "," in text:
        if _THOUSANDS_COMMA.match(text):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number, got '{amount_str}'")
    return -amount if is_negative else amount


def format_idr(amount) -> str:
    """Format an amount as Indonesian Rupiah without decimals."""
    value = round_rupiah(amount)
    digits = f"{abs(int(value)):,}".replace(",", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}Rp {digits}"


def format_compact(amount) -> str:
    """Format an amount in compact form, e.g. "Rp 185.5M"."""
    value = to_decimal(amount)
    for threshold, suffix in (
        (Decimal(1_000_000_000), "B"),
        (Decimal(1_000_000), "M"),
        (Decimal(1_000), "K"),
    ):
        if value >= threshold:
            scaled = (value / threshold).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            return f"Rp {scaled}{suffix}"
    return f"Rp {value:f}"
