"""
Form Value Utilities

Coercion helpers shared by the rule library, plus the input masks and value
formatters form renderers apply to raw keystrokes before handing values to the
engine.

Coercion follows the lenient rules of form inputs: anything that is not a
usable number counts as zero, and date strings are parsed with
python-dateutil.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from dateutil import parser as date_parser

import structlog
logger = structlog.get_logger("business.utils")


Number = Union[int, float]


def to_number(value: Any) -> Number:
    """
    Coerce a raw form value to a number, falling back to zero.

    Booleans count as 0/1, blank strings and None as 0, unparsable text
    and NaN as 0.

    Example:
        to_number("12.5")  # 12.5
        to_number("")      # 0
        to_number("abc")   # 0
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return 0 if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, Decimal):
        return 0 if value.is_nan() else float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
        if math.isnan(number):
            return 0
        return int(number) if number.is_integer() else number
    return 0


def is_blank(value: Any) -> bool:
    """True for None, empty/whitespace strings and empty list/tuple/set values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date-like form value.

    Returns:
        A datetime, or None when the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError) as e:
        logger.debug("Unparsable date value", error_type=type(e).__name__)
        return None


# ============================================================================
# INPUT MASKS
# ============================================================================

def mask_currency(value: str) -> str:
    """Keep digits and one decimal point, limited to two decimal places."""
    cleaned = re.sub(r'[^\d.]', '', value)
    parts = cleaned.split('.')
    if len(parts) > 2:
        return parts[0] + '.' + ''.join(parts[1:])
    if len(parts) == 2 and len(parts[1]) > 2:
        return parts[0] + '.' + parts[1][:2]
    return cleaned


def mask_phone(value: str) -> str:
    """Format digits as (XXX) XXX-XXXX while typing."""
    cleaned = re.sub(r'\D', '', value)
    if len(cleaned) <= 3:
        return cleaned
    if len(cleaned) <= 6:
        return f"({cleaned[:3]}) {cleaned[3:]}"
    return f"({cleaned[:3]}) {cleaned[3:6]}-{cleaned[6:10]}"


def mask_sku(value: str) -> str:
    return re.sub(r'[^A-Z0-9-]', '', value.upper())


def mask_percentage(value: str) -> str:
    """Keep a numeric percentage, clamped to 100."""
    cleaned = re.sub(r'[^\d.]', '', value)
    try:
        number = float(cleaned)
    except ValueError:
        return ''
    clamped = min(number, 100)
    return _format_plain(clamped)


def mask_quantity(value: str) -> str:
    return re.sub(r'[^\d]', '', value)


INPUT_MASKS = {
    'currency': mask_currency,
    'phone': mask_phone,
    'sku': mask_sku,
    'percentage': mask_percentage,
    'quantity': mask_quantity,
}


# ============================================================================
# VALUE FORMATTERS
# ============================================================================

def format_currency(value: str) -> str:
    try:
        return f"{Decimal(value.strip()):.2f}"
    except (InvalidOperation, AttributeError):
        return '0.00'


def format_phone(value: str) -> str:
    """Strip a displayed phone number down to its digits for storage."""
    return re.sub(r'\D', '', value)


def format_percentage(value: str) -> str:
    """Convert a percentage to its decimal fraction for storage."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return '0'
    return _format_plain(number / 100)


VALUE_FORMATTERS = {
    'currency': format_currency,
    'phone': format_phone,
    'percentage': format_percentage,
}


def _format_plain(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else repr(number)
