"""
Currency Rounding Module

Decimal helpers for schedule money. Every monetary figure that leaves the
engine is rounded half-up to cents. NEVER uses float.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any, Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a stored or user-supplied amount to Decimal.

    Accepts Decimal, int, float (via its string form) and strings such as
    "£1,250.50". None and empty strings become zero.

    Raises:
        ValueError: if the value cannot be read as a number
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert boolean {value!r} to Decimal")
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = str(value).strip()
    if not text:
        return ZERO

    # Remove currency symbols, whitespace and thousands separators
    clean_value = re.sub(r'[^\d.\-+eE]', '', text.replace(',', ''))
    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def round_currency(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Round to cents using ROUND_HALF_UP

    Args:
        value: Amount to round

    Returns:
        Properly rounded Decimal
    """
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
