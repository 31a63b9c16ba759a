"""
Money Helpers Module

Decimal coercion, rounding and display formatting for loan amounts.
Internal arithmetic keeps full Decimal precision; amounts are only rounded
to two decimals when formatted. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
CENT = Decimal('0.01')
CURRENCY_SYMBOL = "$"

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a number or numeric string to Decimal

    Floats are converted through their string representation so that
    0.1 becomes Decimal('0.1') rather than its binary expansion.

    Raises:
        ValueError: If the value cannot be converted
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return decimal_from_string(value)
    raise ValueError(f"Cannot convert {value!r} to Decimal")


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Accepts plain numbers ("1234.5"), US thousands ("1,234.50") and
    es-AR style amounts ("$ 1.234,50").

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+eE]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Whichever separator comes last is the decimal separator
        if clean_value.rfind(',') > clean_value.rfind('.'):
            clean_value = clean_value.replace('.', '').replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result


def quantize_amount(amount: Decimal) -> Decimal:
    """Round to currency precision (two decimals, half up)"""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: AmountLike) -> str:
    """
    Format for display using es-AR conventions

    Example: Decimal('1234.5') -> '$ 1.234,50'
    """
    rounded = quantize_amount(to_decimal(amount))
    sign = "-" if rounded < ZERO else ""
    # Format with US separators first, then swap them
    us_style = f"{abs(rounded):,.2f}"
    local = us_style.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{CURRENCY_SYMBOL} {local}"
