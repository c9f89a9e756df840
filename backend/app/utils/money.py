# backend/app/utils/money.py
"""
Money parsing and rounding helpers.

Market prices arrive as display strings ("$1.23", "1,23€", "$1,234.56",
"1 234,56 zł"). parse_price() turns them into Decimal without going through
float.

Usage:
    from app.utils.money import parse_price, quantize_currency

    price = parse_price("$1,234.56")  # Decimal("1234.56")
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Two decimal places for money amounts
CENT = Decimal("0.01")

# Everything except digits and the two separator characters
_NON_NUMERIC = re.compile(r"[^0-9.,]")


def parse_price(raw: str) -> Decimal:
    """
    Parse a formatted price string into a Decimal.

    Rules:
    - Currency symbols, letters and whitespace are stripped
    - Either ',' or '.' may be the decimal separator
    - When both appear, the right-most one is the decimal separator and
      the other is a thousands separator
    - When only one kind appears more than once, it is a thousands separator
    - A single separator followed by exactly three digits after a non-zero
      whole part is a thousands separator ("$1,234" is 1234)

    Args:
        raw: Price as displayed by the market

    Returns:
        Positive Decimal price

    Raises:
        ValueError: If no positive number can be extracted

    Example:
        >>> parse_price("1,23€")
        Decimal('1.23')
        >>> parse_price("$1,234.56")
        Decimal('1234.56')
    """
    cleaned = _NON_NUMERIC.sub("", raw or "")
    if not cleaned:
        raise ValueError(f"No numeric value in price '{raw}'")

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")

    if last_comma >= 0 and last_dot >= 0:
        decimal_sep = "," if last_comma > last_dot else "."
        thousands_sep = "." if decimal_sep == "," else ","
        cleaned = cleaned.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif last_comma >= 0 or last_dot >= 0:
        sep = "," if last_comma >= 0 else "."
        whole, _, fraction = cleaned.partition(sep)
        if cleaned.count(sep) > 1 or (len(fraction) == 3 and whole.strip("0")):
            cleaned = cleaned.replace(sep, "")
        else:
            cleaned = cleaned.replace(sep, ".")

    try:
        value = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Invalid price '{raw}'") from e

    if value <= 0:
        raise ValueError(f"Price must be positive, got '{raw}'")

    return value


def quantize_currency(value: Decimal) -> Decimal:
    """Round a money amount to 2 decimal places (half-up)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
