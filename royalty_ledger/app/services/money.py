"""
services/money.py — Minor-unit conversion and rounding primitives.

Money rules:
  - Gross amounts travel as Decimal in major units (e.g. "1200.50").
  - Payout amounts are integers in minor units (cents). The factor is 100
    for every currency, so a receipt's instructions always sum to
    round(gross_amount * 100).
  - Split fractions are converted to exact rationals (fractions.Fraction)
    before any arithmetic. Float never takes part in a money calculation.

No Flask imports. Pure functions only.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from fractions import Fraction

from royalty_ledger.app.errors import AppError, ErrorCode

MINOR_UNITS_PER_MAJOR = 100

_CENT = Decimal("0.01")
_ONE = Decimal("1")

_CURRENCY_SYMBOLS = {
    "JPY": "¥",
    "USD": "$",
    "EUR": "€",
}


def _invalid_amount(value: object) -> AppError:
    return AppError(
        ErrorCode.INVALID_AMOUNT,
        f"Amount {value!r} must be a finite, non-negative number.",
        422,
    )


def _invalid_share(value: object) -> AppError:
    return AppError(
        ErrorCode.INVALID_SPLIT,
        f"Share {value!r} is not a finite number.",
        422,
        field="split",
    )


def to_minor_units(amount: Decimal | int | str) -> int:
    """
    Converts a major-unit amount to integer minor units.

    Half-cent values round away from zero (ROUND_HALF_UP), matching
    round(amount * 100) for the non-negative amounts accepted here.

    Raises AppError(INVALID_AMOUNT, 422) for negative, non-finite or
    non-numeric input.
    """
    if isinstance(amount, (bool, float)):
        raise _invalid_amount(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        raise _invalid_amount(amount)

    if not value.is_finite() or value < 0:
        raise _invalid_amount(amount)

    scaled = (value * MINOR_UNITS_PER_MAJOR).quantize(_ONE, rounding=ROUND_HALF_UP)
    return int(scaled)


def from_minor_units(units: int) -> Decimal:
    """Converts integer minor units back to a two-place Decimal."""
    return (Decimal(units) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


def parse_share(value: object) -> Fraction:
    """
    Converts a split fraction to an exact rational.

    Accepts int, Fraction, Decimal, numeric strings and floats. A float is
    read through its shortest repr, so 0.7 becomes exactly 7/10 rather
    than the nearest binary double.

    Raises AppError(INVALID_SPLIT, 422) for bools, NaN, infinities and
    anything non-numeric.
    """
    if isinstance(value, bool):
        raise _invalid_share(value)
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise _invalid_share(value)
        return Fraction(repr(value))
    if isinstance(value, (Decimal, str)):
        try:
            decimal_value = value if isinstance(value, Decimal) else Decimal(value.strip())
        except InvalidOperation:
            raise _invalid_share(value)
        if not decimal_value.is_finite():
            raise _invalid_share(value)
        return Fraction(decimal_value)
    raise _invalid_share(value)


def floor_units(value: Fraction) -> int:
    """Largest integer <= value. Never over-allocates before reconciliation."""
    return math.floor(value)


def format_minor_units(units: int, currency: str) -> str:
    """
    Display string for a minor-unit amount.

    Examples:
      format_minor_units(120050, "JPY") → "¥1,200.50"
      format_minor_units(1, "USD")      → "$0.01"
      format_minor_units(1200, "GBP")   → "12.00 GBP"
    """
    code = currency.upper()
    symbol = _CURRENCY_SYMBOLS.get(code, "")
    sign = "-" if units < 0 else ""
    formatted = f"{from_minor_units(abs(units)):,.2f}"
    if symbol:
        return f"{sign}{symbol}{formatted}"
    return f"{sign}{formatted} {code}"
