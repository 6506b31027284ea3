"""
Monetary rounding and summation helpers.

All ledger arithmetic funnels through these functions so every call site
agrees on rounding. Values are converted to ``Decimal`` through their shortest
``repr`` before rounding, which removes binary floating-point drift such as
``0.1 + 0.2 == 0.30000000000000004``.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from exceptions import ValidationError

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """
    Convert a monetary value to Decimal without inheriting float noise.

    Args:
        value: int, float or Decimal amount

    Returns:
        Decimal representation of the value

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValidationError("Monetary value must be finite", details={"value": value})
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("Monetary value must be a number", details={"value": value})
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("Monetary value must be finite", details={"value": value})
    return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)


def quantize_cents(value: Number) -> Decimal:
    """Round to cents (half-up, ties away from zero) and return a Decimal."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_to_cents(value: Number) -> float:
    """
    Round a monetary value to 2 decimal places.

    Ties round away from zero (``19.005 -> 19.01``, ``-19.005 -> -19.01``).
    The function is idempotent and never returns negative zero.

    Args:
        value: Amount to round

    Returns:
        Rounded amount as float
    """
    return float(quantize_cents(value)) + 0.0


def sum_monetary_values(values: Iterable[Number]) -> float:
    """
    Sum monetary values exactly and round once at the end.

    Args:
        values: Amounts to add

    Returns:
        Rounded total (0.0 for an empty sequence)
    """
    total = sum((to_decimal(value) for value in values), Decimal(0))
    return round_to_cents(total)


def format_currency(amount: Number, symbol: str = "$") -> str:
    """Format an amount as currency, e.g. '$1,234.56' or '-$12.00'."""
    rounded = round_to_cents(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def format_signed(amount: Number, symbol: str = "$") -> str:
    """Format with an explicit +/- sign."""
    rounded = round_to_cents(amount)
    sign = "+" if rounded >= 0 else "-"
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def require_positive(value: Number, field: str = "amount") -> float:
    """
    Validate a strictly positive amount and return it rounded to cents.

    Raises:
        ValidationError: If the value is not a finite number above zero
    """
    rounded = quantize_cents(value)
    if rounded <= 0:
        raise ValidationError(f"{field} must be greater than zero", details={field: value})
    return float(rounded)


def require_non_negative(value: Number, field: str = "amount") -> float:
    """Validate an amount that may be zero but not negative."""
    rounded = quantize_cents(value)
    if rounded < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: value})
    return float(rounded) + 0.0
