"""Numeric coercion shared by the reporting core."""

from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def coerce_amount(value: Any) -> Decimal:
    """
    Convert a stored amount to Decimal.

    Missing, non-numeric and non-finite values become 0; this never raises.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        # str() first so floats keep their printed value (0.1 -> "0.1")
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return amount if amount.is_finite() else ZERO


def ratio_percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is not positive."""
    if denominator <= 0:
        return ZERO
    return numerator / denominator * HUNDRED


def total(amounts) -> Decimal:
    return sum((coerce_amount(a) for a in amounts), ZERO)


def format_amount(amount: Decimal, symbol: str = "") -> str:
    """Amount with the currency symbol and two decimals, e.g. "₱1,250.00"."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
