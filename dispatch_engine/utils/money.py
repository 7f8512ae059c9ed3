"""
Currency helpers shared by settlement and analytics.
"""

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

_CENT = Decimal("0.01")


def round_currency(value: float) -> float:
    """Round to cents (half up); non-finite values become 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a loosely typed amount from a collaborator record to Decimal.

    Missing, non-numeric and non-finite values count as zero.
    """
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return result if result.is_finite() else Decimal(0)


def format_signed_amount(amount: float, currency: str = "GHC") -> str:
    """Format as ``+GHC 100.00`` / ``-GHC 100.00``."""
    sign = "+" if amount > 0 else "-" if amount < 0 else ""
    return f"{sign}{currency} {abs(amount):.2f}"
