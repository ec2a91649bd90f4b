"""
Fixed-precision rounding for score comparisons.

Boundary classifications (proficiency labels, profile patterns, validity
status) compare values rounded HALF_UP to four decimal places. Binary floats
such as 29.999999999 would otherwise flicker across a threshold; after
rounding, a value that prints as 30.0 always classifies as 30.0.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

SCALE = 4

_QUANTUM = Decimal(1).scaleb(-SCALE)  # Decimal("0.0001")


def round_half_up(value: float, places: int = SCALE) -> float:
    """
    Round a float HALF_UP to a fixed number of decimal places.

    The value goes through ``str()`` so that the shortest decimal
    representation is rounded, not the binary expansion.

    Args:
        value: Value to round
        places: Number of decimal places

    Returns:
        The rounded value as a float

    Example:
        >>> round_half_up(0.12345)
        0.1235
        >>> round_half_up(2.5, 0)
        3.0
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round4(value: float) -> float:
    """Round HALF_UP to four decimal places."""
    return float(Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP))


def round4_optional(value: Optional[float]) -> Optional[float]:
    """``round4`` that passes ``None`` through."""
    if value is None:
        return None
    return round4(value)


def is_at_least(value: float, threshold: float) -> bool:
    """Compare ``value >= threshold`` after rounding both to four decimals."""
    return round4(value) >= round4(threshold)


def is_below(value: float, threshold: float) -> bool:
    """Compare ``value < threshold`` after rounding both to four decimals."""
    return round4(value) < round4(threshold)
