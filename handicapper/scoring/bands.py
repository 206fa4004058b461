"""Shared numeric helpers for the category scorers.

Every tiered table in the engine is an ordered list of ``(bound, value)``
pairs resolved by one of the two lookups below.
"""

import math
from typing import Any, Optional, Sequence, TypeVar

T = TypeVar("T")


def banded(value: float, bands: Sequence[tuple[float, T]], default: T) -> T:
    """First entry whose lower bound ``value`` meets (bands sorted high to low).

    >>> banded(7, [(10, "a"), (5, "b")], "c")
    'b'
    """
    for lower, result in bands:
        if value >= lower:
            return result
    return default


def banded_upper(value: float, bands: Sequence[tuple[float, T]], default: T) -> T:
    """First entry whose upper bound ``value`` does not exceed (sorted low to high)."""
    for upper, result in bands:
        if value <= upper:
            return result
    return default


def round_half_up(x: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2).

    Python's ``round`` uses banker's rounding, which would turn a 2.5 point
    bonus into 2.
    """
    return int(math.floor(x + 0.5))


def round1(x: float) -> float:
    """Round to one decimal place, halves up."""
    return math.floor(x * 10 + 0.5) / 10


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def finite_or_none(x: Any) -> Optional[float]:
    """Return ``x`` as a float when it is a finite number, else None."""
    if x is None or isinstance(x, bool):
        return None
    try:
        f = float(x)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def pct(part: float, whole: float) -> float:
    """Percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    return (part / whole) * 100 if whole > 0 else 0.0
