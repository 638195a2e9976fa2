"""Half-up rounding, matching the frontend's Math.round for non-negative values."""

from __future__ import annotations


def round_ratio(numerator: int, denominator: int) -> int:
    """Round ``numerator / denominator`` half-up using exact integer arithmetic."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


def percent_of(part: int, whole: int) -> int:
    """``round(100 * part / whole)``; an empty whole is 0%."""
    if whole <= 0:
        return 0
    return round_ratio(100 * part, whole)
