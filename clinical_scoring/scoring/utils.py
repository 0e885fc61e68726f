"""
Decimal Utilities
clinical_scoring/scoring/utils.py

Precision-safe rounding and weighting helpers shared by the scorers.
Python's round() is banker's rounding; scores here round half up.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Sequence, Tuple


def to_decimal(value: float, places: int = 4) -> Decimal:
    """Convert float to Decimal with explicit precision."""
    return Decimal(str(value)).quantize(
        Decimal(10) ** -places, rounding=ROUND_HALF_UP
    )


def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp(value, min_val=0, max_val=100):
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def clamp_unit(value: float) -> float:
    """Clamp to [0.0, 1.0] and keep four decimals."""
    return float(to_decimal(clamp(float(value), 0.0, 1.0)))


def weighted_mean(values: List[Decimal], weights: List[Decimal]) -> Decimal:
    """
    Calculate weighted mean.

    Formula: Σ(value_i × weight_i) / Σ(weight_i)
    Returns Decimal("0") if all weights are zero.
    """
    if len(values) != len(weights):
        raise ValueError("values and weights must have same length")

    total_weight = sum(weights, Decimal("0"))
    if total_weight == 0:
        return Decimal("0")

    numerator = sum((v * w for v, w in zip(values, weights)), Decimal("0"))
    return (numerator / total_weight).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def weights_sum_to_one(weights: Iterable[float], tolerance: float = 1e-6) -> Tuple[bool, float]:
    """Return (ok, total) for a weight collection."""
    total = float(sum(Decimal(str(w)) for w in weights))
    return abs(total - 1.0) <= tolerance, total


def band_for(value: float, bands: Sequence[Tuple[float, str]], default: str) -> str:
    """
    First label whose lower bound ``value`` reaches.

    ``bands`` is ordered from the highest threshold down.
    """
    for threshold, label in bands:
        if value >= threshold:
            return label
    return default
