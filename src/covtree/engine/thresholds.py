"""Coverage tiers for color coding."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction

# Ratios are compared as fractions; thresholds like 0.8 are snapped to the
# nearest fraction with a small denominator so 80/100 lands exactly on it.
_MAX_DENOMINATOR = 10**6


class Tier(Enum):
    """Coarse coverage bucket."""

    UNRATED = "unrated"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Thresholds:
    """Cut points between tiers, as ratios in ``[0, 1]``.

    A ratio below ``low`` is LOW, below ``high`` is MEDIUM, anything else HIGH.
    """

    low: float = 0.5
    high: float = 0.8

    def __post_init__(self) -> None:
        if not 0.0 <= self.low <= self.high <= 1.0:
            raise ValueError(
                f"Thresholds must satisfy 0 <= low <= high <= 1 (got low={self.low}, "
                f"high={self.high})"
            )


DEFAULT_THRESHOLDS = Thresholds()


def _as_fraction(value: float) -> Fraction:
    return Fraction(value).limit_denominator(_MAX_DENOMINATOR)


def classify(covered: int, total: int, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Tier:
    """Map ``covered / total`` to a tier; ``UNRATED`` when there is nothing to cover."""
    if total == 0:
        return Tier.UNRATED
    ratio = Fraction(covered, total)
    if ratio < _as_fraction(thresholds.low):
        return Tier.LOW
    if ratio < _as_fraction(thresholds.high):
        return Tier.MEDIUM
    return Tier.HIGH
