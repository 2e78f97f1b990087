"""
Robust statistics over crowd quote prices.

The fair band is [p25, p75] around the median. Quantiles interpolate
linearly between order statistics at index (n - 1) * q, so the published
band boundaries are reproducible from the raw quote log.
"""

import math
from dataclasses import dataclass

MIN_BAND_SAMPLES = 5


@dataclass(frozen=True)
class Band:
    """Median and interquartile band of a price sample."""
    median: float
    p25: float
    p75: float


def median(values: list[float]) -> float:
    if not values:
        raise ValueError("median of empty sample")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def quantile(values: list[float], q: float) -> float:
    if not values:
        raise ValueError("quantile of empty sample")
    ordered = sorted(values)
    position = (len(ordered) - 1) * q
    lower = math.floor(position)
    upper = math.ceil(position)
    fraction = position - lower
    return ordered[lower] + fraction * (ordered[upper] - ordered[lower])


def band(values: list[float], minimum: int = MIN_BAND_SAMPLES) -> Band | None:
    """
    Compute the fair band, or None when the sample is too small to trust.

    Args:
        values: Quote prices, in any order
        minimum: Smallest sample size that yields a band

    Returns:
        Band with median, p25 and p75, or None below `minimum`
    """
    if len(values) < max(minimum, 1):
        return None
    return Band(
        median=median(values),
        p25=quantile(values, 0.25),
        p75=quantile(values, 0.75),
    )
