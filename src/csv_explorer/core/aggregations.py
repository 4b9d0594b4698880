import math
from typing import List, Sequence

from csv_explorer.models import Aggregation, HistogramBin


def quantile(sorted_values: Sequence[float], q: float) -> float:
    """Linear interpolation between order statistics. Input must already be sorted."""
    if not sorted_values:
        return 0.0
    pos = (len(sorted_values) - 1) * q
    base = math.floor(pos)
    rest = pos - base
    nxt = sorted_values[base + 1] if base + 1 < len(sorted_values) else sorted_values[base]
    return sorted_values[base] + rest * (nxt - sorted_values[base])


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def variance(values: Sequence[float]) -> float:
    """Population variance (denominator n)."""
    if not values:
        return 0.0
    avg = mean(values)
    return sum((value - avg) ** 2 for value in values) / len(values)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return quantile(sorted(values), 0.5)


def aggregate(values: Sequence[float], kind: Aggregation) -> float:
    kind = Aggregation(kind)
    if kind is Aggregation.COUNT:
        return len(values)
    if not values:
        return 0.0

    if kind is Aggregation.SUM:
        return sum(values)
    if kind is Aggregation.AVG:
        return mean(values)
    if kind is Aggregation.MIN:
        return min(values)
    if kind is Aggregation.MAX:
        return max(values)
    return 0.0


def histogram(values: Sequence[float], bins: int = 12) -> List[HistogramBin]:
    """
    Equal-width bins over [min, max].

    The last bin's upper edge is pinned to max so floating point drift never
    leaves the maximum outside the final bin. When every value is equal a
    single bin holds the full count.
    """
    if not values:
        return []
    low = min(values)
    high = max(values)

    if low == high:
        return [HistogramBin(bin_start=low, bin_end=high, count=len(values))]

    size = (high - low) / bins
    counts = [0] * bins
    for value in values:
        index = math.floor((value - low) / size)
        counts[min(bins - 1, max(0, index))] += 1

    return [
        HistogramBin(
            bin_start=low + index * size,
            bin_end=high if index == bins - 1 else low + (index + 1) * size,
            count=count,
        )
        for index, count in enumerate(counts)
    ]
