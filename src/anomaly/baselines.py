"""
Baseline statistics for anomaly scoring.

Provides whole-series statistics, a trailing rolling estimator and the
quantile rule used for IQR fences. Standard deviations are population
standard deviations throughout.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from math import ceil, sqrt
from typing import Deque, Optional, Sequence

from pydantic import BaseModel


class BaselineStats(BaseModel):
    """
    Baseline statistics for a window of values.

    Fields:
    - mean: central tendency
    - std: population standard deviation (may be 0)
    - count: number of points used
    - method: how the window was chosen ("global", "rolling", "neighborhood", ...)
    """

    mean: float
    std: float
    count: int
    method: str


def describe(values: Sequence[float], method: str = "global") -> Optional[BaselineStats]:
    """
    Mean and population standard deviation of `values`, or None when empty.
    """

    if not values:
        return None
    count = len(values)
    mean = sum(values) / count
    variance = sum((v - mean) ** 2 for v in values) / count
    return BaselineStats(mean=mean, std=sqrt(variance), count=count, method=method)


def deviation_score(value: float, stats: Optional[BaselineStats]) -> float:
    """
    |value - mean| / std, or 0 when there is no usable spread.
    """

    if stats is None or stats.std <= 0:
        return 0.0
    return abs(value - stats.mean) / stats.std


def quantile(values: Sequence[float], p: float) -> float:
    """
    Quantile by rank: idx = n * p.

    - p == 0 / p == 1 return the minimum / maximum
    - a fractional idx returns the value at rank ceil(idx)
    - an integral idx averages the two middle ranks on even-length input
    """

    if not values:
        raise ValueError("quantile requires at least one value")
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"quantile p must be in [0, 1], got {p}")

    ordered = sorted(values)
    n = len(ordered)
    if p == 1.0:
        return ordered[-1]
    if p == 0.0:
        return ordered[0]

    idx = n * p
    if idx % 1 != 0:
        return ordered[ceil(idx) - 1]
    idx = int(idx)
    if n % 2 == 0:
        return (ordered[idx - 1] + ordered[idx]) / 2
    return ordered[idx]


@dataclass
class RollingStatsEstimator:
    """
    Trailing-window mean/std estimator.

    Warm-up: returns None until min_points are collected, so short histories
    never produce a score.
    """

    window_size: int
    min_points: int = 3
    _values: Deque[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ValueError("window_size must be positive")
        self._values = deque(maxlen=self.window_size)

    def peek(self) -> Optional[BaselineStats]:
        if len(self._values) < self.min_points:
            return None
        return describe(list(self._values), method="rolling")

    def update(self, value: float) -> None:
        self._values.append(float(value))
