"""
Detection strategies for numeric time series.

Implements explainable methods that all share one interface,
`score(values) -> List[PointScore]`, returning exactly one entry per input
position in input order:
- Z-score (global or trailing rolling window)
- IQR (Tukey fences)
- Local-density scoring (isolation-forest-style approximation)
- Seasonal-residual decomposition
"""

from __future__ import annotations

from dataclasses import dataclass, field
from math import floor
from typing import Any, Dict, List, Optional, Sequence

from .baselines import RollingStatsEstimator, deviation_score, describe, quantile


@dataclass
class PointScore:
    """
    Raw strategy output for one position of the input series.
    """

    index: int
    score: float
    is_anomaly: bool
    explanation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ZScoreDetector:
    """
    Z-score detector.

    Global mode scores every point against the mean/std of the whole series.
    Rolling mode (window_size > 0) scores each point against the trailing
    window ending at that point, inclusive; windows holding fewer than
    min_points values score 0 and never flag.
    """

    threshold: float
    window_size: Optional[int] = None
    min_points: int = 3

    @property
    def rolling(self) -> bool:
        return bool(self.window_size) and self.window_size > 0

    def score(self, values: Sequence[float]) -> List[PointScore]:
        if self.rolling:
            return self._score_rolling(values)
        return self._score_global(values)

    def score_last(self, values: Sequence[float]) -> PointScore:
        """
        Score only the final position, touching at most window_size values.
        """

        if not values:
            raise ValueError("score_last requires at least one value")
        index = len(values) - 1
        if self.rolling:
            window = values[-self.window_size :]
            stats = describe(window, method="rolling") if len(window) >= self.min_points else None
        else:
            stats = describe(values)
        return self._point(index, values[index], deviation_score(values[index], stats))

    def _score_global(self, values: Sequence[float]) -> List[PointScore]:
        stats = describe(values)
        return [self._point(i, v, deviation_score(v, stats)) for i, v in enumerate(values)]

    def _score_rolling(self, values: Sequence[float]) -> List[PointScore]:
        estimator = RollingStatsEstimator(window_size=self.window_size, min_points=self.min_points)
        results: List[PointScore] = []
        for i, value in enumerate(values):
            estimator.update(value)
            results.append(self._point(i, value, deviation_score(value, estimator.peek())))
        return results

    def _point(self, index: int, value: float, score: float) -> PointScore:
        return PointScore(index=index, score=score, is_anomaly=score > self.threshold)


@dataclass
class IQRDetector:
    """
    Tukey-fence detector over the whole series.

    A point outside [Q1 - m*IQR, Q3 + m*IQR] scores the larger of its
    distances to the two fences, in IQR units. A zero IQR flags nothing.
    """

    multiplier: float

    def fences(self, values: Sequence[float]) -> tuple[float, float, float]:
        q1 = quantile(values, 0.25)
        q3 = quantile(values, 0.75)
        iqr = q3 - q1
        return q1 - self.multiplier * iqr, q3 + self.multiplier * iqr, iqr

    def score(self, values: Sequence[float]) -> List[PointScore]:
        if not values:
            return []
        lower, upper, iqr = self.fences(values)
        if iqr <= 0:
            return [PointScore(index=i, score=0.0, is_anomaly=False) for i in range(len(values))]

        results: List[PointScore] = []
        for i, value in enumerate(values):
            outside = value < lower or value > upper
            score = max(abs(value - upper), abs(value - lower)) / iqr if outside else 0.0
            results.append(PointScore(index=i, score=score, is_anomaly=outside))
        return results

    def score_last(self, values: Sequence[float]) -> PointScore:
        if not values:
            raise ValueError("score_last requires at least one value")
        return self.score(values)[-1]


@dataclass
class LocalDensityDetector:
    """
    Isolation-forest-style scoring.

    This is an approximation, not an isolation forest: each point is scored
    by its deviation from a symmetric neighbourhood of `radius` points on each
    side, and the top `contamination` fraction (by rank) is flagged. Scores
    are neighbourhood z-scores, not path-length based isolation scores.
    """

    contamination: float
    radius: int = 5

    def score(self, values: Sequence[float]) -> List[PointScore]:
        n = len(values)
        if n == 0:
            return []

        scores: List[float] = []
        for i, value in enumerate(values):
            neighborhood = values[max(0, i - self.radius) : i + self.radius + 1]
            scores.append(deviation_score(value, describe(neighborhood, method="neighborhood")))

        ranked = sorted(scores, reverse=True)
        rank = floor(n * self.contamination)
        cutoff = ranked[rank] if rank < n else 0.0

        return [
            PointScore(index=i, score=s, is_anomaly=s >= cutoff, metadata={"cutoff": cutoff})
            for i, s in enumerate(scores)
        ]


@dataclass
class SeasonalDecomposition:
    seasonal: List[float]
    trend: List[float]
    residual: List[float]


@dataclass
class SeasonalResidualDetector:
    """
    Seasonal-residual detector.

    Splits the series into a seasonal mean per phase, a centred moving-average
    trend and a residual, then runs global z-score detection on the residual.
    Series shorter than two full seasons are scored with plain global z-score.
    """

    threshold: float
    season_length: int = 12

    def decompose(self, values: Sequence[float]) -> SeasonalDecomposition:
        n = len(values)
        half = self.season_length // 2

        phase_means: Dict[int, float] = {}
        for phase in range(min(self.season_length, n)):
            members = values[phase :: self.season_length]
            phase_means[phase] = sum(members) / len(members)

        seasonal: List[float] = []
        trend: List[float] = []
        residual: List[float] = []
        for i, value in enumerate(values):
            window = values[max(0, i - half) : min(n, i + half + 1)]
            s = phase_means[i % self.season_length]
            t = sum(window) / len(window)
            seasonal.append(s)
            trend.append(t)
            residual.append(value - s - t)
        return SeasonalDecomposition(seasonal=seasonal, trend=trend, residual=residual)

    def score(self, values: Sequence[float]) -> List[PointScore]:
        detector = ZScoreDetector(threshold=self.threshold)
        if len(values) < 2 * self.season_length:
            return detector.score(values)
        return detector.score(self.decompose(values).residual)
