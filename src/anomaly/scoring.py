"""
Scoring, severity mapping, explanations, confidence and recommendations.

Turns raw strategy scores into the categorical and textual parts of a
detection result. Every cutoff comes from configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from src.core.config import (
    ConfidenceConfig,
    RecommendationConfig,
    SensitivityConfig,
    SeverityThresholds,
)

from .baselines import BaselineStats
from .detectors import PointScore
from .schema import AnomalySeverity, DetectedAnomaly, DetectionSummary, Sensitivity


@dataclass
class SeverityMapper:
    """
    Maps anomaly scores to severity levels.

    Severity depends on the score only, never on the method or threshold.
    """

    thresholds: SeverityThresholds

    def severity(self, score: float) -> AnomalySeverity:
        if score >= self.thresholds.critical:
            return AnomalySeverity.CRITICAL
        if score >= self.thresholds.high:
            return AnomalySeverity.HIGH
        if score >= self.thresholds.medium:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW


def sensitivity_multiplier(sensitivity: Sensitivity, settings: SensitivityConfig) -> float:
    return getattr(settings, Sensitivity(sensitivity).value)


def merge_scores(primary: Sequence[PointScore], secondary: Sequence[PointScore]) -> List[PointScore]:
    """
    Union two per-point score lists: flag if either flags, keep the larger score.

    Positions missing from `secondary` keep the primary outcome.
    """

    merged: List[PointScore] = []
    for i, point in enumerate(primary):
        other = secondary[i] if i < len(secondary) else None
        if other is None:
            merged.append(point)
            continue
        merged.append(
            PointScore(
                index=point.index,
                score=max(point.score, other.score),
                is_anomaly=point.is_anomaly or other.is_anomaly,
                explanation=point.explanation,
                metadata={**point.metadata, "seasonal_score": other.score},
            )
        )
    return merged


def explain(score: float, value: float, stats: Optional[BaselineStats]) -> str:
    """
    Human-readable explanation relative to the whole-series mean/std.
    """

    if stats is not None:
        if value > stats.mean + 2 * stats.std:
            return (
                f"Value {value:.2f} is significantly higher than expected "
                f"({value - stats.mean:.2f} above mean)"
            )
        if value < stats.mean - 2 * stats.std:
            return (
                f"Value {value:.2f} is significantly lower than expected "
                f"({stats.mean - value:.2f} below mean)"
            )
    return f"Value {value:.2f} shows unusual pattern (anomaly score: {score:.2f})"


def compute_confidence(
    method: str, anomaly_count: int, total_points: int, settings: ConfidenceConfig
) -> float:
    """
    Base confidence for the method, scaled down when the anomaly rate looks
    like noise (too high) or under-detection (too low). Capped at 1.0.
    """

    base = settings.method_confidence.get(method, settings.default_confidence)
    rate = anomaly_count / total_points if total_points else 0.0

    factor = 1.0
    if rate > settings.high_rate:
        factor = settings.high_rate_factor
    elif rate < settings.low_rate:
        factor = settings.low_rate_factor

    return min(base * factor, 1.0)


def severity_distribution(anomalies: Sequence[DetectedAnomaly]) -> Dict[AnomalySeverity, int]:
    distribution: Dict[AnomalySeverity, int] = {}
    for anomaly in anomalies:
        severity = anomaly.result.severity
        distribution[severity] = distribution.get(severity, 0) + 1
    return distribution


def build_recommendations(
    anomalies: Sequence[DetectedAnomaly],
    summary: DetectionSummary,
    now: datetime,
    settings: RecommendationConfig,
) -> List[str]:
    """
    Actionable recommendations. All applicable rules fire, in a fixed order.
    """

    if summary.total_anomalies == 0:
        return ["No anomalies detected. Data appears normal."]

    recommendations: List[str] = []
    distribution = summary.severity_distribution

    if summary.anomaly_rate > settings.high_rate_percent:
        recommendations.append(
            "High anomaly rate detected. Consider reviewing data quality or adjusting detection sensitivity."
        )

    if distribution.get(AnomalySeverity.CRITICAL, 0) > 0:
        recommendations.append("Critical anomalies found. Immediate investigation recommended.")

    if distribution.get(AnomalySeverity.HIGH, 0) > settings.high_severity_count:
        recommendations.append(
            "Multiple high-severity anomalies detected. Review underlying processes."
        )

    window = timedelta(days=settings.recent_days)
    recent = sum(1 for a in anomalies if now - a.timestamp < window)
    if recent > len(anomalies) * settings.recent_share:
        recommendations.append(
            "Anomalies are concentrated in recent time period. Monitor current conditions closely."
        )

    if summary.confidence < settings.min_confidence:
        recommendations.append(
            "Detection confidence is moderate. Consider using multiple detection methods for validation."
        )

    return recommendations
