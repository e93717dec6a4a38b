"""
Analytics over detection results.

Pure functions: alert projection, run-over-run trends and criteria filtering.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Union

from .schema import (
    Alert,
    AnomalyDetectionResult,
    AnomalySeverity,
    AnomalyTrend,
    DetectedAnomaly,
    DetectionSummary,
    FilterCriteria,
)

ALERT_SEVERITIES = {AnomalySeverity.HIGH, AnomalySeverity.CRITICAL}


def generate_alerts(
    anomalies: Iterable[DetectedAnomaly], now: Optional[datetime] = None
) -> List[Alert]:
    """
    Project high and critical anomalies into alerts.

    Alert ids combine the series index with the generation time in epoch
    milliseconds, e.g. "anomaly_12_1707315045000".
    """

    now = now or datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)

    return [
        Alert(
            id=f"anomaly_{anomaly.index}_{stamp}",
            timestamp=anomaly.timestamp,
            severity=anomaly.result.severity,
            message=f"Anomaly detected: {anomaly.result.explanation}",
            value=anomaly.value,
            score=anomaly.result.score,
        )
        for anomaly in anomalies
        if anomaly.result.severity in ALERT_SEVERITIES
    ]


def calculate_anomaly_trends(
    results: Sequence[Union[AnomalyDetectionResult, DetectionSummary]],
    time_window: str = "week",
) -> AnomalyTrend:
    """
    Compare the two most recent runs. Fewer than two runs gives a neutral trend.
    """

    if len(results) < 2:
        return AnomalyTrend(time_window=time_window)

    recent = _summary(results[-1])
    previous = _summary(results[-2])

    rate_change = recent.anomaly_rate - previous.anomaly_rate
    severities = set(recent.severity_distribution) | set(previous.severity_distribution)
    severity_trends = {
        severity: recent.severity_distribution.get(severity, 0)
        - previous.severity_distribution.get(severity, 0)
        for severity in sorted(severities, key=list(AnomalySeverity).index)
    }

    return AnomalyTrend(
        increasing=rate_change > 0,
        anomaly_rate_change=rate_change,
        severity_trends=severity_trends,
        time_window=time_window,
    )


def filter_anomalies(
    anomalies: Iterable[DetectedAnomaly], criteria: FilterCriteria
) -> List[DetectedAnomaly]:
    """
    Keep anomalies matching every criterion that is set.
    """

    selected: List[DetectedAnomaly] = []
    for anomaly in anomalies:
        if criteria.severity is not None and anomaly.result.severity not in criteria.severity:
            continue
        if criteria.time_range is not None:
            start, end = criteria.time_range
            if anomaly.timestamp < start or anomaly.timestamp > end:
                continue
        if criteria.min_score is not None and anomaly.result.score < criteria.min_score:
            continue
        selected.append(anomaly)
    return selected


def _summary(result: Union[AnomalyDetectionResult, DetectionSummary]) -> DetectionSummary:
    if isinstance(result, AnomalyDetectionResult):
        return result.summary
    return result
