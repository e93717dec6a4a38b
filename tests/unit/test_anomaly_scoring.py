"""
Unit tests for severity mapping, explanations, confidence and recommendations.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.anomaly.baselines import describe
from src.anomaly.detectors import PointScore
from src.anomaly.schema import (
    AnomalyResult,
    AnomalySeverity,
    DetectedAnomaly,
    DetectionSummary,
    Sensitivity,
)
from src.anomaly.scoring import (
    SeverityMapper,
    build_recommendations,
    compute_confidence,
    explain,
    merge_scores,
    sensitivity_multiplier,
    severity_distribution,
)
from src.core.config import ConfidenceConfig, RecommendationConfig, SensitivityConfig, SeverityThresholds

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _anomaly(index: int, severity: AnomalySeverity, timestamp: datetime = NOW - timedelta(days=30)) -> DetectedAnomaly:
    return DetectedAnomaly(
        index=index,
        timestamp=timestamp,
        value=1.0,
        result=AnomalyResult(is_anomaly=True, score=1.0, severity=severity, explanation="x"),
    )


def _summary(anomalies, rate: float = 5.0, confidence: float = 0.8) -> DetectionSummary:
    return DetectionSummary(
        total_anomalies=len(anomalies),
        anomaly_rate=rate,
        severity_distribution=severity_distribution(anomalies),
        method_used="zscore",
        confidence=confidence,
    )


@pytest.mark.parametrize(
    "score,expected",
    [
        (0.0, AnomalySeverity.LOW),
        (1.99, AnomalySeverity.LOW),
        (2.0, AnomalySeverity.MEDIUM),
        (3.0, AnomalySeverity.HIGH),
        (4.99, AnomalySeverity.HIGH),
        (5.0, AnomalySeverity.CRITICAL),
        (42.0, AnomalySeverity.CRITICAL),
    ],
)
def test_severity_mapping(score, expected):
    assert SeverityMapper(SeverityThresholds()).severity(score) is expected


def test_sensitivity_multipliers():
    settings = SensitivityConfig()
    assert sensitivity_multiplier(Sensitivity.LOW, settings) == 1.5
    assert sensitivity_multiplier(Sensitivity.MEDIUM, settings) == 1.0
    assert sensitivity_multiplier(Sensitivity.HIGH, settings) == 0.7


def test_merge_scores_ors_flags_and_keeps_max():
    primary = [PointScore(0, 1.0, False), PointScore(1, 4.0, True)]
    secondary = [PointScore(0, 3.5, True), PointScore(1, 0.5, False)]

    merged = merge_scores(primary, secondary)

    assert [m.is_anomaly for m in merged] == [True, True]
    assert [m.score for m in merged] == [3.5, 4.0]
    assert merged[0].metadata["seasonal_score"] == 3.5


class TestExplain:
    """Explanation text relative to the whole-series statistics."""

    def test_high_value(self):
        stats = describe([1.0] * 29 + [100.0])
        text = explain(5.39, 100.0, stats)
        assert text.startswith("Value 100.00 is significantly higher than expected")
        assert "above mean" in text

    def test_low_value(self):
        stats = describe([100.0] * 29 + [1.0])
        assert "significantly lower than expected" in explain(5.39, 1.0, stats)

    def test_unusual_pattern(self):
        stats = describe([1.0, 2.0, 3.0])
        assert explain(1.234, 2.0, stats) == "Value 2.00 shows unusual pattern (anomaly score: 1.23)"


class TestConfidence:
    """Base confidence scaled by anomaly rate."""

    def test_normal_rate_keeps_base(self):
        assert compute_confidence("iqr", 5, 100, ConfidenceConfig()) == pytest.approx(0.75)

    def test_high_rate_scales_down(self):
        assert compute_confidence("zscore", 30, 100, ConfidenceConfig()) == pytest.approx(0.64)

    def test_low_rate_scales_down(self):
        assert compute_confidence("ai_detection", 0, 100, ConfidenceConfig()) == pytest.approx(0.81)

    def test_unknown_method_uses_default(self):
        assert compute_confidence("lstm", 5, 100, ConfidenceConfig()) == pytest.approx(0.7)

    def test_empty_input_counts_as_low_rate(self):
        assert compute_confidence("isolation_forest", 0, 0, ConfidenceConfig()) == pytest.approx(0.765)


class TestRecommendations:
    """Recommendation rules and their order."""

    def test_no_anomalies(self):
        recs = build_recommendations([], _summary([], rate=0.0), NOW, RecommendationConfig())
        assert recs == ["No anomalies detected. Data appears normal."]

    def test_all_rules_fire_in_order(self):
        anomalies = [_anomaly(0, AnomalySeverity.CRITICAL, NOW - timedelta(days=1))] + [
            _anomaly(i, AnomalySeverity.HIGH, NOW - timedelta(hours=i)) for i in range(1, 5)
        ]
        summary = _summary(anomalies, rate=25.0, confidence=0.6)

        recs = build_recommendations(anomalies, summary, NOW, RecommendationConfig())

        assert len(recs) == 5
        assert recs[0].startswith("High anomaly rate detected")
        assert recs[1].startswith("Critical anomalies found")
        assert recs[2].startswith("Multiple high-severity anomalies")
        assert recs[3].startswith("Anomalies are concentrated in recent time period")
        assert recs[4].startswith("Detection confidence is moderate")

    def test_three_high_anomalies_do_not_trigger_review(self):
        anomalies = [_anomaly(i, AnomalySeverity.HIGH) for i in range(3)]
        recs = build_recommendations(anomalies, _summary(anomalies), NOW, RecommendationConfig())
        assert recs == []

    def test_recent_rule_needs_more_than_half(self):
        anomalies = [
            _anomaly(0, AnomalySeverity.LOW, NOW - timedelta(days=1)),
            _anomaly(1, AnomalySeverity.LOW, NOW - timedelta(days=10)),
        ]
        recs = build_recommendations(anomalies, _summary(anomalies), NOW, RecommendationConfig())
        assert not any("recent time period" in r for r in recs)
