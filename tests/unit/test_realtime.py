"""
Unit tests for real-time detection of a single incoming point.
"""

from datetime import timedelta

import pytest

from src.anomaly.detectors import ZScoreDetector
from src.anomaly.engine import AnomalyDetectionService
from src.anomaly.schema import AnomalySeverity, TimeSeriesPoint


@pytest.fixture
def service():
    return AnomalyDetectionService()


def _next_point(history, value):
    return TimeSeriesPoint(timestamp=history[-1].timestamp + timedelta(hours=1), value=value)


def test_spike_after_stable_history(service, flat_series):
    point = _next_point(flat_series, 100.0)

    result = service.detect_realtime_anomaly(point, flat_series)

    assert result.is_anomaly
    assert result.severity is AnomalySeverity.CRITICAL
    assert result.metadata["method"] == "zscore"
    assert result.metadata["timestamp"] == point.timestamp
    assert result.metadata["context_size"] == 30


def test_scores_new_point_against_combined_series(service, series_factory):
    values = [float(v % 7) for v in range(60)] + [25.0]
    series = series_factory(values)

    result = service.detect_realtime_anomaly(series[-1], series[:-1], {"window_size": 10})
    expected = ZScoreDetector(threshold=3.0).score_last(values[-11:])

    assert result.score == pytest.approx(expected.score)
    assert result.is_anomaly == expected.is_anomaly
    assert result.metadata["context_size"] == 10


def test_single_history_point_is_scored(service, series_factory):
    series = series_factory([1.0, 50.0])
    result = service.detect_realtime_anomaly(series[-1], series[:-1])

    # mean 25.5, population std 24.5
    assert result.score == pytest.approx(1.0)
    assert not result.is_anomaly
    assert result.metadata["context_size"] == 1


def test_streaming_flags_match_batch_rolling_tail(service, series_factory):
    window = 20
    values = [9.9 if i % 2 else 10.1 for i in range(60)]
    values[40] = 100.0
    series = series_factory(values)

    batch = ZScoreDetector(threshold=3.0, window_size=window).score(values)
    streamed = [
        service.detect_realtime_anomaly(series[i], series[:i], {"window_size": window}).is_anomaly
        for i in range(window, len(series))
    ]

    assert streamed == [p.is_anomaly for p in batch[window:]]
    assert streamed.count(True) == 1


def test_iqr_method(service, series_factory):
    history = series_factory([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0])
    point = _next_point(history, 100.0)

    result = service.detect_realtime_anomaly(point, history, {"method": "iqr", "threshold": 1.5})

    assert result.is_anomaly
    assert result.score == pytest.approx(103.5 / 4.0)
    assert result.metadata["method"] == "iqr"


def test_no_sensitivity_scaling(service, flat_series):
    point = _next_point(flat_series, 10.35)

    medium = service.detect_realtime_anomaly(point, flat_series, {"threshold": 2.0})
    high = service.detect_realtime_anomaly(point, flat_series, {"threshold": 2.0, "sensitivity": "high"})

    assert medium.score == high.score
    assert medium.is_anomaly == high.is_anomaly


@pytest.mark.parametrize("method", ["isolation_forest", "lstm", "ai_detection", "prophet"])
def test_other_methods_use_zscore(service, flat_series, method):
    point = _next_point(flat_series, 100.0)

    result = service.detect_realtime_anomaly(point, flat_series, {"method": method})
    baseline = service.detect_realtime_anomaly(point, flat_series)

    assert result.score == baseline.score
    assert result.metadata["method"] == method


def test_accepts_plain_mappings(service, raw_series_factory):
    raw = raw_series_factory([5.0, 5.1, 4.9, 5.0, 5.05, 4.95, 60.0])
    result = service.detect_realtime_anomaly(raw[-1], raw[:-1])
    assert result.score > 0.0
