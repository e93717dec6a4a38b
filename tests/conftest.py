"""
Pytest configuration and shared fixtures.

Provides fake collaborators (text client, stores, clock) and series builders
for unit and integration tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import pytest

from backend.storage import InMemoryAnomalyDetectionStore
from src.anomaly.schema import TimeSeriesPoint
from src.anomaly.store import AnomalyDetectionStore

BASE_TIME = datetime(2025, 2, 7, 10, 0, tzinfo=timezone.utc)


class FakeTextClient:
    """
    Text-completion double.

    Returns `output` (or raises `error`) and records every call made.
    """

    def __init__(self, output: str = '{"anomalies": []}', error: Optional[Exception] = None, delay: float = 0.0):
        self.output = output
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def generate_text(self, model_id: str, prompt: str, *, max_tokens: int, temperature: float) -> str:
        self.calls.append(
            {"model_id": model_id, "prompt": prompt, "max_tokens": max_tokens, "temperature": temperature}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


class FailingStore(AnomalyDetectionStore):
    async def create_anomaly_detection(self, record: Dict[str, Any]) -> Dict[str, Any]:
        raise ConnectionError("database unavailable")


def make_series(values: List[float], start: datetime = BASE_TIME, step: timedelta = timedelta(hours=1)) -> List[TimeSeriesPoint]:
    """Build an hourly series from raw values."""
    return [TimeSeriesPoint(timestamp=start + i * step, value=v) for i, v in enumerate(values)]


def make_raw_series(values: List[float], start: datetime = BASE_TIME) -> List[Dict[str, Any]]:
    """Same as make_series but as plain dicts, the shape HTTP callers send."""
    return [
        {"timestamp": (start + timedelta(hours=i)).isoformat(), "value": v}
        for i, v in enumerate(values)
    ]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: end-to-end pipeline tests")


@pytest.fixture
def fixed_now() -> datetime:
    return BASE_TIME + timedelta(days=30)


@pytest.fixture
def fixed_clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def fake_text_client() -> FakeTextClient:
    return FakeTextClient()


@pytest.fixture
def memory_store() -> InMemoryAnomalyDetectionStore:
    return InMemoryAnomalyDetectionStore()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def flat_series() -> List[TimeSeriesPoint]:
    """30 points with small alternating noise around 10."""
    return make_series([10.0 + (0.1 if i % 2 else -0.1) for i in range(30)])


@pytest.fixture
def spike_series() -> List[TimeSeriesPoint]:
    """29 ones followed by a single spike; global z of the spike is sqrt(29)."""
    return make_series([1.0] * 29 + [100.0])


@pytest.fixture
def seasonal_values() -> List[float]:
    """Four seasons of a period-12 pattern with one injected deviation."""
    pattern = [10, 12, 15, 20, 24, 26, 25, 21, 16, 13, 11, 10]
    values = [float(v) for v in pattern * 4]
    values[30] += 15.0
    return values


@pytest.fixture
def sample_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "timestamp": pd.date_range("2025-02-07T10:00:00Z", periods=6, freq="h"),
            "value": [1.0, 2.0, None, 4.0, 5.0, 6.0],
            "region": ["eu", "eu", "eu", "us", "us", "us"],
        }
    )


@pytest.fixture
def series_factory():
    return make_series


@pytest.fixture
def raw_series_factory():
    return make_raw_series


@pytest.fixture
def text_client_factory():
    return FakeTextClient
