"""
Unit tests for detection configuration persistence.
"""

import pytest

from backend.storage import InMemoryAnomalyDetectionStore
from src.anomaly.engine import AnomalyDetectionService
from src.anomaly.schema import DetectionConfig
from src.core.exceptions import ConfigurationError, StorageError


@pytest.mark.asyncio
async def test_in_memory_store_assigns_id_and_created_at(memory_store):
    row = await memory_store.create_anomaly_detection(
        {"user_id": "u1", "name": "cpu", "data_source": "metrics", "threshold_config": {"method": "zscore"}}
    )

    assert row["id"]
    assert row["created_at"]
    assert row["threshold_config"] == {"method": "zscore"}
    assert len(memory_store.records) == 1


@pytest.mark.asyncio
async def test_in_memory_store_rejects_incomplete_records(memory_store):
    with pytest.raises(StorageError):
        await memory_store.create_anomaly_detection({"user_id": "u1"})


@pytest.mark.asyncio
async def test_records_are_copies(memory_store):
    config = {"method": "iqr"}
    await memory_store.create_anomaly_detection(
        {"user_id": "u1", "name": "n", "data_source": "s", "threshold_config": config}
    )
    config["method"] = "zscore"
    memory_store.records[0]["name"] = "changed"

    assert memory_store.records[0]["threshold_config"] == {"method": "iqr"}
    assert memory_store.records[0]["name"] == "n"


@pytest.mark.asyncio
async def test_save_config_round_trip(memory_store):
    service = AnomalyDetectionService(store=memory_store)

    saved = await service.save_anomaly_detection_config(
        "user-1", "Checkout latency", "prometheus", {"method": "iqr", "threshold": 1.5}
    )

    assert isinstance(saved, DetectionConfig)
    assert saved.id is not None
    assert saved.created_at is not None
    assert saved.threshold_config["method"] == "iqr"
    assert saved.threshold_config["threshold"] == 1.5
    assert "window_size" not in saved.threshold_config

    stored = memory_store.records[0]
    assert set(stored) == {"id", "user_id", "name", "data_source", "threshold_config", "created_at"}


@pytest.mark.asyncio
async def test_save_config_validates_options_first(memory_store):
    service = AnomalyDetectionService(store=memory_store)

    with pytest.raises(ConfigurationError):
        await service.save_anomaly_detection_config("u", "n", "s", {"method": "prophet"})
    assert memory_store.records == []


@pytest.mark.asyncio
async def test_save_config_rejects_blank_user(memory_store):
    service = AnomalyDetectionService(store=memory_store)

    with pytest.raises(ConfigurationError):
        await service.save_anomaly_detection_config("", "n", "s", None)


@pytest.mark.asyncio
async def test_store_failure_raises_storage_error(failing_store):
    service = AnomalyDetectionService(store=failing_store)

    with pytest.raises(StorageError, match="database unavailable"):
        await service.save_anomaly_detection_config("u", "n", "s", {})


@pytest.mark.asyncio
async def test_missing_store_raises_storage_error():
    with pytest.raises(StorageError):
        await AnomalyDetectionService().save_anomaly_detection_config("u", "n", "s", {})
