"""
Storage adapters for detection configurations.

InMemoryAnomalyDetectionStore keeps records for the lifetime of the process;
it backs the HTTP server and the tests. Production deployments inject their
own AnomalyDetectionStore implementation.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import uuid4

from src.anomaly.store import AnomalyDetectionStore
from src.core.exceptions import StorageError

REQUIRED_FIELDS = ("user_id", "name", "data_source", "threshold_config")


class InMemoryAnomalyDetectionStore(AnomalyDetectionStore):
    """
    Process-local store mirroring an anomaly_detections table row:
    id, user_id, name, data_source, threshold_config, created_at.
    """

    def __init__(self) -> None:
        self._records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    async def create_anomaly_detection(self, record: Dict[str, Any]) -> Dict[str, Any]:
        missing = [f for f in REQUIRED_FIELDS if f not in record]
        if missing:
            raise StorageError(f"Missing fields for anomaly detection record: {', '.join(missing)}")

        row = {
            "id": str(uuid4()),
            **copy.deepcopy(record),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            self._records.append(row)
        return copy.deepcopy(row)

    @property
    def records(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._records)
