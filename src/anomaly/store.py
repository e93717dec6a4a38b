"""
AnomalyDetectionStore port - interface for persisting named detection configurations.

Implementations live outside the detection core (see backend.storage).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class AnomalyDetectionStore(ABC):
    """
    Abstract interface for detection configuration storage.

    Only creation is part of this contract; records are never read back,
    updated or deleted by the detection service.
    """

    @abstractmethod
    async def create_anomaly_detection(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist a configuration record.

        Args:
            record: Mapping with user_id, name, data_source and threshold_config

        Returns:
            The stored record, including any store-assigned fields (id, created_at)
        """
        ...
