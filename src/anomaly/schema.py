"""
Schema definitions for time-series anomaly detection.

All detection outputs are transient and explainable. Each anomaly references
its position in the input series, the observed value and the score that
flagged it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DetectionMethod(str, Enum):
    """Detection strategies. LSTM is reserved and not implemented."""

    ZSCORE = "zscore"
    IQR = "iqr"
    ISOLATION_FOREST = "isolation_forest"
    LSTM = "lstm"
    AI_DETECTION = "ai_detection"


class Sensitivity(str, Enum):
    """Caller-facing knob scaling the effective threshold."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimeSeriesPoint(BaseModel):
    """
    A single observation of a time series.

    Fields:
    - timestamp: observation time (naive values are treated as UTC)
    - value: finite numeric value
    - metadata: free-form context carried along with the point
    """

    model_config = ConfigDict(allow_inf_nan=False)

    timestamp: datetime
    value: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class DetectionOptions(BaseModel):
    """
    Options for a detection run.

    Fields:
    - method: detection strategy
    - threshold: sigma multiple (zscore) or fence multiplier (iqr)
    - window_size: trailing window for rolling z-score; global stats when unset
    - sensitivity: scales threshold by the configured multiplier
    - seasonal_adjustment: also run seasonal-residual detection and merge flags
    - min_anomaly_score: score floor for reported anomalies; contamination
      for isolation_forest
    - season_length: period for the seasonal decomposition (config default when unset)
    - context: free text forwarded to the AI prompt
    """

    model_config = ConfigDict(extra="forbid")

    method: DetectionMethod = DetectionMethod.ZSCORE
    threshold: float = 3.0
    window_size: Optional[int] = Field(None, gt=0)
    sensitivity: Sensitivity = Sensitivity.MEDIUM
    seasonal_adjustment: bool = False
    min_anomaly_score: float = Field(0.5, ge=0.0)
    season_length: Optional[int] = Field(None, ge=2)
    context: Optional[str] = None


class AnomalyResult(BaseModel):
    """
    Per-point detection outcome.

    Severity is derived from score alone, never from method or threshold.
    """

    is_anomaly: bool
    score: float = Field(ge=0.0)
    severity: AnomalySeverity
    explanation: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DetectedAnomaly(BaseModel):
    """
    An anomalous point, addressed by its 0-based position in the input series.
    """

    index: int = Field(ge=0)
    timestamp: datetime
    value: float
    result: AnomalyResult


class DetectionSummary(BaseModel):
    """
    Run-level statistics.

    Fields:
    - total_anomalies: number of reported anomalies
    - anomaly_rate: percentage of the full input length
    - severity_distribution: count per severity (only severities that occur)
    - method_used: requested method, or "error" for degraded batch results
    - confidence: [0.0, 1.0]
    """

    total_anomalies: int = Field(ge=0)
    anomaly_rate: float = Field(ge=0.0, le=100.0)
    severity_distribution: Dict[AnomalySeverity, int] = Field(default_factory=dict)
    method_used: str
    confidence: float = Field(ge=0.0, le=1.0)


class AnomalyDetectionResult(BaseModel):
    anomalies: List[DetectedAnomaly] = Field(default_factory=list)
    summary: DetectionSummary
    recommendations: List[str] = Field(default_factory=list)


class DetectionConfig(BaseModel):
    """
    Persisted, named detection configuration.

    Created once through the storage adapter and never altered here.
    """

    id: Optional[str] = None
    user_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    data_source: str
    threshold_config: Dict[str, Any]
    created_at: Optional[datetime] = None


class BatchDataset(BaseModel):
    """Options that do not validate are kept raw and rejected by the detection run."""

    id: str
    data: List[TimeSeriesPoint]
    options: Optional[Union[DetectionOptions, Dict[str, Any]]] = Field(None, union_mode="left_to_right")

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class BatchResult(BaseModel):
    id: str
    result: AnomalyDetectionResult


class Alert(BaseModel):
    id: str
    timestamp: datetime
    severity: AnomalySeverity
    message: str
    value: float
    score: float


class AnomalyTrend(BaseModel):
    """
    Comparison of the two most recent detection runs.

    Fields:
    - increasing: True when the anomaly rate went up
    - anomaly_rate_change: recent rate minus previous rate (percentage points)
    - severity_trends: recent count minus previous count per severity
    - time_window: label supplied by the caller
    """

    increasing: bool = False
    anomaly_rate_change: float = 0.0
    severity_trends: Dict[AnomalySeverity, int] = Field(default_factory=dict)
    time_window: str = "week"


class FilterCriteria(BaseModel):
    """
    Criteria for filter_anomalies. Unset criteria are ignored; set ones are ANDed.

    time_range bounds are inclusive.
    """

    severity: Optional[Set[AnomalySeverity]] = None
    time_range: Optional[Tuple[datetime, datetime]] = None
    min_score: Optional[float] = None

    @field_validator("time_range")
    @classmethod
    def _time_range_utc(
        cls, value: Optional[Tuple[datetime, datetime]]
    ) -> Optional[Tuple[datetime, datetime]]:
        if value is None:
            return None
        return _as_utc(value[0]), _as_utc(value[1])

    @model_validator(mode="after")
    def _check_range_order(self) -> "FilterCriteria":
        if self.time_range is not None and self.time_range[0] > self.time_range[1]:
            raise ValueError("time_range start must not be after end")
        return self
