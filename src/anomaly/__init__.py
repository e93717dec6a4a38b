"""
Anomaly module: multi-method anomaly detection over numeric time series.

Implements statistical and AI-backed strategies, severity classification,
the detection service (batch, real-time, persistence) and result analytics.
"""

from .ai_detector import AIAnomalyDetector
from .analytics import calculate_anomaly_trends, filter_anomalies, generate_alerts
from .baselines import BaselineStats, RollingStatsEstimator, describe, quantile
from .detectors import (
	IQRDetector,
	LocalDensityDetector,
	PointScore,
	SeasonalResidualDetector,
	ZScoreDetector,
)
from .engine import AnomalyDetectionService
from .schema import (
	Alert,
	AnomalyDetectionResult,
	AnomalyResult,
	AnomalySeverity,
	AnomalyTrend,
	BatchDataset,
	BatchResult,
	DetectedAnomaly,
	DetectionConfig,
	DetectionMethod,
	DetectionOptions,
	DetectionSummary,
	FilterCriteria,
	Sensitivity,
	TimeSeriesPoint,
)
from .scoring import SeverityMapper, compute_confidence
from .store import AnomalyDetectionStore

__all__ = [
	"AnomalyDetectionService",
	"AnomalyDetectionStore",
	"AIAnomalyDetector",
	"ZScoreDetector",
	"IQRDetector",
	"LocalDensityDetector",
	"SeasonalResidualDetector",
	"PointScore",
	"BaselineStats",
	"RollingStatsEstimator",
	"describe",
	"quantile",
	"SeverityMapper",
	"compute_confidence",
	"generate_alerts",
	"calculate_anomaly_trends",
	"filter_anomalies",
	"TimeSeriesPoint",
	"DetectionMethod",
	"DetectionOptions",
	"Sensitivity",
	"AnomalySeverity",
	"AnomalyResult",
	"DetectedAnomaly",
	"DetectionSummary",
	"AnomalyDetectionResult",
	"DetectionConfig",
	"BatchDataset",
	"BatchResult",
	"Alert",
	"AnomalyTrend",
	"FilterCriteria",
]
