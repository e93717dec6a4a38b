"""
Application configuration for the time-series anomaly detection service.

Provides environment-aware settings with the documented detection defaults.
Every cutoff used by the strategies, the severity mapper, the confidence
model and the recommendation rules lives here instead of in the code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SensitivityConfig(BaseModel):
	"""
	Threshold multipliers per sensitivity level.

	Higher sensitivity means a lower effective threshold, so more points get flagged.
	"""

	low: float = Field(1.5, gt=0.0)
	medium: float = Field(1.0, gt=0.0)
	high: float = Field(0.7, gt=0.0)


class SeverityThresholds(BaseModel):
	"""
	Score cutoffs for severity buckets.

	Anything below `medium` is reported as low severity.
	"""

	medium: float = Field(2.0, ge=0.0)
	high: float = Field(3.0, ge=0.0)
	critical: float = Field(5.0, ge=0.0)


class StrategyConfig(BaseModel):
	"""
	Tunables shared by the statistical strategies.

	Notes:
	- min_window_points: rolling windows smaller than this never flag.
	- season_length: period used by the seasonal-residual decomposition.
	- neighborhood_radius: points on each side for the local-density score.
	"""

	min_window_points: int = Field(3, ge=2)
	season_length: int = Field(12, ge=2)
	neighborhood_radius: int = Field(5, ge=1)


class AIDetectionConfig(BaseModel):
	"""
	Settings for the text-completion backed strategy.
	"""

	model_id: str = Field("gpt-3.5-turbo", description="Model identifier passed to the client")
	max_points: int = Field(50, ge=1, description="Most recent values included in the prompt")
	max_tokens: int = Field(500, ge=16)
	temperature: float = Field(0.2, ge=0.0, le=2.0)
	anomaly_score_threshold: float = Field(0.7, ge=0.0, le=1.0)
	fallback_threshold: float = Field(2.5, gt=0.0)
	timeout_seconds: float = Field(30.0, gt=0.0)


class ConfidenceConfig(BaseModel):
	"""
	Confidence model: base value per method scaled by an anomaly-rate factor.

	Rates are fractions (0.2 == 20%).
	"""

	method_confidence: Dict[str, float] = Field(
		default_factory=lambda: {
			"zscore": 0.8,
			"iqr": 0.75,
			"isolation_forest": 0.85,
			"ai_detection": 0.9,
		}
	)
	default_confidence: float = Field(0.7, ge=0.0, le=1.0)
	high_rate: float = Field(0.2, ge=0.0, le=1.0)
	high_rate_factor: float = Field(0.8, ge=0.0, le=1.0)
	low_rate: float = Field(0.01, ge=0.0, le=1.0)
	low_rate_factor: float = Field(0.9, ge=0.0, le=1.0)


class RecommendationConfig(BaseModel):
	"""
	Limits used by the recommendation rules.
	"""

	high_rate_percent: float = Field(20.0, ge=0.0, le=100.0)
	high_severity_count: int = Field(3, ge=0)
	recent_days: int = Field(7, ge=1)
	recent_share: float = Field(0.5, ge=0.0, le=1.0)
	min_confidence: float = Field(0.7, ge=0.0, le=1.0)


class RealtimeConfig(BaseModel):
	window_size: int = Field(50, ge=1)


class BatchConfig(BaseModel):
	max_concurrency: int = Field(4, ge=1)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested sections can be overridden with a double underscore, for example
	TSAD_AI__TIMEOUT_SECONDS=10.
	"""

	model_config = SettingsConfigDict(
		env_prefix="TSAD_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")

	sensitivity: SensitivityConfig = SensitivityConfig()
	severity: SeverityThresholds = SeverityThresholds()
	strategies: StrategyConfig = StrategyConfig()
	ai: AIDetectionConfig = AIDetectionConfig()
	confidence: ConfidenceConfig = ConfidenceConfig()
	recommendations: RecommendationConfig = RecommendationConfig()
	realtime: RealtimeConfig = RealtimeConfig()
	batch: BatchConfig = BatchConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
