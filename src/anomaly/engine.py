"""
Time-series anomaly detection engine.

Resolves options, dispatches to a strategy, layers seasonal adjustment,
classifies severity, and assembles results with summary statistics and
recommendations. Also hosts the real-time, batch and persistence entry points.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from llm.client import TextCompletionClient
from src.core.config import Config, config
from src.core.exceptions import ConfigurationError, DataValidationError, StorageError

from .ai_detector import AIAnomalyDetector
from .baselines import describe
from .detectors import (
    IQRDetector,
    LocalDensityDetector,
    PointScore,
    SeasonalResidualDetector,
    ZScoreDetector,
)
from .schema import (
    AnomalyDetectionResult,
    AnomalyResult,
    BatchDataset,
    BatchResult,
    DetectedAnomaly,
    DetectionConfig,
    DetectionMethod,
    DetectionOptions,
    DetectionSummary,
    TimeSeriesPoint,
)
from .scoring import (
    SeverityMapper,
    build_recommendations,
    compute_confidence,
    explain,
    merge_scores,
    sensitivity_multiplier,
    severity_distribution,
)
from .store import AnomalyDetectionStore

logger = logging.getLogger(__name__)

OptionsLike = Union[DetectionOptions, Mapping[str, Any], None]
PointLike = Union[TimeSeriesPoint, Mapping[str, Any]]

_METHOD_VALUES = {m.value for m in DetectionMethod}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _requested_method(options: OptionsLike) -> str:
    if options is None:
        return DetectionMethod.ZSCORE.value
    if isinstance(options, DetectionOptions):
        return options.method.value
    method = options.get("method", DetectionMethod.ZSCORE.value)
    return method.value if isinstance(method, DetectionMethod) else str(method)


def resolve_options(options: OptionsLike) -> DetectionOptions:
    """
    Validate caller options. Unknown methods and bad values raise ConfigurationError.
    """

    if options is None:
        return DetectionOptions()
    if isinstance(options, DetectionOptions):
        return options

    method = _requested_method(options)
    if method not in _METHOD_VALUES:
        raise ConfigurationError(f"Unsupported anomaly detection method: {method}")
    try:
        return DetectionOptions.model_validate(dict(options))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid detection options: {exc}") from exc


def resolve_points(series: Sequence[PointLike]) -> List[TimeSeriesPoint]:
    try:
        return [
            p if isinstance(p, TimeSeriesPoint) else TimeSeriesPoint.model_validate(p)
            for p in series
        ]
    except ValidationError as exc:
        raise DataValidationError(f"Invalid time series point: {exc}") from exc


def error_result(exc: BaseException) -> AnomalyDetectionResult:
    """
    Degraded result used in place of a failed batch entry.
    """

    message = str(exc) or type(exc).__name__
    return AnomalyDetectionResult(
        anomalies=[],
        summary=DetectionSummary(
            total_anomalies=0,
            anomaly_rate=0.0,
            severity_distribution={},
            method_used="error",
            confidence=0.0,
        ),
        recommendations=[f"Error: {message}"],
    )


@dataclass
class AnomalyDetectionService:
    """
    Anomaly detection service.

    Stateless apart from its injected collaborators:
    - text_client: used only by the ai_detection method
    - store: used only by save_anomaly_detection_config
    - clock: wall-clock source for the "recent anomalies" recommendation
    """

    text_client: Optional[TextCompletionClient] = None
    store: Optional[AnomalyDetectionStore] = None
    settings: Config = field(default_factory=lambda: config)
    clock: Optional[Callable[[], datetime]] = None

    def __post_init__(self) -> None:
        self._severity_mapper = SeverityMapper(self.settings.severity)
        self._ai_detector = AIAnomalyDetector(client=self.text_client, settings=self.settings.ai)
        if self.clock is None:
            self.clock = _utcnow

    async def detect_anomalies(
        self, series: Sequence[PointLike], options: OptionsLike = None
    ) -> AnomalyDetectionResult:
        opts = resolve_options(options)
        if opts.method is DetectionMethod.LSTM:
            raise ConfigurationError("Unsupported anomaly detection method: lstm (not implemented)")

        points = resolve_points(series)
        values = [p.value for p in points]
        threshold = opts.threshold * sensitivity_multiplier(opts.sensitivity, self.settings.sensitivity)

        scores = await self._run_strategy(values, opts, threshold)

        if opts.seasonal_adjustment and opts.method is not DetectionMethod.AI_DETECTION:
            seasonal = SeasonalResidualDetector(
                threshold=threshold,
                season_length=opts.season_length or self.settings.strategies.season_length,
            ).score(values)
            scores = merge_scores(scores, seasonal)

        anomalies = self._collect_anomalies(points, values, scores, opts, threshold)

        total = len(values)
        summary = DetectionSummary(
            total_anomalies=len(anomalies),
            anomaly_rate=(len(anomalies) / total) * 100 if total else 0.0,
            severity_distribution=severity_distribution(anomalies),
            method_used=opts.method.value,
            confidence=compute_confidence(
                opts.method.value, len(anomalies), total, self.settings.confidence
            ),
        )
        recommendations = build_recommendations(
            anomalies, summary, self.clock(), self.settings.recommendations
        )

        logger.debug(
            "Detected %d anomalies in %d points (method=%s, threshold=%.3f)",
            summary.total_anomalies,
            total,
            summary.method_used,
            threshold,
        )
        return AnomalyDetectionResult(
            anomalies=anomalies, summary=summary, recommendations=recommendations
        )

    async def _run_strategy(
        self, values: List[float], opts: DetectionOptions, threshold: float
    ) -> List[PointScore]:
        strategies = self.settings.strategies
        method = opts.method

        if method is DetectionMethod.ZSCORE:
            return ZScoreDetector(
                threshold=threshold,
                window_size=opts.window_size,
                min_points=strategies.min_window_points,
            ).score(values)
        if method is DetectionMethod.IQR:
            return IQRDetector(multiplier=threshold).score(values)
        if method is DetectionMethod.ISOLATION_FOREST:
            # Contamination is min_anomaly_score; the threshold does not apply here.
            return LocalDensityDetector(
                contamination=opts.min_anomaly_score,
                radius=strategies.neighborhood_radius,
            ).score(values)
        if method is DetectionMethod.AI_DETECTION:
            return await self._ai_detector.score(values, opts.context)
        raise ConfigurationError(f"Unsupported anomaly detection method: {method.value}")

    def _collect_anomalies(
        self,
        points: List[TimeSeriesPoint],
        values: List[float],
        scores: List[PointScore],
        opts: DetectionOptions,
        threshold: float,
    ) -> List[DetectedAnomaly]:
        stats = describe(values)
        anomalies: List[DetectedAnomaly] = []

        for point_score in scores:
            if not point_score.is_anomaly or point_score.score < opts.min_anomaly_score:
                continue
            point = points[point_score.index]
            explanation = point_score.explanation or explain(point_score.score, point.value, stats)
            result = AnomalyResult(
                is_anomaly=True,
                score=point_score.score,
                severity=self._severity_mapper.severity(point_score.score),
                explanation=explanation,
                metadata={
                    "method": opts.method.value,
                    "threshold": threshold,
                    **point_score.metadata,
                },
            )
            anomalies.append(
                DetectedAnomaly(
                    index=point_score.index,
                    timestamp=point.timestamp,
                    value=point.value,
                    result=result,
                )
            )
        return anomalies

    def detect_realtime_anomaly(
        self,
        new_point: PointLike,
        history: Sequence[PointLike],
        options: OptionsLike = None,
    ) -> AnomalyResult:
        """
        Score one incoming point against the trailing window of history.

        Only iqr is honoured as an alternative; every other method, including
        unknown ones, is scored with z-score. No sensitivity scaling applies.
        """

        requested = _requested_method(options)
        if requested in _METHOD_VALUES:
            opts = resolve_options(options)
        else:
            opts = resolve_options({**dict(options or {}), "method": DetectionMethod.ZSCORE.value})

        point = resolve_points([new_point])[0]
        window = opts.window_size or self.settings.realtime.window_size
        context = resolve_points(list(history)[-window:])
        values = [p.value for p in context] + [point.value]

        # Both methods score the whole combined series, history plus the new point.
        if opts.method is DetectionMethod.IQR:
            point_score = IQRDetector(multiplier=opts.threshold).score_last(values)
        else:
            point_score = ZScoreDetector(threshold=opts.threshold).score_last(values)

        return AnomalyResult(
            is_anomaly=point_score.is_anomaly,
            score=point_score.score,
            severity=self._severity_mapper.severity(point_score.score),
            explanation=explain(point_score.score, point.value, describe(values)),
            metadata={
                "method": requested,
                "timestamp": point.timestamp,
                "context_size": len(context),
            },
        )

    async def batch_detect_anomalies(
        self, datasets: Sequence[Union[BatchDataset, Mapping[str, Any]]]
    ) -> List[BatchResult]:
        """
        Run detect_anomalies over independent datasets.

        Failures are isolated per dataset; output order matches input order.
        """

        semaphore = asyncio.Semaphore(self.settings.batch.max_concurrency)

        async def _run(position: int, dataset: Union[BatchDataset, Mapping[str, Any]]) -> BatchResult:
            dataset_id = _dataset_id(dataset, position)
            async with semaphore:
                try:
                    if not isinstance(dataset, BatchDataset):
                        dataset = BatchDataset.model_validate(dataset)
                    result = await self.detect_anomalies(dataset.data, dataset.options)
                except Exception as exc:
                    logger.error(
                        "Error detecting anomalies in dataset %s: %s", dataset_id, exc, exc_info=True
                    )
                    result = error_result(exc)
            return BatchResult(id=dataset_id, result=result)

        return list(await asyncio.gather(*(_run(i, d) for i, d in enumerate(datasets))))

    async def save_anomaly_detection_config(
        self,
        user_id: str,
        name: str,
        data_source: str,
        options: OptionsLike,
    ) -> DetectionConfig:
        if self.store is None:
            raise StorageError("No anomaly detection store configured")

        opts = resolve_options(options)
        try:
            record = DetectionConfig(
                user_id=user_id,
                name=name,
                data_source=data_source,
                threshold_config=opts.model_dump(mode="json", exclude_none=True),
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid detection config: {exc}") from exc

        try:
            saved = await self.store.create_anomaly_detection(
                record.model_dump(mode="json", exclude={"id", "created_at"})
            )
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to save detection config {name!r}: {exc}") from exc

        logger.info("Saved detection config %r for user %s", name, user_id)
        return DetectionConfig.model_validate(saved)


def _dataset_id(dataset: Union[BatchDataset, Mapping[str, Any]], position: int) -> str:
    if isinstance(dataset, BatchDataset):
        return dataset.id
    if isinstance(dataset, Mapping) and dataset.get("id") is not None:
        return str(dataset["id"])
    return f"dataset-{position}"
