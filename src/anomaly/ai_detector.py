"""
AI-backed anomaly detection.

Sends the most recent values to a text-completion model, validates the JSON
it returns and maps the scores back onto the series. Any failure falls back
to global z-score detection; this strategy never raises to its caller.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from llm.client import TextCompletionClient
from llm.prompt import build_anomaly_prompt
from llm.schema import AIAnomaly, AIAnomalyResponse
from src.core.config import AIDetectionConfig, config
from src.core.exceptions import ModelInferenceError

from .detectors import PointScore, ZScoreDetector

logger = logging.getLogger(__name__)


@dataclass
class AIAnomalyDetector:
    """
    Text-completion backed detector.

    - Builds a strict prompt from the last `max_points` values.
    - Awaits the model with a timeout.
    - Validates the payload shape and index range.
    - Flags points whose model score exceeds anomaly_score_threshold.
    """

    client: Optional[TextCompletionClient]
    settings: AIDetectionConfig = field(default_factory=lambda: config.ai)

    async def score(self, values: Sequence[float], context: Optional[str] = None) -> List[PointScore]:
        if not values:
            return []

        recent = list(values[-self.settings.max_points :])
        offset = len(values) - len(recent)

        try:
            raw = await self._complete(build_anomaly_prompt(recent, context))
            response = self._parse_response(raw, len(recent))
        except Exception as exc:
            logger.warning("AI anomaly detection failed, falling back to z-score: %s", exc, exc_info=True)
            return self._fallback(values)

        return self._map_scores(len(values), offset, response)

    async def _complete(self, prompt: str) -> str:
        if self.client is None:
            raise ModelInferenceError("No text-completion client configured")
        try:
            return await asyncio.wait_for(
                self.client.generate_text(
                    self.settings.model_id,
                    prompt,
                    max_tokens=self.settings.max_tokens,
                    temperature=self.settings.temperature,
                ),
                timeout=self.settings.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ModelInferenceError(
                f"Text completion timed out after {self.settings.timeout_seconds}s"
            ) from exc

    def _parse_response(self, raw: str, window_length: int) -> AIAnomalyResponse:
        if not isinstance(raw, str):
            raise ModelInferenceError(f"Expected text completion, got {type(raw).__name__}")
        start = raw.find("{")
        end = raw.rfind("}")
        if start == -1 or end == -1 or end <= start:
            raise ModelInferenceError("No JSON object found in model output")

        try:
            response = AIAnomalyResponse.model_validate(json.loads(raw[start : end + 1]))
        except (ValueError, ValidationError) as exc:
            raise ModelInferenceError(f"Invalid anomaly payload: {exc}") from exc

        for item in response.anomalies:
            if item.index >= window_length:
                raise ModelInferenceError(
                    f"Anomaly index {item.index} outside the {window_length} values sent"
                )
        return response

    def _map_scores(self, length: int, offset: int, response: AIAnomalyResponse) -> List[PointScore]:
        mentioned: Dict[int, AIAnomaly] = {}
        for item in response.anomalies:
            mentioned.setdefault(item.index + offset, item)

        results: List[PointScore] = []
        for index in range(length):
            item = mentioned.get(index)
            score = item.score if item is not None else 0.0
            results.append(
                PointScore(
                    index=index,
                    score=score,
                    is_anomaly=score > self.settings.anomaly_score_threshold,
                    explanation=item.explanation if item is not None else None,
                )
            )
        return results

    def _fallback(self, values: Sequence[float]) -> List[PointScore]:
        results = ZScoreDetector(threshold=self.settings.fallback_threshold).score(values)
        for point in results:
            point.metadata["fallback"] = "zscore"
        return results
