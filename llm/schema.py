"""
Schema for model-generated anomaly scores.

The completion is an untrusted payload: every field is validated before use
and any violation sends the caller down its fallback path.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class AIAnomaly(BaseModel):
    """
    One point the model considers anomalous.

    Fields:
    - index: position within the values sent to the model
    - score: [0.0, 1.0]
    - explanation: optional short reason
    """

    model_config = ConfigDict(allow_inf_nan=False)

    index: StrictInt = Field(ge=0)
    score: float = Field(ge=0.0, le=1.0)
    explanation: Optional[str] = Field(None, max_length=500)


class AIAnomalyResponse(BaseModel):
    anomalies: List[AIAnomaly]
