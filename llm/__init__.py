"""
LLM utilities for AI-backed anomaly detection.

Client contract, local inference wrapper, prompt and response schema.
"""

from .client import TextCompletionClient
from .config import LLMConfig
from .local_model import LocalTextCompletionModel
from .prompt import build_anomaly_prompt
from .schema import AIAnomaly, AIAnomalyResponse

__all__ = [
    "TextCompletionClient",
    "LLMConfig",
    "LocalTextCompletionModel",
    "build_anomaly_prompt",
    "AIAnomaly",
    "AIAnomalyResponse",
]
