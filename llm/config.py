"""
Configuration for local LLM inference.

Used by the local text-completion client that backs AI anomaly detection.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """
    Configuration for a local causal language model.

    Notes:
    - model_path may be a local directory or a hub identifier.
    - local_files_only is switched on automatically for existing directories.
    - max_new_tokens is the default; callers may request fewer per call.
    """

    model_path: str = Field(..., description="Local filesystem path or hub id of the model")
    max_new_tokens: int = Field(512, ge=16, le=4096)
    temperature: float = Field(0.0, ge=0.0, le=2.0)
    top_p: float = Field(0.9, ge=0.0, le=1.0)
    repetition_penalty: float = Field(1.05, ge=1.0, le=2.0)
    local_files_only: bool = False

    def model_post_init(self, __context: object) -> None:
        path = Path(self.model_path)
        if path.exists():
            self.local_files_only = True
