"""
Text-completion client contract.

The anomaly service only depends on this protocol; any hosted or local model
wrapper exposing `generate_text` can be injected.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TextCompletionClient(Protocol):
    async def generate_text(
        self,
        model_id: str,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the raw completion text for `prompt`."""
        ...
