"""
Local causal language model wrapper implementing TextCompletionClient.

transformers and torch are optional: they are imported on first load so the
rest of the service runs without them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Optional, Tuple

from .config import LLMConfig

logger = logging.getLogger("llm")


@dataclass
class LocalTextCompletionModel:
    """
    Local model wrapper.

    Blocking generation runs in a worker thread so the event loop stays free.
    The model_id argument of generate_text is informational; the loaded
    checkpoint is always config.model_path.
    """

    config: LLMConfig
    _tokenizer: Optional[Any] = None
    _model: Optional[Any] = None
    _load_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def load(self) -> None:
        with self._load_lock:
            if self._model is not None and self._tokenizer is not None:
                return
            self._tokenizer, self._model = self._load_checkpoint()
            logger.info("Model loaded successfully")

    def _load_checkpoint(self) -> Tuple[Any, Any]:
        from transformers import AutoModelForCausalLM, AutoTokenizer

        try:
            import torch
            device = "cuda" if torch.cuda.is_available() else "cpu"
        except Exception:
            device = "cpu"

        logger.info(
            "Loading model from %s (local_files_only=%s, device=%s)",
            self.config.model_path,
            self.config.local_files_only,
            device,
        )
        tokenizer = AutoTokenizer.from_pretrained(
            self.config.model_path, local_files_only=self.config.local_files_only
        )
        model = AutoModelForCausalLM.from_pretrained(
            self.config.model_path, local_files_only=self.config.local_files_only
        )
        model.to(device)
        model.eval()
        return tokenizer, model

    def generate(self, prompt: str, max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
        if self._model is None or self._tokenizer is None:
            self.load()

        max_positions = getattr(self._model.config, "n_positions", None) or getattr(
            self._model.config, "max_position_embeddings", None
        )
        model_max_length = self._tokenizer.model_max_length
        max_length = min(model_max_length, max_positions) if max_positions else model_max_length

        requested = min(max_tokens or self.config.max_new_tokens, self.config.max_new_tokens)
        max_input_tokens = max_length - requested
        if max_input_tokens < 1:
            max_input_tokens = max_length

        inputs = self._tokenizer(
            prompt,
            return_tensors="pt",
            truncation=True,
            max_length=max_input_tokens,
        ).to(self._model.device)
        prompt_length = inputs["input_ids"].shape[1]
        max_new_tokens = max(1, min(requested, max_length - prompt_length))

        temperature = self.config.temperature if temperature is None else temperature
        sampling = {"do_sample": True, "temperature": temperature, "top_p": self.config.top_p} if temperature > 0 else {"do_sample": False}
        output_ids = self._model.generate(
            **inputs,
            max_new_tokens=max_new_tokens,
            repetition_penalty=self.config.repetition_penalty,
            eos_token_id=self._tokenizer.eos_token_id,
            pad_token_id=self._tokenizer.eos_token_id,
            **sampling,
        )
        # Only the continuation; the prompt itself contains a JSON example.
        return self._tokenizer.decode(output_ids[0][prompt_length:], skip_special_tokens=True)

    async def generate_text(
        self,
        model_id: str,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        if model_id != self.config.model_path:
            logger.debug("Requested model %s served by local model %s", model_id, self.config.model_path)
        return await asyncio.to_thread(self.generate, prompt, max_tokens, temperature)
