"""
OpenAI provider (GPT-4.1 family, vision capable).
"""
from __future__ import annotations

import logging
import time

from .base import BaseLLMProvider, LLMResponse
from .config import pick_model

logger = logging.getLogger(__name__)

try:
    import openai

    _OPENAI_AVAILABLE = True
except ImportError:
    _OPENAI_AVAILABLE = False
    logger.info(
        "openai package not installed. OpenAI provider will not be available. "
        "Install with: pip install openai"
    )


def _register_if_available(cls):
    """Only register the provider if the openai SDK is importable."""
    if _OPENAI_AVAILABLE:
        from . import register_provider

        return register_provider(cls)
    return cls


@_register_if_available
class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat-completions provider."""

    PROVIDER_NAME = "openai"

    def __init__(self, api_key: str = None):
        super().__init__(api_key=api_key)
        self._client = None

    def _ensure_client(self):
        if self._client is None:
            if not _OPENAI_AVAILABLE:
                raise RuntimeError(
                    "openai package is not installed. "
                    "Install with: pip install openai"
                )
            if not self.api_key:
                raise ValueError("OpenAI API key is required.")
            self._client = openai.OpenAI(api_key=self.api_key, timeout=120.0)
        return self._client

    def is_rate_limit_error(self, exc: Exception) -> bool:
        if _OPENAI_AVAILABLE and isinstance(exc, openai.RateLimitError):
            return True
        return super().is_rate_limit_error(exc)

    def chat(
        self,
        messages: list,
        model: str = None,
        max_tokens: int = 4096,
        temperature: float = 0,
    ) -> LLMResponse:
        client = self._ensure_client()
        model = model or pick_model(self.PROVIDER_NAME)

        start_time = time.time()
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        latency_ms = int((time.time() - start_time) * 1000)

        choice = response.choices[0]
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return LLMResponse(
            content=choice.message.content or "",
            model=model,
            provider=self.PROVIDER_NAME,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=self.estimate_cost(input_tokens, output_tokens, model),
            latency_ms=latency_ms,
            finish_reason=choice.finish_reason or "",
        )
