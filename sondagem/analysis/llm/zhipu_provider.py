"""
Zhipu AI (GLM) provider.

Text prompts go to glm-4-flash; photos need the glm-4v vision line, which
accepts the OpenAI-style ``image_url`` blocks from the base class.
"""
from __future__ import annotations

import logging
import time

from .base import BaseLLMProvider, LLMResponse
from .config import pick_model

logger = logging.getLogger(__name__)

try:
    from zhipuai import ZhipuAI

    _ZHIPU_AVAILABLE = True
except ImportError:
    _ZHIPU_AVAILABLE = False
    logger.info(
        "zhipuai package not installed. Zhipu provider will not be available. "
        "Install with: pip install zhipuai"
    )


def _register_if_available(cls):
    """Only register the provider if the zhipuai SDK is importable."""
    if _ZHIPU_AVAILABLE:
        from . import register_provider

        return register_provider(cls)
    return cls


@_register_if_available
class ZhipuProvider(BaseLLMProvider):
    """Zhipu AI GLM provider."""

    PROVIDER_NAME = "zhipu"

    def __init__(self, api_key: str = None):
        super().__init__(api_key=api_key)
        self._client = None

    def _ensure_client(self):
        if self._client is None:
            if not _ZHIPU_AVAILABLE:
                raise RuntimeError(
                    "zhipuai package is not installed. "
                    "Install with: pip install zhipuai"
                )
            if not self.api_key:
                raise ValueError("Zhipu API key is required.")
            self._client = ZhipuAI(api_key=self.api_key)
        return self._client

    def chat(
        self,
        messages: list,
        model: str = None,
        max_tokens: int = 4096,
        temperature: float = 0,
    ) -> LLMResponse:
        client = self._ensure_client()
        has_image = any(isinstance(m.get("content"), list) for m in messages)
        model = model or pick_model(self.PROVIDER_NAME, vision=has_image)

        start_time = time.time()
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            # GLM rejects exactly 0
            temperature=max(temperature, 0.01),
        )
        latency_ms = int((time.time() - start_time) * 1000)

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0

        return LLMResponse(
            content=choice.message.content or "",
            model=model,
            provider=self.PROVIDER_NAME,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=self.estimate_cost(input_tokens, output_tokens, model),
            latency_ms=latency_ms,
            finish_reason=getattr(choice, "finish_reason", "") or "",
        )
