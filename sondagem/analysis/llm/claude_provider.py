"""
Anthropic Claude provider.

Claude takes the system prompt as a separate parameter and images as
``source`` blocks, so both are translated here.
"""
from __future__ import annotations

import logging
import time

from .base import BaseLLMProvider, LLMResponse
from .config import pick_model

logger = logging.getLogger(__name__)

try:
    import anthropic

    _ANTHROPIC_AVAILABLE = True
except ImportError:
    _ANTHROPIC_AVAILABLE = False
    logger.info(
        "anthropic package not installed. Claude provider will not be available. "
        "Install with: pip install anthropic"
    )


def _register_if_available(cls):
    """Only register the provider if the anthropic SDK is importable."""
    if _ANTHROPIC_AVAILABLE:
        from . import register_provider

        return register_provider(cls)
    return cls


@_register_if_available
class ClaudeProvider(BaseLLMProvider):
    """Anthropic Claude LLM provider."""

    PROVIDER_NAME = "claude"

    def __init__(self, api_key: str = None):
        super().__init__(api_key=api_key)
        self._client = None

    def _ensure_client(self):
        if self._client is None:
            if not _ANTHROPIC_AVAILABLE:
                raise RuntimeError(
                    "anthropic package is not installed. "
                    "Install with: pip install anthropic"
                )
            if not self.api_key:
                raise ValueError("Anthropic API key is required.")
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=120.0)
        return self._client

    def image_message(self, text: str, image_b64: str, media_type: str = "image/jpeg") -> dict:
        return {
            "role": "user",
            "content": [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media_type,
                        "data": image_b64,
                    },
                },
                {"type": "text", "text": text},
            ],
        }

    def is_rate_limit_error(self, exc: Exception) -> bool:
        if _ANTHROPIC_AVAILABLE and isinstance(exc, anthropic.RateLimitError):
            return True
        return super().is_rate_limit_error(exc)

    def chat(
        self,
        messages: list,
        model: str = None,
        max_tokens: int = 4096,
        temperature: float = 0,
    ) -> LLMResponse:
        """Send a chat completion request to Claude.

        A 'system' role message, if present, is lifted into the ``system``
        parameter.
        """
        client = self._ensure_client()
        model = model or pick_model(self.PROVIDER_NAME)

        system_message = None
        chat_messages = []
        for msg in messages:
            if msg.get("role") == "system":
                system_message = msg["content"]
            else:
                chat_messages.append(msg)

        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": chat_messages,
            "temperature": temperature,
        }
        if system_message:
            kwargs["system"] = system_message

        start_time = time.time()
        response = client.messages.create(**kwargs)
        latency_ms = int((time.time() - start_time) * 1000)

        content = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        return LLMResponse(
            content=content,
            model=model,
            provider=self.PROVIDER_NAME,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=self.estimate_cost(input_tokens, output_tokens, model),
            latency_ms=latency_ms,
            finish_reason=response.stop_reason or "",
        )
