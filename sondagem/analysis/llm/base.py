"""
Base classes for LLM providers.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .config import get_all_models_for_provider, get_model_pricing


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""

    content: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    latency_ms: int = 0
    finish_reason: str = ""


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers.

    Subclasses implement ``chat``; image messages default to the
    OpenAI-compatible ``image_url`` content block, which Claude overrides.
    """

    PROVIDER_NAME: str = ""

    def __init__(self, api_key: str = None):
        self.api_key = api_key

    @abstractmethod
    def chat(
        self,
        messages: list,
        model: str = None,
        max_tokens: int = 4096,
        temperature: float = 0,
    ) -> LLMResponse:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content' keys.
                Content is a string, or a list of blocks built by
                ``image_message``.
            model: Model identifier. If None, uses provider default.
            max_tokens: Maximum tokens in the response.
            temperature: Sampling temperature (0 = deterministic).

        Returns:
            LLMResponse with the completion result and metadata.
        """
        ...

    def image_message(self, text: str, image_b64: str, media_type: str = "image/jpeg") -> dict:
        """Build a user message carrying one base64 image followed by text."""
        return {
            "role": "user",
            "content": [
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{media_type};base64,{image_b64}"},
                },
                {"type": "text", "text": text},
            ],
        }

    def is_rate_limit_error(self, exc: Exception) -> bool:
        """True when ``exc`` signals HTTP 429 / quota throttling."""
        if getattr(exc, "status_code", None) == 429:
            return True
        response = getattr(exc, "response", None)
        if getattr(response, "status_code", None) == 429:
            return True
        return "429" in str(exc) or type(exc).__name__ == "RateLimitError"

    def list_models(self) -> list[str]:
        """Return the model identifiers configured for this provider."""
        return get_all_models_for_provider(self.PROVIDER_NAME)

    def estimate_cost(
        self, input_tokens: int, output_tokens: int, model: str
    ) -> float:
        """Estimate the cost in USD for the given token counts.

        Unknown models are priced as zero.
        """
        pricing = get_model_pricing(self.PROVIDER_NAME, model)
        if not pricing:
            return 0.0
        input_cost = (input_tokens / 1_000_000) * pricing["input_price"]
        output_cost = (output_tokens / 1_000_000) * pricing["output_price"]
        return round(input_cost + output_cost, 6)
