"""
Model configuration and pricing data for all supported LLM providers.

Prices are per million tokens in USD.  ``vision`` marks models able to read
the drawing / handwriting photos.
"""
from __future__ import annotations

MODEL_CONFIG = {
    "claude": {
        "models": {
            "claude-haiku-4-5": {
                "input_price": 1.0,
                "output_price": 5.0,
                "tier": "basic",
                "vision": True,
            },
            "claude-sonnet-4-5": {
                "input_price": 3.0,
                "output_price": 15.0,
                "tier": "advanced",
                "vision": True,
            },
        }
    },
    "openai": {
        "models": {
            "gpt-4.1-mini": {
                "input_price": 0.40,
                "output_price": 1.60,
                "tier": "basic",
                "vision": True,
            },
            "gpt-4.1": {
                "input_price": 2.0,
                "output_price": 8.0,
                "tier": "advanced",
                "vision": True,
            },
        }
    },
    "zhipu": {
        "models": {
            "glm-4-flash": {
                "input_price": 0.0,
                "output_price": 0.0,
                "tier": "basic",
                "vision": False,
            },
            "glm-4v-plus": {
                "input_price": 0.55,
                "output_price": 0.55,
                "tier": "basic",
                "vision": True,
            },
        }
    },
}


def get_model_pricing(provider: str, model: str) -> dict | None:
    """Look up pricing for a specific provider/model combination.

    Returns:
        Dict with 'input_price', 'output_price', 'tier' and 'vision', or None.
    """
    provider_config = MODEL_CONFIG.get(provider, {})
    return provider_config.get("models", {}).get(model)


def get_all_models_for_provider(provider: str) -> list[str]:
    """Return all model identifiers for a given provider."""
    provider_config = MODEL_CONFIG.get(provider, {})
    return list(provider_config.get("models", {}).keys())


def pick_model(provider: str, vision: bool = False, tier: str = "basic") -> str | None:
    """Choose the first configured model of ``tier`` (vision-capable if asked).

    Falls back to any model with the required capability when no model of
    the tier has it.
    """
    models = MODEL_CONFIG.get(provider, {}).get("models", {})
    capable = [
        (name, info) for name, info in models.items()
        if not vision or info.get("vision")
    ]
    for name, info in capable:
        if info.get("tier") == tier:
            return name
    return capable[0][0] if capable else None
