"""
Classification-oracle backends.

Each module in this package registers one LLM provider (Claude, OpenAI,
Zhipu).  Providers whose SDK is not installed are skipped at import time, so
``get_provider`` only offers what can actually be called.  Drawing and
handwriting requests need a vision model; providers without one are refused
for those requests.
"""

import importlib
import logging
import pkgutil

from .config import pick_model

logger = logging.getLogger(__name__)

_providers = {}

_NOT_PROVIDERS = ("base", "config")


def register_provider(cls):
    """Decorator to register an LLM provider class."""
    _providers[cls.PROVIDER_NAME] = cls
    return cls


def get_provider(name: str, api_key: str = None, vision: bool = False):
    """Get an instantiated LLM provider by name.

    Args:
        name: Registered provider name ('claude', 'openai', 'zhipu').
        api_key: Key handed to the provider's SDK client.
        vision: Require a configured model able to read images.

    Raises:
        ValueError: If the provider is not registered, or has no vision
            model when ``vision`` is set.
    """
    cls = _providers.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown LLM provider: {name}. Available: {sorted(_providers)}"
        )
    if vision and pick_model(name, vision=True) is None:
        raise ValueError(f"LLM provider {name} has no vision model configured")
    return cls(api_key=api_key)


for _, _mod_name, _ in pkgutil.iter_modules(__path__):
    if _mod_name in _NOT_PROVIDERS:
        continue
    try:
        importlib.import_module(f".{_mod_name}", package=__name__)
    except Exception as e:
        logger.warning(f"Failed to load LLM provider {_mod_name}: {e}")
