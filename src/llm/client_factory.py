# src/llm/client_factory.py - v1
"""Factory: instantiate a generation client from the provider name in settings."""

from __future__ import annotations

import importlib
import logging

from draftsmith.config.settings import Settings
from draftsmith.llm.base_client import BaseGenerationClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "draftsmith.llm.adapters.anthropic_adapter.AnthropicAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_generation_client(
    settings: Settings,
    provider: str | None = None,
    model: str | None = None,
) -> BaseGenerationClient:
    """Instantiate the adapter for `provider` (default: settings.llm_provider).

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    provider = provider or settings.llm_provider
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported generation provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    init_kwargs: dict[str, object] = {"model": model or settings.llm_model}
    if provider == "anthropic":
        init_kwargs["api_key"] = settings.anthropic_api_key or None

    logger.debug("Creating generation client: provider=%s, model=%s", provider, init_kwargs["model"])
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom adapter implementing BaseGenerationClient."""
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered generation provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
