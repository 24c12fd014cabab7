# tests/unit/llm/test_unit_client_factory.py - v1
"""Tests for llm/client_factory.py."""

from __future__ import annotations

import pytest

from draftsmith.llm import client_factory
from draftsmith.llm.adapters.anthropic_adapter import AnthropicAdapter
from draftsmith.llm.client_factory import (
    UnsupportedProviderError,
    create_generation_client,
    register_provider,
)


class TestCreateGenerationClient:
    def test_default_provider(self, settings):
        client = create_generation_client(settings)
        assert isinstance(client, AnthropicAdapter)
        assert client.model_name == settings.llm_model

    def test_model_override(self, settings):
        assert create_generation_client(settings, model="claude-haiku-4-5-20251001").model_name == (
            "claude-haiku-4-5-20251001"
        )

    def test_unsupported_provider(self, settings):
        with pytest.raises(UnsupportedProviderError, match="Available: anthropic"):
            create_generation_client(settings, provider="nope")


class TestRegisterProvider:
    def test_custom_provider(self, settings, monkeypatch):
        monkeypatch.setattr(client_factory, "_PROVIDER_REGISTRY", dict(client_factory._PROVIDER_REGISTRY))
        register_provider("claude-alt", "draftsmith.llm.adapters.anthropic_adapter.AnthropicAdapter")
        client = create_generation_client(settings, provider="claude-alt")
        assert isinstance(client, AnthropicAdapter)
