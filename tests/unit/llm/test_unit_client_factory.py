# tests/unit/llm/test_unit_client_factory.py — v2
"""Tests for llm/client_factory.py — provider registry."""

from __future__ import annotations

import pytest

from vinenrich.config.settings import Settings
from vinenrich.llm.adapters.anthropic_adapter import AnthropicAdapter
from vinenrich.llm.adapters.ollama_adapter import OllamaAdapter
from vinenrich.llm.adapters.openai_adapter import OpenAIAdapter
from vinenrich.llm.client_factory import (
    UnsupportedProviderError,
    _PROVIDER_REGISTRY,
    create_llm_client,
    register_provider,
)


class TestCreateLLMClient:
    def test_openai(self):
        client = create_llm_client("openai", "gpt-4o-mini")
        assert isinstance(client, OpenAIAdapter)
        assert client.default_model == "gpt-4o-mini"
        assert client.provider_name == "openai"

    def test_anthropic_gets_key_from_settings(self):
        settings = Settings(_env_file=None, anthropic_api_key="sk-ant-test")
        client = create_llm_client("anthropic", "claude-sonnet-4-20250514", settings)
        assert isinstance(client, AnthropicAdapter)
        assert client._api_key == "sk-ant-test"

    def test_openai_gets_key_from_settings(self):
        settings = Settings(_env_file=None, openai_api_key="sk-test")
        client = create_llm_client("openai", "gpt-4o", settings)
        assert client._api_key == "sk-test"

    def test_ollama_gets_host_from_settings(self):
        settings = Settings(_env_file=None, ollama_base_url="http://gpu-box:11434")
        client = create_llm_client("ollama", "llama3", settings)
        assert isinstance(client, OllamaAdapter)
        assert client._host == "http://gpu-box:11434"

    def test_explicit_kwargs_win(self):
        settings = Settings(_env_file=None, openai_api_key="from-settings")
        client = create_llm_client("openai", "gpt-4o", settings, api_key="explicit")
        assert client._api_key == "explicit"

    def test_unsupported(self):
        with pytest.raises(UnsupportedProviderError, match="Available"):
            create_llm_client("gemini", "x")


class TestRegisterProvider:
    def test_register_custom(self):
        register_provider("custom", "vinenrich.llm.adapters.ollama_adapter.OllamaAdapter")
        try:
            client = create_llm_client("custom", "mistral")
            assert isinstance(client, OllamaAdapter)
            assert client.default_model == "mistral"
        finally:
            _PROVIDER_REGISTRY.pop("custom", None)
