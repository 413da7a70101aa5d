# tests/unit/test_app.py — v1
"""Tests for app.py — service wiring from settings."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from vinenrich.app import build_generation_client, build_services
from vinenrich.config.settings import Settings
from vinenrich.core.models import ItemOutcome


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        llm_default_model="model-a",
        llm_fallback_models="model-b,model-a",
        llm_call_timeout_s=12.0,
        cache_backend="memory",
        item_db_path=tmp_path / "items.db",
        daemon_max_concurrent=3,
        max_item_attempts=4,
        retry_base_delay_s=0.0,
        retry_jitter=False,
        llm_max_requests_per_second=0,
    )


class TestBuildGenerationClient:
    def test_models_deduplicated(self, settings, adapter):
        client = build_generation_client(settings, adapter=adapter)
        assert client.models == ["model-a", "model-b"]
        assert client.cache is None


class TestBuildServices:
    def test_wiring(self, settings, adapter, in_memory_repository):
        repo = in_memory_repository()
        services = build_services(settings, repository=repo, adapter=adapter)

        assert services.repository is repo
        assert services.cache is not None
        assert services.client.cache is services.cache
        assert services.daemon.get_status()["max_concurrent"] == 3
        assert services.processor._max_item_attempts == 4

    def test_cache_disabled(self, settings, adapter, in_memory_repository):
        disabled = settings.model_copy(update={"cache_enabled": False})
        services = build_services(disabled, repository=in_memory_repository(), adapter=adapter)
        assert services.cache is None
        assert services.client.cache is None

    def test_default_repository_is_sqlite(self, settings, adapter):
        services = build_services(settings, adapter=adapter)
        try:
            assert settings.item_db_path.exists()
        finally:
            services.close()

    def test_close(self, settings, adapter):
        repo = MagicMock()
        cache = MagicMock()
        services = build_services(settings, repository=repo, adapter=adapter, cache=cache)
        services.close()
        cache.close.assert_called_once()
        repo.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_processor_end_to_end(
        self, settings, adapter, in_memory_repository, bordeaux_item
    ):
        repo = in_memory_repository([bordeaux_item])
        services = build_services(settings, repository=repo, adapter=adapter)

        item = await repo.claim_item(bordeaux_item)
        processed = await services.processor.process(item)

        assert processed.outcome is ItemOutcome.VERIFIED
        assert {c["model"] for c in adapter.calls} == {"model-a"}
