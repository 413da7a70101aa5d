# src/app.py — v1
"""Composition root: wire settings into the enrichment services.

Usage:
    from vinenrich.app import build_services
    services = build_services()
    services.daemon.start()

Every collaborator can be passed in explicitly; whatever is omitted is
built from settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vinenrich.cache.cache_factory import create_cache
from vinenrich.cache.tiered_cache import TieredCache
from vinenrich.config.settings import Settings
from vinenrich.daemon.enrichment_daemon import EnrichmentDaemon
from vinenrich.llm.base_client import BaseLLMClient
from vinenrich.llm.client_factory import create_llm_client
from vinenrich.llm.generation_client import GenerationClient
from vinenrich.llm.rate_limiter import AsyncRateLimiter
from vinenrich.llm.retry import RetryPolicy
from vinenrich.pipeline.confidence_gate import ConfidenceGate
from vinenrich.pipeline.enrichment_pipeline import EnrichmentPipeline
from vinenrich.pipeline.fallback import FallbackGenerator
from vinenrich.pipeline.processor import ItemProcessor
from vinenrich.pipeline.stages import default_stages
from vinenrich.storage.base_repository import BaseItemRepository
from vinenrich.storage.sqlite_repository import SqliteItemRepository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Wired service graph for one process."""

    settings: Settings
    repository: BaseItemRepository
    cache: TieredCache | None
    client: GenerationClient
    processor: ItemProcessor
    daemon: EnrichmentDaemon

    def close(self) -> None:
        if self.cache is not None:
            self.cache.close()
        self.repository.close()


def build_generation_client(
    settings: Settings,
    adapter: BaseLLMClient | None = None,
    cache: TieredCache | None = None,
) -> GenerationClient:
    adapter = adapter or create_llm_client(
        settings.llm_default_provider, settings.llm_default_model, settings
    )
    return GenerationClient(
        adapter=adapter,
        models=settings.llm_models_list,
        cache=cache,
        rate_limiter=AsyncRateLimiter(settings.llm_max_requests_per_second),
        retry_policy=RetryPolicy(
            max_retries=settings.retry_max_retries,
            base_delay_s=settings.retry_base_delay_s,
            backoff_factor=settings.retry_backoff_factor,
            max_delay_s=settings.retry_max_delay_s,
            jitter=settings.retry_jitter,
        ),
        timeout_s=settings.llm_call_timeout_s,
    )


def build_services(
    settings: Settings | None = None,
    repository: BaseItemRepository | None = None,
    adapter: BaseLLMClient | None = None,
    cache: TieredCache | None = None,
) -> Services:
    """Build the full service graph."""
    settings = settings or Settings()
    repository = repository or SqliteItemRepository(settings.item_db_path)
    cache = cache if cache is not None else create_cache(settings)
    client = build_generation_client(settings, adapter=adapter, cache=cache)

    processor = ItemProcessor(
        repository=repository,
        gate=ConfidenceGate(client),
        pipeline=EnrichmentPipeline(
            client,
            stages=default_stages(
                settings.rating_min, settings.rating_max, settings.rating_default
            ),
        ),
        fallback=FallbackGenerator(
            client, disclaimer_age_years=settings.fallback_disclaimer_age_years
        ),
        max_item_attempts=settings.max_item_attempts,
    )
    daemon = EnrichmentDaemon(
        repository=repository,
        processor=processor,
        max_concurrent=settings.daemon_max_concurrent,
        poll_interval_s=settings.daemon_poll_interval_s,
        initial_delay_s=settings.daemon_initial_delay_s,
    )
    logger.debug(
        "Services built: provider=%s, models=%s, cache=%s",
        settings.llm_default_provider,
        ",".join(settings.llm_models_list),
        settings.cache_backend if cache is not None else "disabled",
    )
    return Services(
        settings=settings,
        repository=repository,
        cache=cache,
        client=client,
        processor=processor,
        daemon=daemon,
    )
