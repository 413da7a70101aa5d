# src/cache/cache_factory.py — v2
"""Factory for the tiered cache and its persistent backend."""

from __future__ import annotations

from vinenrich.cache.base_cache_store import BaseCacheStore
from vinenrich.cache.memory_cache import LRUCache
from vinenrich.cache.tiered_cache import TieredCache
from vinenrich.config.settings import Settings


def create_cache_store(settings: Settings) -> BaseCacheStore | None:
    """Instantiate the configured persistent backend (None for memory-only).

    Raises:
        ValueError: If the backend is unknown or misconfigured.
    """
    backend = settings.cache_backend

    if backend == "memory":
        return None

    if backend == "sqlite":
        from vinenrich.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=settings.cache_root / "ai_cache.db")

    if backend == "json":
        from vinenrich.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=settings.cache_root)

    if backend == "redis":
        from vinenrich.cache.redis_store import RedisCacheStore
        if not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisCacheStore(redis_url=settings.cache_redis_url)

    raise ValueError(f"Unsupported cache backend: {backend!r}")


def create_cache(settings: Settings | None = None) -> TieredCache | None:
    """Build the tiered cache, or None when caching is disabled."""
    settings = settings or Settings()
    if not settings.cache_enabled:
        return None
    return TieredCache(
        memory=LRUCache(capacity=settings.cache_memory_capacity),
        store=create_cache_store(settings),
        default_ttl_s=settings.cache_ttl_s,
    )
