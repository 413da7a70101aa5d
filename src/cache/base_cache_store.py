# src/cache/base_cache_store.py — v1
"""Abstract persistent cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from vinenrich.cache.models import CacheEntry


class BaseCacheStore(ABC):
    """Unified interface for persistent cache backends."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key (freshness is checked by the caller)."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store cache entry (upsert)."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove cache entry."""

    @abstractmethod
    async def prune(self, older_than: float) -> int:
        """Delete entries created before ``older_than`` (epoch seconds).

        Returns:
            Number of deleted entries.
        """

    def close(self) -> None:
        """Release backend resources."""
