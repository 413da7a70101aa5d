# src/cache/tiered_cache.py — v1
"""Two-level cache: bounded in-memory LRU in front of a persistent store.

Reads check memory, then the store (repopulating memory on a hit).
Writes go to memory synchronously and to the store best-effort: a store
failure is logged and swallowed because the memory copy still serves the
current process.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable

from vinenrich.cache.base_cache_store import BaseCacheStore
from vinenrich.cache.fingerprint import make_cache_key
from vinenrich.cache.memory_cache import LRUCache
from vinenrich.cache.models import CacheEntry
from vinenrich.core.errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 24 * 60 * 60


class TieredCache:
    """Memory + persistent cache keyed by ``(prefix, input)``.

    ``None`` is the miss marker and is never stored.

    Args:
        memory: In-process LRU tier.
        store: Persistent tier, or None for memory-only caching.
        default_ttl_s: TTL applied when ``set`` is called without one.
        clock: Returns current time in epoch seconds.
    """

    def __init__(
        self,
        memory: LRUCache,
        store: BaseCacheStore | None = None,
        default_ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._memory = memory
        self._store = store
        self._default_ttl_s = default_ttl_s
        self._clock = clock
        self.stats: dict[str, int] = {
            "memory_hits": 0,
            "store_hits": 0,
            "misses": 0,
            "store_errors": 0,
        }

    @property
    def memory(self) -> LRUCache:
        return self._memory

    async def get(self, prefix: str, value: Any) -> Any | None:
        """Cached result for ``(prefix, value)`` or None on miss."""
        key = make_cache_key(prefix, value)

        entry = self._memory.get(key)
        if entry is not None:
            self.stats["memory_hits"] += 1
            logger.debug("Cache hit (memory): %s", prefix)
            return json.loads(entry.value)

        entry = await self._store_get(key)
        if entry is not None:
            if entry.is_fresh(self._clock()):
                self._memory.set(key, entry)
                self.stats["store_hits"] += 1
                logger.debug("Cache hit (store): %s", prefix)
                return json.loads(entry.value)
            await self._store_delete(key)

        self.stats["misses"] += 1
        logger.debug("Cache miss: %s", prefix)
        return None

    async def set(
        self, prefix: str, value: Any, result: Any, ttl_s: float | None = None
    ) -> None:
        """Cache ``result`` for ``(prefix, value)``."""
        if result is None:
            raise ValueError("None cannot be cached (it marks a miss)")
        key = make_cache_key(prefix, value)
        entry = CacheEntry(
            key=key,
            prefix=prefix,
            value=json.dumps(result, ensure_ascii=False, default=str),
            created_at=self._clock(),
            ttl_s=self._default_ttl_s if ttl_s is None else ttl_s,
        )
        self._memory.set(key, entry)

        if self._store is None:
            return
        try:
            await self._store.put(key, entry)
        except Exception as exc:
            self.stats["store_errors"] += 1
            logger.warning(
                "Cache store write failed for %s: %s",
                prefix, PersistenceError(str(exc)),
            )

    async def delete(self, prefix: str, value: Any) -> None:
        """Drop ``(prefix, value)`` from both tiers."""
        key = make_cache_key(prefix, value)
        self._memory.delete(key)
        if self._store is not None:
            await self._store_delete(key)

    async def get_or_compute(
        self,
        prefix: str,
        value: Any,
        producer: Callable[[], Awaitable[Any]],
        ttl_s: float | None = None,
    ) -> Any:
        """Return the cached result, or run ``producer`` once and cache it."""
        cached = await self.get(prefix, value)
        if cached is not None:
            return cached
        result = await producer()
        if result is not None:
            await self.set(prefix, value, result, ttl_s=ttl_s)
        return result

    async def prune(self, max_age_s: float) -> int:
        """Delete persistent entries older than ``max_age_s``.

        Returns:
            Number of deleted entries, 0 on failure.
        """
        if self._store is None:
            return 0
        try:
            deleted = await self._store.prune(self._clock() - max_age_s)
        except Exception as exc:
            logger.error("Error pruning cache: %s", exc)
            return 0
        logger.info("Pruned %d old cache entries", deleted)
        return deleted

    def close(self) -> None:
        if self._store is not None:
            self._store.close()

    async def _store_get(self, key: str) -> CacheEntry | None:
        if self._store is None:
            return None
        try:
            return await self._store.get(key)
        except Exception as exc:
            self.stats["store_errors"] += 1
            logger.warning("Cache store read failed for %s: %s", key, exc)
            return None

    async def _store_delete(self, key: str) -> None:
        try:
            await self._store.delete(key)  # type: ignore[union-attr]
        except Exception as exc:
            logger.debug("Lazy eviction of %s failed: %s", key, exc)
