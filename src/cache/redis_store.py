# src/cache/redis_store.py — v1
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable when several daemon processes share one cache.
"""

from __future__ import annotations

import json
import logging
import math

from vinenrich.cache.base_cache_store import BaseCacheStore
from vinenrich.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "vinenrich:cache:"
# Sorted set: member = cache key, score = created_at
_CREATED_INDEX = "vinenrich:cache:__created__"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> CacheEntry | None:
        data = self._client.get(f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        try:
            return CacheEntry(**json.loads(data))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        # Redis expiry doubles as a safety net; freshness is still checked on read
        self._client.set(
            f"{_KEY_PREFIX}{key}",
            entry.model_dump_json(),
            ex=max(1, math.ceil(entry.ttl_s)),
        )
        self._client.zadd(_CREATED_INDEX, {key: entry.created_at})

    async def delete(self, key: str) -> None:
        self._client.delete(f"{_KEY_PREFIX}{key}")
        self._client.zrem(_CREATED_INDEX, key)

    async def prune(self, older_than: float) -> int:
        stale = self._client.zrangebyscore(_CREATED_INDEX, "-inf", f"({older_than}")
        if not stale:
            return 0
        self._client.delete(*(f"{_KEY_PREFIX}{k}" for k in stale))
        self._client.zrem(_CREATED_INDEX, *stale)
        return len(stale)

    def close(self) -> None:
        self._client.close()
