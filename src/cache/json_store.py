# src/cache/json_store.py — v1
"""JSON file-based cache store (CACHE_BACKEND=json).

One file per key under CACHE_ROOT, sharded by the first two hex chars of
the digest.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from vinenrich.cache.base_cache_store import BaseCacheStore
from vinenrich.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> CacheEntry | None:
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            return CacheEntry(**json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        path = self._entry_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(entry.model_dump_json(), encoding="utf-8")

    async def delete(self, key: str) -> None:
        path = self._entry_path(key)
        if path.exists():
            path.unlink()

    async def prune(self, older_than: float) -> int:
        deleted = 0
        for path in self._root.glob("*/*.json"):
            try:
                entry = CacheEntry(**json.loads(path.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, ValueError):
                # Unreadable entries can never be served; drop them too
                path.unlink(missing_ok=True)
                deleted += 1
                continue
            if entry.created_at < older_than:
                path.unlink(missing_ok=True)
                deleted += 1
        return deleted

    def _entry_path(self, key: str) -> Path:
        prefix, _, digest = key.rpartition(":")
        safe_prefix = prefix.replace("/", "_") or "default"
        return self._root / digest[:2] / f"{safe_prefix}_{digest}.json"
