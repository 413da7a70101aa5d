# src/cache/memory_cache.py — v1
"""Bounded in-process LRU cache with per-entry TTL."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable

from vinenrich.cache.models import CacheEntry


class LRUCache:
    """Fixed-capacity map; ``get`` and ``set`` both refresh recency.

    Args:
        capacity: Maximum number of entries.
        clock: Returns current time in epoch seconds.
    """

    def __init__(self, capacity: int = 500, clock: Callable[[], float] = time.time) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        """Fresh entry for ``key``, promoted to most-recently-used."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def set(self, key: str, entry: CacheEntry) -> str | None:
        """Insert or refresh ``key``.

        Returns:
            The evicted key, if inserting a new key overflowed capacity.
        """
        evicted = None
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self._capacity:
            evicted, _ = self._entries.popitem(last=False)
        self._entries[key] = entry
        return evicted

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
