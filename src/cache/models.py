# src/cache/models.py — v1
"""Cache entry model shared by the memory and persistent tiers."""

from __future__ import annotations

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """Serialized result of one cached operation."""

    key: str
    prefix: str
    value: str  # JSON text
    created_at: float  # epoch seconds
    ttl_s: float

    def is_fresh(self, now: float) -> bool:
        """Hit only while ``now - created_at < ttl_s``."""
        return now - self.created_at < self.ttl_s
