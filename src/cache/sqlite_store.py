# src/cache/sqlite_store.py — v1
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. The ``created_at`` index
keeps pruning cheap.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from vinenrich.cache.base_cache_store import BaseCacheStore
from vinenrich.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ai_cache (
    key TEXT PRIMARY KEY,
    prefix TEXT NOT NULL,
    value TEXT NOT NULL,
    created_at REAL NOT NULL,
    ttl_s REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS ai_cache_created_at_idx ON ai_cache(created_at);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed persistent cache."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        cursor = self._conn.execute(
            "SELECT key, prefix, value, created_at, ttl_s FROM ai_cache WHERE key = ?",
            (key,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return CacheEntry(
            key=row[0], prefix=row[1], value=row[2], created_at=row[3], ttl_s=row[4]
        )

    async def put(self, key: str, entry: CacheEntry) -> None:
        self._conn.execute(
            """INSERT INTO ai_cache (key, prefix, value, created_at, ttl_s)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   prefix = excluded.prefix,
                   value = excluded.value,
                   created_at = excluded.created_at,
                   ttl_s = excluded.ttl_s""",
            (key, entry.prefix, entry.value, entry.created_at, entry.ttl_s),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM ai_cache WHERE key = ?", (key,))
        self._conn.commit()

    async def prune(self, older_than: float) -> int:
        cursor = self._conn.execute(
            "DELETE FROM ai_cache WHERE created_at < ?", (older_than,)
        )
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
