# src/storage/sqlite_repository.py — v1
"""SQLite item repository.

Uses stdlib sqlite3. Every status write is a single conditional UPDATE
whose WHERE clause encodes the legal predecessors, so two daemons sharing
the database can never both claim or both complete the same item.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from vinenrich.core.errors import IllegalTransitionError, ItemNotFoundError
from vinenrich.core.models import ENRICHMENT_FIELDS, EnrichmentResult, WorkItem
from vinenrich.core.status import ALLOWED_PREDECESSORS, TERMINAL_STATUSES, EnrichmentStatus
from vinenrich.storage.base_repository import BaseItemRepository

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS work_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    wine_name TEXT NOT NULL,
    producer TEXT,
    vintage TEXT,
    region TEXT,
    country TEXT,
    varietals TEXT,
    wine_type TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    attempt_count INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    completed_at TEXT,
    wine_rating REAL,
    general_guest_experience TEXT,
    flavor_notes TEXT,
    aroma_notes TEXT,
    what_makes_special TEXT,
    body_description TEXT,
    food_pairing TEXT,
    serving_temp TEXT,
    aging_potential TEXT,
    source TEXT
);
CREATE INDEX IF NOT EXISTS work_items_status_idx ON work_items(status, id);
"""

_DESCRIPTOR_FIELDS = (
    "wine_name", "producer", "vintage", "region", "country", "varietals", "wine_type",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SqliteItemRepository(BaseItemRepository):
    """Work items in a single SQLite table.

    Args:
        db_path: Database file (created on first use); ":memory:" for tests.
        clock: Returns the current UTC datetime.
    """

    def __init__(
        self, db_path: Path | str, clock: Callable[[], datetime] = _utcnow
    ) -> None:
        if str(db_path) != ":memory:":
            db_path = Path(db_path).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
        else:
            self._conn = sqlite3.connect(":memory:")
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._clock = clock

    async def add_item(self, **fields: Any) -> WorkItem:
        """Insert a new pending item from descriptor fields."""
        unknown = set(fields) - set(_DESCRIPTOR_FIELDS)
        if unknown:
            raise ValueError(f"Unknown item fields: {', '.join(sorted(unknown))}")
        if not fields.get("wine_name"):
            raise ValueError("wine_name is required")
        columns = ", ".join(fields)
        placeholders = ", ".join("?" for _ in fields)
        cursor = self._conn.execute(
            f"INSERT INTO work_items ({columns}) VALUES ({placeholders})",  # noqa: S608
            tuple(fields.values()),
        )
        self._conn.commit()
        return await self.get(int(cursor.lastrowid))

    async def get(self, item_id: int) -> WorkItem:
        row = self._conn.execute(
            "SELECT * FROM work_items WHERE id = ?", (item_id,)
        ).fetchone()
        if row is None:
            raise ItemNotFoundError(f"Work item {item_id} not found")
        return WorkItem.model_validate(dict(row))

    async def get_pending(self, limit: int) -> list[WorkItem]:
        if limit <= 0:
            return []
        rows = self._conn.execute(
            "SELECT * FROM work_items WHERE status = ? ORDER BY id LIMIT ?",
            (EnrichmentStatus.PENDING.value, limit),
        ).fetchall()
        return [WorkItem.model_validate(dict(r)) for r in rows]

    async def claim(self, item_id: int) -> bool:
        cursor = self._conn.execute(
            """UPDATE work_items
               SET status = ?, started_at = ?, completed_at = NULL,
                   attempt_count = attempt_count + 1
               WHERE id = ? AND status = ?""",
            (
                EnrichmentStatus.PROCESSING.value,
                _ts(self._clock()),
                item_id,
                EnrichmentStatus.PENDING.value,
            ),
        )
        self._conn.commit()
        claimed = cursor.rowcount == 1
        if not claimed:
            logger.debug("Item %d already claimed or not pending", item_id)
        return claimed

    async def update_status(
        self,
        item_id: int,
        status: EnrichmentStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        if status is EnrichmentStatus.PROCESSING:
            # Only claim() may enter processing
            await self._raise_illegal(item_id, status)
        if status in TERMINAL_STATUSES and completed_at is None:
            completed_at = self._clock()
        values: dict[str, Any] = {"completed_at": _ts(completed_at)}
        # Back to pending releases the claim timestamp
        if status is EnrichmentStatus.PENDING or started_at is not None:
            values["started_at"] = _ts(started_at)
        self._transition(item_id, status, values)

    async def commit_result(
        self, item_id: int, result: EnrichmentResult, status: EnrichmentStatus
    ) -> None:
        if status not in (
            EnrichmentStatus.COMPLETED_VERIFIED, EnrichmentStatus.COMPLETED_THEORETICAL
        ):
            raise ValueError(f"commit_result needs a completed status, got {status.value}")
        values: dict[str, Any] = {name: getattr(result, name) for name in ENRICHMENT_FIELDS}
        values["wine_rating"] = result.wine_rating
        values["source"] = result.source.value
        values["completed_at"] = _ts(self._clock())
        self._transition(item_id, status, values)

    async def reset_failed(self) -> int:
        cursor = self._conn.execute(
            """UPDATE work_items
               SET status = ?, started_at = NULL, completed_at = NULL, attempt_count = 0
               WHERE status = ?""",
            (EnrichmentStatus.PENDING.value, EnrichmentStatus.FAILED.value),
        )
        self._conn.commit()
        return cursor.rowcount

    async def count_by_status(self) -> dict[str, int]:
        counts = {s.value: 0 for s in EnrichmentStatus}
        for row in self._conn.execute(
            "SELECT status, COUNT(*) AS n FROM work_items GROUP BY status"
        ):
            counts[row["status"]] = row["n"]
        return counts

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Internal helpers ---

    def _transition(
        self, item_id: int, status: EnrichmentStatus, values: dict[str, Any]
    ) -> None:
        allowed = sorted(s.value for s in ALLOWED_PREDECESSORS[status])
        assignments = ", ".join(f"{name} = ?" for name in values)
        placeholders = ", ".join("?" for _ in allowed)
        cursor = self._conn.execute(
            f"UPDATE work_items SET status = ?, {assignments} "  # noqa: S608
            f"WHERE id = ? AND status IN ({placeholders})",
            (status.value, *values.values(), item_id, *allowed),
        )
        self._conn.commit()
        if cursor.rowcount != 1:
            row = self._conn.execute(
                "SELECT status FROM work_items WHERE id = ?", (item_id,)
            ).fetchone()
            if row is None:
                raise ItemNotFoundError(f"Work item {item_id} not found")
            raise IllegalTransitionError(item_id, row["status"], status.value)

    async def _raise_illegal(self, item_id: int, status: EnrichmentStatus) -> None:
        current = (await self.get(item_id)).status.value
        raise IllegalTransitionError(item_id, current, status.value)
