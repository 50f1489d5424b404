"""Per-owner indexing counters."""

from __future__ import annotations

from memory_cache.db.sqlite import SQLiteDatabase
from memory_cache.models.entities import STATS_SCHEMA_VERSION, OwnerMemoryStats
from memory_cache.utils.time import now_ms


class OwnerStatsStore:
    """Reads and increments :class:`OwnerMemoryStats` rows."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def get(self, owner_id: str) -> OwnerMemoryStats:
        row = self.db.query_one(
            """
            SELECT owner_id, schema_version, total_elements, conversations_indexed, last_indexed_at, updated_at
            FROM owner_memory_stats WHERE owner_id = ?
            """,
            [owner_id],
        )
        if row is None:
            return OwnerMemoryStats(owner_id=owner_id)
        return OwnerMemoryStats(
            owner_id=row["owner_id"],
            schema_version=int(row["schema_version"]),
            total_elements=int(row["total_elements"]),
            conversations_indexed=int(row["conversations_indexed"]),
            last_indexed_at=row["last_indexed_at"],
            updated_at=row["updated_at"],
        )

    def record_indexing(self, owner_id: str, elements_added: int, conversations: int = 1) -> None:
        now = now_ms()
        self.db.execute(
            """
            INSERT INTO owner_memory_stats (
              owner_id, schema_version, total_elements, conversations_indexed, last_indexed_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(owner_id) DO UPDATE SET
              schema_version = excluded.schema_version,
              total_elements = total_elements + excluded.total_elements,
              conversations_indexed = conversations_indexed + excluded.conversations_indexed,
              last_indexed_at = excluded.last_indexed_at,
              updated_at = excluded.updated_at
            """,
            [owner_id, STATS_SCHEMA_VERSION, elements_added, conversations, now, now],
        )


__all__ = ["OwnerStatsStore"]
