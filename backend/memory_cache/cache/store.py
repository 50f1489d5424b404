"""Durable storage for semantic cache entries."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from memory_cache.db.sqlite import SQLiteDatabase
from memory_cache.ingest.embeddings import bytes_to_vector, vector_to_bytes
from memory_cache.models.entities import CacheEntry

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, owner_id, scope, question, dim, question_vector, response, model, provider, "
    "tokens_saved, hit_count, created_at, last_hit_at, expires_at"
)


class CacheEntryStore:
    """SQLite table of cached answers, scoped by owner and scope."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def insert(self, entry: CacheEntry) -> None:
        self.db.execute(
            f"INSERT INTO semantic_cache ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                entry.id,
                entry.owner_id,
                entry.scope,
                entry.question_text,
                len(entry.question_vector),
                vector_to_bytes(entry.question_vector),
                entry.response_text,
                entry.model,
                entry.provider,
                entry.tokens_saved,
                entry.hit_count,
                entry.created_at,
                entry.last_hit_at,
                entry.expires_at,
            ],
        )

    def get(self, entry_id: str) -> CacheEntry | None:
        row = self.db.query_one(f"SELECT {_COLUMNS} FROM semantic_cache WHERE id = ?", [entry_id])
        return _row_to_entry(row) if row else None

    def scan_unexpired(
        self, owner_id: str, scope: str, now_ms: int, limit: int = 50, offset: int = 0
    ) -> list[CacheEntry]:
        """One page of unexpired entries for an owner and scope, newest first."""
        rows = self.db.query(
            f"""
            SELECT {_COLUMNS}
            FROM semantic_cache
            WHERE owner_id = ? AND scope = ? AND expires_at > ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            [owner_id, scope, now_ms, limit, offset],
        )
        return [_row_to_entry(row) for row in rows]

    def record_hit(self, entry_id: str, now_ms: int) -> bool:
        updated = self.db.execute(
            "UPDATE semantic_cache SET hit_count = hit_count + 1, last_hit_at = ? WHERE id = ?",
            [now_ms, entry_id],
        )
        return updated > 0

    def delete(self, entry_id: str) -> bool:
        return self.db.execute("DELETE FROM semantic_cache WHERE id = ?", [entry_id]) > 0

    def clear(self, owner_id: str | None = None) -> int:
        if owner_id is None:
            return self.db.execute("DELETE FROM semantic_cache")
        return self.db.execute("DELETE FROM semantic_cache WHERE owner_id = ?", [owner_id])

    def prune_expired(self, now_ms: int) -> int:
        deleted = self.db.execute("DELETE FROM semantic_cache WHERE expires_at <= ?", [now_ms])
        if deleted:
            logger.info("Cleaned up %s expired cache entries", deleted)
        return deleted

    def stats(self, owner_id: str | None = None) -> dict[str, Any]:
        sql = """
            SELECT
              COUNT(*) AS total_entries,
              COALESCE(SUM(hit_count), 0) AS total_hits,
              COALESCE(SUM(tokens_saved * hit_count), 0) AS total_tokens_saved,
              COALESCE(AVG(hit_count), 0) AS avg_hits_per_entry,
              COALESCE(MAX(hit_count), 0) AS max_hits
            FROM semantic_cache
        """
        params: list[object] = []
        if owner_id is not None:
            sql += " WHERE owner_id = ?"
            params.append(owner_id)
        row = self.db.query_one(sql, params)
        return {
            "total_entries": int(row["total_entries"]),
            "total_hits": int(row["total_hits"]),
            "total_tokens_saved": int(row["total_tokens_saved"]),
            "avg_hits_per_entry": round(float(row["avg_hits_per_entry"]), 1),
            "max_hits": int(row["max_hits"]),
        }

    def most_used(self, owner_id: str, limit: int = 10) -> list[dict[str, Any]]:
        rows = self.db.query(
            """
            SELECT id, question, hit_count, created_at, last_hit_at
            FROM semantic_cache
            WHERE owner_id = ?
            ORDER BY hit_count DESC, created_at DESC
            LIMIT ?
            """,
            [owner_id, limit],
        )
        return [dict(row) for row in rows]


def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
    return CacheEntry(
        id=row["id"],
        owner_id=row["owner_id"],
        scope=row["scope"],
        question_text=row["question"],
        question_vector=bytes_to_vector(row["question_vector"]),
        response_text=row["response"],
        model=row["model"],
        provider=row["provider"],
        created_at=int(row["created_at"]),
        expires_at=int(row["expires_at"]),
        hit_count=int(row["hit_count"]),
        last_hit_at=row["last_hit_at"],
        tokens_saved=int(row["tokens_saved"]),
    )


__all__ = ["CacheEntryStore"]
