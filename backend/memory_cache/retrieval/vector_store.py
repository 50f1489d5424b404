"""Durable, append-oriented store of knowledge vectors."""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Literal, Sequence

from memory_cache.core.errors import DimensionMismatch
from memory_cache.db.sqlite import SQLiteDatabase
from memory_cache.ingest.embeddings import bytes_to_vector, vector_to_bytes
from memory_cache.models.entities import IndexedChunk
from memory_cache.utils.time import days_to_ms, now_ms

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, owner_id, source_kind, source_ref, source_label, text, summary, "
    "dim, vector, importance, created_at, indexed_at"
)


class VectorRecordStore:
    """SQLite-backed collection of :class:`IndexedChunk` rows scoped by owner and kind.

    The store hands candidate sets to the similarity search; it never ranks
    by similarity itself.
    """

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db
        self._dims: dict[str, int] = {}
        self._dims_lock = threading.Lock()

    def insert(self, record: IndexedChunk) -> None:
        dim = len(record.vector)
        with self.db.transaction() as cursor:
            expected = self._established_dim(cursor, record.owner_id)
            if expected is not None and expected != dim:
                raise DimensionMismatch(expected=expected, actual=dim, record_id=record.id)
            cursor.execute(
                f"INSERT INTO indexed_chunks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    record.id,
                    record.owner_id,
                    record.source_kind,
                    record.source_ref,
                    record.source_label,
                    record.text,
                    record.summary,
                    dim,
                    vector_to_bytes(record.vector),
                    record.importance,
                    record.created_at,
                    record.indexed_at,
                ],
            )
        with self._dims_lock:
            self._dims.setdefault(record.owner_id, dim)

    def scan(
        self,
        owner_id: str,
        kinds: Sequence[str] | None = None,
        limit: int = 1000,
        order: Literal["newest", "oldest"] = "newest",
    ) -> list[IndexedChunk]:
        """Return the owner's records of the given kinds, newest first by default."""
        direction = "DESC" if order == "newest" else "ASC"
        sql = f"SELECT {_COLUMNS} FROM indexed_chunks WHERE owner_id = ?"
        params: list[object] = [owner_id]
        if kinds:
            sql += f" AND source_kind IN ({','.join('?' for _ in kinds)})"
            params.extend(kinds)
        sql += f" ORDER BY indexed_at {direction}, rowid {direction} LIMIT ?"
        params.append(limit)
        return [_row_to_chunk(row) for row in self.db.query(sql, params)]

    def prune_older_than(self, owner_id: str, age_days: float, kind: str | None = None) -> int:
        cutoff = now_ms() - days_to_ms(age_days)
        sql = "DELETE FROM indexed_chunks WHERE owner_id = ? AND indexed_at < ?"
        params: list[object] = [owner_id, cutoff]
        if kind is not None:
            sql += " AND source_kind = ?"
            params.append(kind)
        deleted = self.db.execute(sql, params)
        if deleted:
            logger.info("Pruned %s chunks older than %s days for %s", deleted, age_days, owner_id)
            if self.count(owner_id) == 0:
                with self._dims_lock:
                    self._dims.pop(owner_id, None)
        return deleted

    def count(self, owner_id: str | None = None, kind: str | None = None) -> int:
        clauses: list[str] = []
        params: list[object] = []
        if owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(owner_id)
        if kind is not None:
            clauses.append("source_kind = ?")
            params.append(kind)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        row = self.db.query_one(f"SELECT COUNT(*) AS count FROM indexed_chunks{where}", params)
        return int(row["count"]) if row else 0

    def has_source(self, owner_id: str, source_ref: str, kind: str | None = None) -> bool:
        sql = "SELECT 1 FROM indexed_chunks WHERE owner_id = ? AND source_ref = ?"
        params: list[object] = [owner_id, source_ref]
        if kind is not None:
            sql += " AND source_kind = ?"
            params.append(kind)
        return self.db.query_one(sql + " LIMIT 1", params) is not None

    def dimension_for(self, owner_id: str) -> int | None:
        with self._dims_lock:
            if owner_id in self._dims:
                return self._dims[owner_id]
        row = self.db.query_one(
            "SELECT dim FROM indexed_chunks WHERE owner_id = ? ORDER BY indexed_at ASC, rowid ASC LIMIT 1",
            [owner_id],
        )
        return int(row["dim"]) if row else None

    def _established_dim(self, cursor: sqlite3.Cursor, owner_id: str) -> int | None:
        with self._dims_lock:
            if owner_id in self._dims:
                return self._dims[owner_id]
        row = cursor.execute(
            "SELECT dim FROM indexed_chunks WHERE owner_id = ? ORDER BY indexed_at ASC, rowid ASC LIMIT 1",
            [owner_id],
        ).fetchone()
        return int(row["dim"]) if row else None


def _row_to_chunk(row: sqlite3.Row) -> IndexedChunk:
    return IndexedChunk(
        id=row["id"],
        owner_id=row["owner_id"],
        source_kind=row["source_kind"],
        source_ref=row["source_ref"],
        source_label=row["source_label"],
        text=row["text"],
        summary=row["summary"],
        vector=bytes_to_vector(row["vector"]),
        importance=float(row["importance"]),
        created_at=int(row["created_at"]),
        indexed_at=int(row["indexed_at"]),
    )


__all__ = ["VectorRecordStore"]
