"""SQLite management utilities.

One writer connection is shared by every thread and serialised by a lock;
each reading thread gets its own connection so scans run against the last
committed WAL snapshot without waiting for writers.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from memory_cache.core.errors import StoreUnavailable

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
)


class SQLiteDatabase:
    """Thin wrapper around sqlite3 providing pragmatic defaults."""

    def __init__(self, db_path: Path, lock_timeout: float = 5.0) -> None:
        self.db_path = db_path.expanduser()
        self.lock_timeout = lock_timeout
        self._connection: sqlite3.Connection | None = None
        self._write_lock = threading.RLock()
        self._local = threading.local()
        self._readers: list[sqlite3.Connection] = []
        self._readers_lock = threading.Lock()

    def _open(self, query_only: bool) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=self.lock_timeout, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            for pragma in DEFAULT_PRAGMAS:
                conn.execute(pragma)
            if query_only:
                conn.execute("PRAGMA query_only=ON;")
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailable(f"Cannot open {self.db_path}: {exc}") from exc
        return conn

    def connect(self) -> sqlite3.Connection:
        """Return the shared writer connection."""
        if self._connection is None:
            self._connection = self._open(query_only=False)
        return self._connection

    def reader(self) -> sqlite3.Connection:
        """Return this thread's read connection."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._open(query_only=True)
            self._local.connection = conn
            with self._readers_lock:
                self._readers.append(conn)
        return conn

    def close(self) -> None:
        with self._readers_lock:
            for conn in self._readers:
                conn.close()
            self._readers.clear()
        self._local = threading.local()
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def executescript(self, script: str) -> None:
        with self.transaction():
            self.connect().executescript(script)

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        """Run a read-only statement on this thread's snapshot connection."""
        try:
            return self.reader().execute(sql, params or []).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(str(exc)) from exc

    def query_one(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> int:
        """Run one write statement in its own transaction; return affected rows."""
        with self.transaction() as cursor:
            cursor.execute(sql, params or [])
            return cursor.rowcount

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Hold the writer lock for the duration of one committed transaction."""
        if not self._write_lock.acquire(timeout=self.lock_timeout):
            raise StoreUnavailable(f"Timed out after {self.lock_timeout}s waiting for the writer lock")
        try:
            conn = self.connect()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StoreUnavailable(str(exc)) from exc
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()
        finally:
            self._write_lock.release()

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        if schema_sql is None:
            schema_path = Path(__file__).with_name("schema.sql")
            schema_sql = schema_path.read_text(encoding="utf-8")
        self.executescript(schema_sql)


__all__ = ["SQLiteDatabase"]
