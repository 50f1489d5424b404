"""Tier-1 in-process cache of recent question/response pairs."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Sequence

from memory_cache.core.metrics import FRONT_CACHE_SIZE
from memory_cache.models.entities import CacheEntry
from memory_cache.retrieval.similarity import best_match
from memory_cache.utils.time import now_ms as current_ms


@dataclass(slots=True, frozen=True)
class FrontCacheHit:
    entry: CacheEntry
    similarity: float


class FrontCache:
    """Bounded, insertion-ordered cache of :class:`CacheEntry` copies.

    Eviction removes the oldest insertion, not the least recently hit entry.
    Lookups never reorder. Every mutation and scan happens under one lock.
    """

    def __init__(self, capacity: int = 100, similarity_threshold: float = 0.92) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.similarity_threshold = similarity_threshold
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, entry_id: object) -> bool:
        with self._lock:
            return entry_id in self._entries

    def lookup(
        self,
        query_vector: Sequence[float],
        owner_id: str,
        scope: str,
        now_ms: int | None = None,
    ) -> FrontCacheHit | None:
        now = now_ms if now_ms is not None else current_ms()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            candidates = [
                entry
                for entry in self._entries.values()
                if entry.owner_id == owner_id and entry.scope == scope
            ]
            self._update_gauge()
        match = best_match(query_vector, candidates, self.similarity_threshold)
        if match is None:
            return None
        return FrontCacheHit(entry=match.candidate, similarity=match.raw_similarity)

    def insert(self, entry: CacheEntry) -> None:
        """Add or overwrite; an overwrite moves the entry to the newest position."""
        copy = entry.copy()
        with self._lock:
            if copy.id in self._entries:
                del self._entries[copy.id]
            while len(self._entries) >= self.capacity:
                self._entries.popitem(last=False)
            self._entries[copy.id] = copy
            self._update_gauge()

    def remove(self, entry_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(entry_id, None) is not None
            self._update_gauge()
            return removed

    def clear(self, owner_id: str | None = None) -> int:
        with self._lock:
            if owner_id is None:
                count = len(self._entries)
                self._entries.clear()
            else:
                keys = [key for key, entry in self._entries.items() if entry.owner_id == owner_id]
                for key in keys:
                    del self._entries[key]
                count = len(keys)
            self._update_gauge()
            return count

    def _update_gauge(self) -> None:
        FRONT_CACHE_SIZE.set(len(self._entries))


__all__ = ["FrontCache", "FrontCacheHit"]
