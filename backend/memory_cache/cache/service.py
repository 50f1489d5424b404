"""Semantic cache: reuse answers to questions that were already answered."""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from dataclasses import asdict, dataclass
from functools import partial
from typing import Any, Callable, Literal, TypeVar

from memory_cache.cache.front_cache import FrontCache
from memory_cache.cache.store import CacheEntryStore
from memory_cache.core.config import Settings
from memory_cache.core.errors import MemoryFeatureError, StoreUnavailable, report_degradation
from memory_cache.core.logging import get_logger
from memory_cache.core.metrics import CACHE_LOOKUPS, CACHE_STORES
from memory_cache.ingest.embeddings import EmbeddingProvider, embed_with_timeout
from memory_cache.models.entities import CacheEntry
from memory_cache.retrieval.similarity import SearchHit, best_match
from memory_cache.utils.concurrency import call_with_timeout, deadline_after, is_cancelled, remaining
from memory_cache.utils.ids import new_id, short_id
from memory_cache.utils.time import now_ms

logger = get_logger(__name__)

LookupSource = Literal["front", "durable"]
T = TypeVar("T")


@dataclass(slots=True)
class CacheLookup:
    hit: bool
    response: str | None = None
    similarity: float | None = None
    source: LookupSource | None = None
    entry_id: str | None = None
    original_question: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SemanticCacheService:
    """Front cache first, then the owner's unexpired durable entries.

    Lookups never raise: embedding, store, timeout and cancellation problems
    all end in a miss. Stores return ``None`` instead of failing the caller.
    """

    def __init__(
        self,
        entries: CacheEntryStore,
        front_cache: FrontCache,
        embedder: EmbeddingProvider,
        settings: Settings,
        executor: Executor | None = None,
    ) -> None:
        self.entries = entries
        self.front_cache = front_cache
        self.embedder = embedder
        self.settings = settings
        self.executor = executor
        self._hits = 0
        self._misses = 0
        self._counter_lock = threading.Lock()

    # Lookup -----------------------------------------------------------

    def lookup(
        self,
        question: str,
        owner_id: str,
        scope: str,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> CacheLookup:
        """Answer for a similar question, or a miss.

        ``timeout`` bounds the whole lookup: the embedding call and every
        store read and write share the same budget.
        """
        deadline = deadline_after(timeout)
        try:
            vector = self._embed(question, timeout)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.lookup", exc, owner_id=owner_id, action="returned miss")
            return self._miss("error")
        if is_cancelled(cancel_event):
            return self._miss("cancelled")

        front_hit = self.front_cache.lookup(vector, owner_id, scope)
        if front_hit is not None:
            self._record_hit(front_hit.entry.id, owner_id, deadline=deadline)
            return self._hit(front_hit.entry, front_hit.similarity, "front")

        try:
            match = self._durable_match(vector, owner_id, scope, deadline, cancel_event)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.lookup", exc, owner_id=owner_id, action="returned miss")
            return self._miss("error")
        if is_cancelled(cancel_event):
            return self._miss("cancelled")

        if match is None:
            logger.debug("Cache miss for %s/%s", owner_id, scope)
            return self._miss("none")

        entry = match.candidate
        hit_at = now_ms()
        if self._record_hit(entry.id, owner_id, hit_at, deadline):
            entry.hit_count += 1
            entry.last_hit_at = hit_at
        self.front_cache.insert(entry)
        return self._hit(entry, match.raw_similarity, "durable")

    # Store ------------------------------------------------------------

    def store(
        self,
        question: str,
        response: str,
        owner_id: str,
        scope: str,
        model: str | None = None,
        provider: str | None = None,
        tokens_used: int = 0,
        timeout: float | None = None,
    ) -> str | None:
        """Cache an answer; returns the entry id or ``None`` when caching failed."""
        try:
            vector = self._embed(question, timeout)
        except MemoryFeatureError as exc:
            CACHE_STORES.labels(status="failed").inc()
            report_degradation(logger, "cache.store", exc, owner_id=owner_id, action="skipped caching")
            return None

        created = now_ms()
        entry = CacheEntry(
            id=new_id("cache"),
            owner_id=owner_id,
            scope=scope,
            question_text=question,
            question_vector=vector,
            response_text=response,
            model=model,
            provider=provider,
            created_at=created,
            expires_at=created + self.settings.cache_ttl_ms,
            tokens_saved=tokens_used,
        )
        try:
            self.entries.insert(entry)
        except MemoryFeatureError as exc:
            CACHE_STORES.labels(status="failed").inc()
            report_degradation(logger, "cache.store", exc, owner_id=owner_id, action="skipped caching")
            return None
        self.front_cache.insert(entry)
        CACHE_STORES.labels(status="stored").inc()
        logger.info("Response cached (id: %s)", short_id(entry.id))
        self._schedule_cleanup()
        return entry.id

    # Management -------------------------------------------------------

    def invalidate(self, entry_id: str) -> bool:
        in_front = self.front_cache.remove(entry_id)
        try:
            in_store = self.entries.delete(entry_id)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.invalidate", exc)
            return in_front
        return in_store or in_front

    def clear(self, owner_id: str | None = None) -> int:
        self.front_cache.clear(owner_id)
        try:
            cleared = self.entries.clear(owner_id)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.clear", exc, owner_id=owner_id)
            return 0
        logger.info("Cleared %s cache entries", cleared)
        return cleared

    def prune_expired(self) -> int:
        return self.entries.prune_expired(now_ms())

    def stats(self, owner_id: str | None = None) -> dict[str, Any]:
        with self._counter_lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        try:
            persistent = self.entries.stats(owner_id)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.stats", exc, owner_id=owner_id)
            persistent = None
        return {
            "front_cache": {"size": self.front_cache.size, "capacity": self.front_cache.capacity},
            "persistent_cache": persistent,
            "session": {
                "cache_hits": hits,
                "cache_misses": misses,
                "hit_rate": round(hits / total * 100, 1) if total else 0.0,
            },
            "config": {
                "similarity_threshold": self.settings.cache_similarity_threshold,
                "ttl_days": self.settings.cache_ttl_days,
            },
        }

    def most_used(self, owner_id: str, limit: int = 10) -> list[dict[str, Any]]:
        try:
            return self.entries.most_used(owner_id, limit)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.most_used", exc, owner_id=owner_id)
            return []

    # Internal helpers -------------------------------------------------

    def _embed(self, text: str, timeout: float | None) -> list[float]:
        limit = timeout if timeout is not None else self.settings.embed_timeout_seconds
        return embed_with_timeout(self.embedder, text, limit, self.executor)

    def _durable_match(
        self,
        vector: list[float],
        owner_id: str,
        scope: str,
        deadline: float | None,
        cancel_event: threading.Event | None,
    ) -> SearchHit[CacheEntry] | None:
        """Best match over every unexpired entry, read one page at a time."""
        page_size = self.settings.cache_scan_limit
        threshold = self.settings.cache_similarity_threshold
        now = now_ms()
        best: SearchHit[CacheEntry] | None = None
        offset = 0
        while not is_cancelled(cancel_event):
            page = self._store_call(
                partial(self.entries.scan_unexpired, owner_id, scope, now, limit=page_size, offset=offset),
                deadline,
            )
            match = best_match(vector, page, threshold)
            # newer entries win ties
            if match is not None and (best is None or match.raw_similarity > best.raw_similarity):
                best = match
            if len(page) < page_size:
                break
            offset += page_size
        return best

    def _store_call(self, fn: Callable[[], T], deadline: float | None) -> T:
        return call_with_timeout(
            fn,
            remaining(deadline),
            self.executor,
            on_timeout=lambda: StoreUnavailable("cache store did not answer within the lookup timeout"),
        )

    def _record_hit(
        self,
        entry_id: str,
        owner_id: str,
        hit_at: int | None = None,
        deadline: float | None = None,
    ) -> bool:
        stamp = hit_at if hit_at is not None else now_ms()
        try:
            return self._store_call(partial(self.entries.record_hit, entry_id, stamp), deadline)
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.record_hit", exc, owner_id=owner_id, action="hit not recorded")
            return False

    def _schedule_cleanup(self) -> None:
        if self.executor is None:
            self._cleanup()
            return
        try:
            self.executor.submit(self._cleanup)
        except RuntimeError:
            logger.debug("Executor shut down; skipping expired-entry cleanup")

    def _cleanup(self) -> None:
        try:
            self.prune_expired()
        except MemoryFeatureError as exc:
            report_degradation(logger, "cache.cleanup", exc, action="cleanup skipped")

    def _hit(self, entry: CacheEntry, similarity: float, source: LookupSource) -> CacheLookup:
        with self._counter_lock:
            self._hits += 1
        CACHE_LOOKUPS.labels(result="hit", source=source).inc()
        logger.info("Cache hit from %s (similarity: %s%%)", source, round(similarity * 100))
        return CacheLookup(
            hit=True,
            response=entry.response_text,
            similarity=similarity,
            source=source,
            entry_id=entry.id,
            original_question=entry.question_text,
        )

    def _miss(self, reason: str) -> CacheLookup:
        with self._counter_lock:
            self._misses += 1
        CACHE_LOOKUPS.labels(result="miss", source=reason).inc()
        return CacheLookup(hit=False)


__all__ = ["SemanticCacheService", "CacheLookup"]
