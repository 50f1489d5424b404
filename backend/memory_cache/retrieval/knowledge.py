"""Long-term knowledge: index conversation turns and retrieve relevant context."""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Iterable, Sequence

from memory_cache.core.config import Settings
from memory_cache.core.errors import MemoryFeatureError, StoreUnavailable, report_degradation
from memory_cache.core.logging import get_logger
from memory_cache.core.metrics import CHUNKS_INDEXED
from memory_cache.ingest.chunker import Chunk, chunk_conversation, chunk_turn
from memory_cache.ingest.embeddings import EmbeddingProvider, embed_with_timeout
from memory_cache.models.entities import IndexedChunk, OwnerMemoryStats
from memory_cache.retrieval.formatting import format_context
from memory_cache.retrieval.owner_stats import OwnerStatsStore
from memory_cache.retrieval.similarity import SearchHit, search
from memory_cache.retrieval.vector_store import VectorRecordStore
from memory_cache.utils.concurrency import call_with_timeout, deadline_after, is_cancelled, remaining
from memory_cache.utils.ids import new_id
from memory_cache.utils.text import preview
from memory_cache.utils.time import now_ms

logger = get_logger(__name__)

DEFAULT_KIND = "conversation"


@dataclass(slots=True)
class IndexResult:
    chunks_indexed: int = 0
    chunks_skipped: int = 0


@dataclass(slots=True)
class RetrievalResult:
    has_context: bool = False
    sources: list[SearchHit[IndexedChunk]] = field(default_factory=list)
    context_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_context": self.has_context,
            "context_text": self.context_text,
            "sources": [
                {
                    "id": hit.candidate.id,
                    "source_kind": hit.candidate.source_kind,
                    "source_ref": hit.candidate.source_ref,
                    "source_label": hit.candidate.source_label,
                    "summary": hit.candidate.summary,
                    "importance": hit.candidate.importance,
                    "indexed_at": hit.candidate.indexed_at,
                    "similarity": hit.raw_similarity,
                    "score": hit.final_score,
                }
                for hit in self.sources
            ],
        }


class KnowledgeRetrievalService:
    """Chunk, embed and store turns; rank stored chunks against a query.

    A chunk that cannot be embedded or stored is skipped without aborting
    the rest of the turn. Retrieval failures produce an empty result.
    """

    def __init__(
        self,
        records: VectorRecordStore,
        owner_stats: OwnerStatsStore,
        embedder: EmbeddingProvider,
        settings: Settings,
        executor: Executor | None = None,
    ) -> None:
        self.records = records
        self.owner_stats = owner_stats
        self.embedder = embedder
        self.settings = settings
        self.executor = executor

    # Indexing ---------------------------------------------------------

    def index(
        self,
        owner_id: str,
        source_ref: str,
        text: str,
        role: str,
        source_label: str | None = None,
        source_kind: str = DEFAULT_KIND,
        timeout: float | None = None,
    ) -> IndexResult:
        chunks = chunk_turn(
            text,
            role,
            max_chars=self.settings.chunk_max_chars,
            overlap_words=self.settings.chunk_overlap_words,
        )
        result = self._index_chunks(owner_id, source_ref, chunks, source_label, source_kind, timeout)
        self._record_stats(owner_id, result, conversations=0)
        return result

    def index_conversation(
        self,
        owner_id: str,
        source_ref: str,
        turns: Iterable[tuple[str, str]],
        source_label: str | None = None,
        source_kind: str = DEFAULT_KIND,
        timeout: float | None = None,
        skip_existing: bool = False,
    ) -> IndexResult:
        """Index every ``(role, text)`` turn of one conversation.

        With ``skip_existing`` a conversation that already has chunks under
        ``source_ref`` is left alone.
        """
        if skip_existing and self._already_indexed(owner_id, source_ref, source_kind):
            logger.debug("Conversation %s already indexed for %s", source_ref, owner_id)
            return IndexResult()
        chunks = chunk_conversation(
            turns,
            max_chars=self.settings.chunk_max_chars,
            overlap_words=self.settings.chunk_overlap_words,
        )
        result = self._index_chunks(owner_id, source_ref, chunks, source_label, source_kind, timeout)
        self._record_stats(owner_id, result, conversations=1)
        logger.info(
            "Indexed conversation %s: %s chunks, %s skipped",
            source_ref,
            result.chunks_indexed,
            result.chunks_skipped,
            extra={"ctx_owner": owner_id, "ctx_source": source_ref},
        )
        return result

    def _index_chunks(
        self,
        owner_id: str,
        source_ref: str,
        chunks: Iterable[Chunk],
        source_label: str | None,
        source_kind: str,
        timeout: float | None,
    ) -> IndexResult:
        result = IndexResult()
        for chunk in chunks:
            if not chunk.body.strip():
                result.chunks_skipped += 1
                CHUNKS_INDEXED.labels(status="skipped").inc()
                logger.debug("Skipping blank chunk %s of %s", chunk.ordinal, source_ref)
                continue
            try:
                self._index_chunk(owner_id, source_ref, chunk, source_label, source_kind, timeout)
            except MemoryFeatureError as exc:
                result.chunks_skipped += 1
                CHUNKS_INDEXED.labels(status="skipped").inc()
                report_degradation(
                    logger,
                    "knowledge.index",
                    exc,
                    owner_id=owner_id,
                    action=f"skipped chunk {chunk.ordinal} of {source_ref}",
                )
                continue
            result.chunks_indexed += 1
            CHUNKS_INDEXED.labels(status="indexed").inc()
        return result

    def _index_chunk(
        self,
        owner_id: str,
        source_ref: str,
        chunk: Chunk,
        source_label: str | None,
        source_kind: str,
        timeout: float | None,
    ) -> None:
        text = chunk.text
        vector = self._embed(text, timeout)
        stamp = now_ms()
        self.records.insert(
            IndexedChunk(
                id=new_id("chunk"),
                owner_id=owner_id,
                source_kind=source_kind,
                source_ref=source_ref,
                source_label=source_label,
                text=text,
                summary=preview(text, self.settings.summary_chars),
                vector=vector,
                importance=chunk.importance,
                created_at=stamp,
                indexed_at=stamp,
            )
        )

    def _already_indexed(self, owner_id: str, source_ref: str, source_kind: str) -> bool:
        try:
            return self.records.has_source(owner_id, source_ref, source_kind)
        except MemoryFeatureError as exc:
            report_degradation(logger, "knowledge.index", exc, owner_id=owner_id, action="indexing anyway")
            return False

    def _record_stats(self, owner_id: str, result: IndexResult, conversations: int) -> None:
        if result.chunks_indexed == 0:
            return
        try:
            self.owner_stats.record_indexing(owner_id, result.chunks_indexed, conversations)
        except MemoryFeatureError as exc:
            report_degradation(logger, "knowledge.stats", exc, owner_id=owner_id, action="stats not updated")

    # Retrieval --------------------------------------------------------

    def retrieve(
        self,
        query: str,
        owner_id: str,
        top_k: int | None = None,
        min_score: float | None = None,
        kinds: Sequence[str] | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RetrievalResult:
        top_k = self.settings.retrieval_top_k if top_k is None else top_k
        min_score = self.settings.retrieval_min_score if min_score is None else min_score
        deadline = deadline_after(timeout)
        try:
            vector = self._embed(query, timeout)
            if is_cancelled(cancel_event):
                return RetrievalResult()
            candidates = call_with_timeout(
                partial(self.records.scan, owner_id, kinds=kinds, limit=self.settings.retrieval_scan_limit),
                remaining(deadline),
                self.executor,
                on_timeout=lambda: StoreUnavailable("knowledge store did not answer within the retrieval timeout"),
            )
        except MemoryFeatureError as exc:
            report_degradation(logger, "knowledge.retrieve", exc, owner_id=owner_id, action="returned no context")
            return RetrievalResult()
        if is_cancelled(cancel_event):
            return RetrievalResult()

        hits = search(
            vector,
            candidates,
            top_k=top_k,
            min_score=min_score,
            freshness_window_days=self.settings.freshness_window_days,
        )
        if not hits:
            return RetrievalResult()
        logger.info("Found %s relevant chunks for %s", len(hits), owner_id)
        return RetrievalResult(
            has_context=True,
            sources=hits,
            context_text=format_context(hits, self.settings.summary_chars),
        )

    # Management -------------------------------------------------------

    def prune_older_than(self, owner_id: str, days: float | None = None, kind: str | None = DEFAULT_KIND) -> int:
        age = self.settings.retention_days if days is None else days
        try:
            return self.records.prune_older_than(owner_id, age, kind)
        except MemoryFeatureError as exc:
            report_degradation(logger, "knowledge.prune", exc, owner_id=owner_id, action="nothing pruned")
            return 0

    def stats(self, owner_id: str) -> OwnerMemoryStats:
        try:
            return self.owner_stats.get(owner_id)
        except MemoryFeatureError as exc:
            report_degradation(logger, "knowledge.stats", exc, owner_id=owner_id, action="returned empty stats")
            return OwnerMemoryStats(owner_id=owner_id)

    def stored_chunks(self, owner_id: str) -> int:
        try:
            return self.records.count(owner_id)
        except MemoryFeatureError as exc:
            report_degradation(logger, "knowledge.stats", exc, owner_id=owner_id, action="chunk count unknown")
            return 0

    def _embed(self, text: str, timeout: float | None) -> list[float]:
        limit = timeout if timeout is not None else self.settings.embed_timeout_seconds
        return embed_with_timeout(self.embedder, text, limit, self.executor)


__all__ = ["KnowledgeRetrievalService", "IndexResult", "RetrievalResult"]
