"""Explicit wiring of every memory component from one ``Settings``."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from memory_cache.cache.front_cache import FrontCache
from memory_cache.cache.service import SemanticCacheService
from memory_cache.cache.store import CacheEntryStore
from memory_cache.core.config import Settings
from memory_cache.core.errors import EmbeddingUnavailable, report_degradation
from memory_cache.core.logging import get_logger
from memory_cache.db.sqlite import SQLiteDatabase
from memory_cache.ingest.background import BackgroundIndexer, RetryConfig
from memory_cache.ingest.embeddings import (
    EmbeddingProvider,
    UnavailableEmbeddingProvider,
    create_embedding_provider,
)
from memory_cache.maintenance import MaintenanceService
from memory_cache.retrieval.knowledge import KnowledgeRetrievalService
from memory_cache.retrieval.owner_stats import OwnerStatsStore
from memory_cache.retrieval.vector_store import VectorRecordStore

logger = get_logger(__name__)


class MemoryContext:
    """Owns the database, the embedding provider, the worker pool and the services.

    Build one per process and pass it to whatever needs memory features.
    """

    def __init__(
        self,
        settings: Settings,
        embedder: EmbeddingProvider | None = None,
        start_indexer: bool = True,
    ) -> None:
        self.settings = settings
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db = SQLiteDatabase(settings.db_path, lock_timeout=settings.store_timeout_seconds)
        self.db.ensure_schema()
        self.embedder = embedder or self._build_embedder(settings)
        self.executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="memc")

        self.cache_store = CacheEntryStore(self.db)
        self.front_cache = FrontCache(
            capacity=settings.front_cache_capacity,
            similarity_threshold=settings.cache_similarity_threshold,
        )
        self.cache = SemanticCacheService(
            self.cache_store, self.front_cache, self.embedder, settings, executor=self.executor
        )

        self.records = VectorRecordStore(self.db)
        self.owner_stats = OwnerStatsStore(self.db)
        self.knowledge = KnowledgeRetrievalService(
            self.records, self.owner_stats, self.embedder, settings, executor=self.executor
        )
        self.indexer = BackgroundIndexer(
            self.knowledge, RetryConfig(max_attempts=settings.indexer_max_attempts)
        )
        self.maintenance = MaintenanceService(self.cache, self.knowledge)
        if start_indexer:
            self.indexer.start()
        logger.info("Memory context ready (db=%s, embeddings=%s)", settings.db_path, self.embedder.name)

    @staticmethod
    def _build_embedder(settings: Settings) -> EmbeddingProvider:
        """Configured provider, or one that fails every call when configuration is broken."""
        try:
            return create_embedding_provider(settings)
        except EmbeddingUnavailable as exc:
            report_degradation(logger, "embeddings", exc, action="memory features disabled")
            return UnavailableEmbeddingProvider(str(exc), settings.embedding_dim)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs) -> "MemoryContext":
        return cls(settings or Settings.from_yaml(), **kwargs)

    def close(self) -> None:
        self.indexer.stop()
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.db.close()

    def __enter__(self) -> "MemoryContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["MemoryContext"]
