"""Housekeeping jobs: cache TTL expiry and knowledge retention."""

from __future__ import annotations

from memory_cache.cache.service import SemanticCacheService
from memory_cache.core.errors import MemoryFeatureError, report_degradation
from memory_cache.core.logging import get_logger
from memory_cache.retrieval.knowledge import KnowledgeRetrievalService

logger = get_logger(__name__)


class MaintenanceService:
    def __init__(self, cache: SemanticCacheService, knowledge: KnowledgeRetrievalService) -> None:
        self.cache = cache
        self.knowledge = knowledge

    def prune_expired(self) -> int:
        """Delete every cache entry whose TTL has passed."""
        try:
            removed = self.cache.prune_expired()
        except MemoryFeatureError as exc:
            report_degradation(logger, "maintenance.prune_expired", exc, action="nothing pruned")
            return 0
        logger.info("Pruned %s expired cache entries", removed)
        return removed

    def prune_older_than(self, owner_id: str, days: float | None = None, kind: str | None = "conversation") -> int:
        """Delete the owner's knowledge chunks indexed more than ``days`` ago."""
        removed = self.knowledge.prune_older_than(owner_id, days, kind)
        logger.info("Pruned %s knowledge chunks for %s", removed, owner_id, extra={"ctx_owner": owner_id})
        return removed


__all__ = ["MaintenanceService"]
