"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from memory_cache.cache.service import SemanticCacheService
from memory_cache.core.config import Settings, get_settings
from memory_cache.core.context import MemoryContext
from memory_cache.maintenance import MaintenanceService
from memory_cache.retrieval.knowledge import KnowledgeRetrievalService

_CONTEXT: MemoryContext | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_context() -> MemoryContext:
    global _CONTEXT
    if _CONTEXT is None:
        _CONTEXT = MemoryContext(get_app_settings())
    return _CONTEXT


def set_context(context: MemoryContext | None) -> None:
    """Install a prebuilt context, or forget the current one."""
    global _CONTEXT
    _CONTEXT = context


def close_context() -> None:
    global _CONTEXT
    if _CONTEXT is not None:
        _CONTEXT.close()
        _CONTEXT = None


def get_cache_service() -> SemanticCacheService:
    return get_context().cache


def get_knowledge_service() -> KnowledgeRetrievalService:
    return get_context().knowledge


def get_maintenance_service() -> MaintenanceService:
    return get_context().maintenance


__all__ = [
    "get_app_settings",
    "get_context",
    "set_context",
    "close_context",
    "get_cache_service",
    "get_knowledge_service",
    "get_maintenance_service",
]
