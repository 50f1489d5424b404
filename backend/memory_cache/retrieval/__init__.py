"""Retrieval components: vector storage, ranking and the knowledge service."""

from .similarity import SearchHit, best_match, cosine_similarity, search
from .vector_store import VectorRecordStore
from .knowledge import IndexResult, KnowledgeRetrievalService, RetrievalResult
from .formatting import format_context

__all__ = [
    "SearchHit",
    "best_match",
    "cosine_similarity",
    "search",
    "VectorRecordStore",
    "IndexResult",
    "KnowledgeRetrievalService",
    "RetrievalResult",
    "format_context",
]
