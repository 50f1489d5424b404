"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

STATS_SCHEMA_VERSION = 1


@dataclass(slots=True, frozen=True)
class IndexedChunk:
    """A unit of long-term knowledge; never mutated after insertion."""

    id: str
    owner_id: str
    source_kind: str
    source_ref: str
    source_label: str | None
    text: str
    summary: str
    vector: list[float] = field(repr=False)
    importance: float
    created_at: int
    indexed_at: int


@dataclass(slots=True)
class CacheEntry:
    """A cached question/response pair.

    ``expires_at`` is always ``created_at`` plus the configured TTL. Only
    ``hit_count`` and ``last_hit_at`` change after creation.
    """

    id: str
    owner_id: str
    scope: str
    question_text: str
    question_vector: list[float] = field(repr=False)
    response_text: str
    model: str | None
    provider: str | None
    created_at: int
    expires_at: int
    hit_count: int = 0
    last_hit_at: int | None = None
    tokens_saved: int = 0

    # candidate view used by the similarity search
    @property
    def vector(self) -> list[float]:
        return self.question_vector

    @property
    def importance(self) -> float:
        return 0.0

    @property
    def indexed_at(self) -> int:
        return self.created_at

    def is_expired(self, now: int) -> bool:
        return self.expires_at <= now

    def copy(self) -> "CacheEntry":
        return replace(self, question_vector=list(self.question_vector))


@dataclass(slots=True)
class OwnerMemoryStats:
    """Per-owner indexing counters, stored as a versioned row."""

    owner_id: str
    schema_version: int = STATS_SCHEMA_VERSION
    total_elements: int = 0
    conversations_indexed: int = 0
    last_indexed_at: int | None = None
    updated_at: int | None = None


__all__ = ["IndexedChunk", "CacheEntry", "OwnerMemoryStats", "STATS_SCHEMA_VERSION"]
