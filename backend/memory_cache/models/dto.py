"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class CacheLookupRequest(BaseModel):
    question: str
    owner_id: str
    scope: str = "default"
    timeout: float | None = Field(default=None, gt=0)


class CacheLookupResponse(BaseModel):
    hit: bool
    response: str | None = None
    similarity: float | None = None
    source: Literal["front", "durable"] | None = None
    entry_id: str | None = None
    original_question: str | None = None


class CacheStoreRequest(BaseModel):
    question: str
    response: str
    owner_id: str
    scope: str = "default"
    model: str | None = None
    provider: str | None = None
    tokens_used: int = Field(default=0, ge=0)


class CacheStoreResponse(BaseModel):
    stored: bool
    entry_id: str | None = None


class CacheClearRequest(BaseModel):
    owner_id: str | None = Field(default=None, description="Clear one owner's entries; all entries when omitted")


class CountResponse(BaseModel):
    status: Literal["ok", "noop"]
    count: int


class InvalidateResponse(BaseModel):
    removed: bool


class CacheTopEntry(BaseModel):
    id: str
    question: str
    hit_count: int
    created_at: int
    last_hit_at: int | None = None


class Turn(BaseModel):
    role: str = Field(description="'user' or 'assistant'")
    text: str


class IndexRequest(BaseModel):
    owner_id: str
    source_ref: str
    source_label: str | None = None
    source_kind: str = "conversation"
    text: str | None = Field(default=None, description="A single turn; requires role")
    role: str | None = None
    turns: list[Turn] | None = Field(default=None, description="A whole conversation")
    skip_existing: bool = Field(default=False, description="Skip conversations already indexed under source_ref")

    def as_turns(self) -> list[tuple[str, str]]:
        if self.turns:
            return [(turn.role, turn.text) for turn in self.turns]
        if self.text is not None:
            return [(self.role or "user", self.text)]
        return []


class IndexResponse(BaseModel):
    chunks_indexed: int
    chunks_skipped: int


class IndexJobResponse(BaseModel):
    job_id: str
    pending: int


class RetrieveRequest(BaseModel):
    query: str
    owner_id: str
    top_k: int | None = Field(default=None, ge=1, le=50)
    min_score: float | None = Field(default=None, ge=0.0, le=1.0)
    kinds: list[str] | None = None
    timeout: float | None = Field(default=None, gt=0)


class RetrievedSource(BaseModel):
    id: str
    source_kind: str
    source_ref: str
    source_label: str | None = None
    summary: str
    importance: float
    indexed_at: int
    similarity: float
    score: float


class RetrieveResponse(BaseModel):
    has_context: bool
    context_text: str
    sources: list[RetrievedSource]


class OwnerStatsResponse(BaseModel):
    owner_id: str
    schema_version: int
    total_elements: int
    conversations_indexed: int
    stored_chunks: int
    last_indexed_at: datetime | None = None
    updated_at: datetime | None = None


class PruneOlderThanRequest(BaseModel):
    owner_id: str
    days: float | None = Field(default=None, gt=0)
    kind: str | None = "conversation"


class HealthResponse(BaseModel):
    ok: bool
    embeddings: str
    indexer_running: bool
    pending_jobs: int
    details: dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "CacheLookupRequest",
    "CacheLookupResponse",
    "CacheStoreRequest",
    "CacheStoreResponse",
    "CacheClearRequest",
    "CountResponse",
    "InvalidateResponse",
    "CacheTopEntry",
    "Turn",
    "IndexRequest",
    "IndexResponse",
    "IndexJobResponse",
    "RetrieveRequest",
    "RetrievedSource",
    "RetrieveResponse",
    "OwnerStatsResponse",
    "PruneOlderThanRequest",
    "HealthResponse",
]
