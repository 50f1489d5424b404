"""Cosine ranking with freshness decay.

Everything here is pure: no I/O, no clock reads unless ``now_ms`` is omitted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Generic, Protocol, Sequence, TypeVar

from memory_cache.core.errors import DimensionMismatch, report_degradation
from memory_cache.utils.time import age_in_days, now_ms as current_ms

logger = logging.getLogger(__name__)

FRESHNESS_FLOOR = 0.5
SIMILARITY_WEIGHT = 0.7
FRESHNESS_WEIGHT = 0.3


class Candidate(Protocol):
    @property
    def vector(self) -> Sequence[float]: ...

    @property
    def importance(self) -> float: ...

    @property
    def indexed_at(self) -> int: ...


C = TypeVar("C", bound=Candidate)


@dataclass(slots=True, frozen=True)
class SearchHit(Generic[C]):
    candidate: C
    raw_similarity: float
    final_score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """``dot(a, b) / (|a||b|)``; 0.0 when either vector has zero norm."""
    if len(a) != len(b):
        raise DimensionMismatch(expected=len(a), actual=len(b))
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    if norm_a == norm_b and dot == norm_a:
        # identical direction and length; avoids 0.9999999 from sqrt rounding
        return 1.0
    return max(-1.0, min(1.0, dot / (math.sqrt(norm_a) * math.sqrt(norm_b))))


def freshness_multiplier(age_days: float, window_days: float, floor: float = FRESHNESS_FLOOR) -> float:
    return max(floor, 1.0 - max(0.0, age_days) / window_days)


def apply_freshness(
    similarity: float,
    age_days: float,
    window_days: float,
    similarity_weight: float = SIMILARITY_WEIGHT,
    freshness_weight: float = FRESHNESS_WEIGHT,
) -> float:
    fresh = freshness_multiplier(age_days, window_days)
    return similarity * (similarity_weight + freshness_weight * fresh)


def search(
    query_vector: Sequence[float],
    candidates: Sequence[C],
    top_k: int,
    min_score: float,
    freshness_window_days: float | None = None,
    now_ms: int | None = None,
) -> list[SearchHit[C]]:
    """Rank ``candidates`` against ``query_vector``.

    Candidates whose vector dimension disagrees with the query are skipped
    and reported; they never fail the whole search. Ties on the final score
    fall back to higher importance, then the more recently indexed record.
    """
    if top_k <= 0 or not candidates:
        return []
    reference = now_ms if now_ms is not None else current_ms()
    scored: list[SearchHit[C]] = []
    for candidate in candidates:
        try:
            sim = cosine_similarity(query_vector, candidate.vector)
        except DimensionMismatch as exc:
            record_id = getattr(candidate, "id", None)
            report_degradation(
                logger,
                "similarity",
                DimensionMismatch(exc.expected, exc.actual, record_id),
                action="skipped candidate",
            )
            continue
        if freshness_window_days:
            final = apply_freshness(sim, age_in_days(candidate.indexed_at, reference), freshness_window_days)
        else:
            final = sim
        if final < min_score:
            continue
        scored.append(SearchHit(candidate=candidate, raw_similarity=sim, final_score=final))
    scored.sort(key=lambda hit: (-hit.final_score, -hit.candidate.importance, -hit.candidate.indexed_at))
    return scored[:top_k]


def best_match(
    query_vector: Sequence[float],
    candidates: Sequence[C],
    threshold: float,
) -> SearchHit[C] | None:
    """Highest raw similarity at or above ``threshold``, without freshness decay."""
    hits = search(query_vector, candidates, top_k=1, min_score=threshold)
    return hits[0] if hits else None


__all__ = [
    "SearchHit",
    "cosine_similarity",
    "freshness_multiplier",
    "apply_freshness",
    "search",
    "best_match",
    "FRESHNESS_FLOOR",
    "SIMILARITY_WEIGHT",
    "FRESHNESS_WEIGHT",
]
