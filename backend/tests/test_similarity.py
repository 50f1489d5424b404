"""Tests for cosine ranking and freshness decay."""

from dataclasses import dataclass

import pytest

from memory_cache.core.errors import DimensionMismatch
from memory_cache.retrieval.similarity import (
    apply_freshness,
    best_match,
    cosine_similarity,
    freshness_multiplier,
    search,
)
from memory_cache.utils.time import MS_PER_DAY

NOW = 1_000 * MS_PER_DAY


@dataclass
class Item:
    id: str
    vector: list[float]
    importance: float = 0.5
    indexed_at: int = NOW


def test_cosine_basics() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == 1.0
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


def test_cosine_is_symmetric() -> None:
    a, b = [0.3, 0.1, 0.9], [0.5, 0.7, 0.2]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_dimension_mismatch() -> None:
    with pytest.raises(DimensionMismatch) as excinfo:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert excinfo.value.expected == 2
    assert excinfo.value.actual == 3


def test_freshness_floor_and_weights() -> None:
    assert freshness_multiplier(0, 90) == 1.0
    assert freshness_multiplier(45, 90) == pytest.approx(0.5)
    assert freshness_multiplier(200, 90) == 0.5
    assert freshness_multiplier(-5, 90) == 1.0
    assert apply_freshness(1.0, 0, 90) == pytest.approx(1.0)
    assert apply_freshness(1.0, 500, 90) == pytest.approx(0.85)


def test_search_orders_and_filters() -> None:
    candidates = [
        Item("orthogonal", [0.0, 1.0]),
        Item("close", [0.9, 0.1]),
        Item("exact", [1.0, 0.0]),
    ]
    hits = search([1.0, 0.0], candidates, top_k=5, min_score=0.5)
    assert [hit.candidate.id for hit in hits] == ["exact", "close"]
    assert hits[0].final_score >= hits[1].final_score


def test_search_ties_break_on_importance_then_recency() -> None:
    candidates = [
        Item("old-low", [1.0, 0.0], importance=0.4, indexed_at=NOW - 10),
        Item("new-low", [1.0, 0.0], importance=0.4, indexed_at=NOW),
        Item("high", [1.0, 0.0], importance=0.6, indexed_at=NOW - 20),
    ]
    hits = search([1.0, 0.0], candidates, top_k=3, min_score=0.0)
    assert [hit.candidate.id for hit in hits] == ["high", "new-low", "old-low"]


def test_search_freshness_prefers_recent() -> None:
    candidates = [
        Item("120d", [1.0, 0.0], indexed_at=NOW - 120 * MS_PER_DAY),
        Item("1d", [1.0, 0.0], indexed_at=NOW - 1 * MS_PER_DAY),
        Item("60d", [1.0, 0.0], indexed_at=NOW - 60 * MS_PER_DAY),
    ]
    hits = search([1.0, 0.0], candidates, top_k=3, min_score=0.0, freshness_window_days=90, now_ms=NOW)
    assert hits[0].candidate.id == "1d"
    assert hits[0].raw_similarity == pytest.approx(1.0)
    assert hits[0].final_score > hits[1].final_score


def test_search_skips_mismatched_candidates() -> None:
    candidates = [Item("bad", [1.0, 0.0, 0.0]), Item("good", [1.0, 0.0])]
    hits = search([1.0, 0.0], candidates, top_k=3, min_score=0.0)
    assert [hit.candidate.id for hit in hits] == ["good"]


def test_search_empty_and_zero_k() -> None:
    assert search([1.0], [], top_k=3, min_score=0.0) == []
    assert search([1.0], [Item("a", [1.0])], top_k=0, min_score=0.0) == []


def test_best_match_threshold() -> None:
    candidates = [Item("near", [0.95, 0.05]), Item("far", [0.5, 0.5])]
    match = best_match([1.0, 0.0], candidates, threshold=0.92)
    assert match is not None and match.candidate.id == "near"
    assert best_match([0.0, 1.0], candidates, threshold=0.92) is None


def test_search_is_deterministic() -> None:
    candidates = [
        Item("a", [0.8, 0.6], importance=0.4, indexed_at=NOW - 5 * MS_PER_DAY),
        Item("b", [0.6, 0.8], importance=0.6, indexed_at=NOW - 30 * MS_PER_DAY),
        Item("c", [0.8, 0.6], importance=0.4, indexed_at=NOW - 5 * MS_PER_DAY),
        Item("d", [1.0, 0.0], importance=0.5, indexed_at=NOW - 200 * MS_PER_DAY),
    ]
    runs = [
        [
            (hit.candidate.id, hit.raw_similarity, hit.final_score)
            for hit in search([1.0, 0.0], candidates, top_k=4, min_score=0.0, freshness_window_days=90, now_ms=NOW)
        ]
        for _ in range(5)
    ]
    assert all(run == runs[0] for run in runs)
    assert [item_id for item_id, _, _ in runs[0]] == ["d", "a", "c", "b"]
