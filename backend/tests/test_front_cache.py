"""Tests for the in-process front cache."""

from memory_cache.cache.front_cache import FrontCache
from memory_cache.models.entities import CacheEntry
from memory_cache.utils.time import now_ms


def _entry(idx: int, owner: str = "alice", scope: str = "chat", ttl_ms: int = 60_000) -> CacheEntry:
    created = now_ms()
    vector = [0.0] * 128
    vector[idx % 128] = 1.0
    return CacheEntry(
        id=f"cache_{idx}",
        owner_id=owner,
        scope=scope,
        question_text=f"question {idx}",
        question_vector=vector,
        response_text=f"answer {idx}",
        model=None,
        provider=None,
        created_at=created,
        expires_at=created + ttl_ms,
    )


def test_capacity_evicts_oldest_insertion() -> None:
    cache = FrontCache(capacity=100)
    entries = [_entry(i) for i in range(101)]
    for entry in entries:
        cache.insert(entry)
    assert cache.size == 100
    assert "cache_0" not in cache
    assert cache.lookup(entries[0].question_vector, "alice", "chat") is None
    hit = cache.lookup(entries[100].question_vector, "alice", "chat")
    assert hit is not None and hit.entry.id == "cache_100"


def test_lookup_is_scoped_by_owner_and_scope() -> None:
    cache = FrontCache()
    entry = _entry(1)
    cache.insert(entry)
    assert cache.lookup(entry.question_vector, "bob", "chat") is None
    assert cache.lookup(entry.question_vector, "alice", "other") is None
    assert cache.lookup(entry.question_vector, "alice", "chat") is not None


def test_insert_stores_a_copy() -> None:
    cache = FrontCache()
    entry = _entry(2)
    cache.insert(entry)
    entry.response_text = "mutated"
    hit = cache.lookup(entry.question_vector, "alice", "chat")
    assert hit is not None and hit.entry.response_text == "answer 2"


def test_expired_entries_are_dropped() -> None:
    cache = FrontCache()
    entry = _entry(3, ttl_ms=10)
    cache.insert(entry)
    assert cache.lookup(entry.question_vector, "alice", "chat", now_ms=entry.expires_at) is None
    assert cache.size == 0


def test_remove_and_clear() -> None:
    cache = FrontCache()
    cache.insert(_entry(1))
    cache.insert(_entry(2, owner="bob"))
    assert cache.remove("cache_1") is True
    assert cache.remove("cache_1") is False
    assert cache.clear("bob") == 1
    assert len(cache) == 0
