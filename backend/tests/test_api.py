"""API integration tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from memory_cache.api import dependencies as deps
from memory_cache.app import app
from memory_cache.core.errors import StoreUnavailable

QUESTION = "What is a good seed valuation?"


@pytest.fixture
def client(context) -> TestClient:
    deps.set_context(context)
    with TestClient(app) as test_client:
        yield test_client
    deps.set_context(None)


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["ok"] is True
    assert payload["embeddings"] == "fake/fake"


def test_cache_flow(client: TestClient) -> None:
    miss = client.post("/cache/lookup", json={"question": QUESTION, "owner_id": "alice"})
    assert miss.status_code == 200
    assert miss.json()["hit"] is False

    stored = client.post(
        "/cache/store",
        json={"question": QUESTION, "response": "It depends", "owner_id": "alice", "tokens_used": 42},
    )
    assert stored.status_code == 200
    entry_id = stored.json()["entry_id"]
    assert stored.json()["stored"] is True

    hit = client.post("/cache/lookup", json={"question": QUESTION, "owner_id": "alice"}).json()
    assert hit["hit"] is True
    assert hit["source"] == "front"
    assert hit["response"] == "It depends"

    stats = client.get("/cache/stats", params={"owner_id": "alice"}).json()
    assert stats["persistent_cache"]["total_entries"] == 1
    top = client.get("/cache/top", params={"owner_id": "alice"}).json()
    assert top[0]["id"] == entry_id

    assert client.delete(f"/cache/{entry_id}").status_code == 200
    assert client.delete(f"/cache/{entry_id}").status_code == 404
    cleared = client.post("/cache/clear", json={"owner_id": "alice"}).json()
    assert cleared == {"status": "noop", "count": 0}


def test_knowledge_flow(client: TestClient) -> None:
    body = {
        "owner_id": "alice",
        "source_ref": "conv-1",
        "source_label": "Fundraising",
        "turns": [
            {"role": "user", "text": "How should we price the seed round?"},
            {"role": "assistant", "text": "Anchor the seed round price on comparable deals."},
        ],
    }
    indexed = client.post("/knowledge/index", json=body)
    assert indexed.status_code == 200
    assert indexed.json() == {"chunks_indexed": 2, "chunks_skipped": 0}

    found = client.post(
        "/knowledge/retrieve",
        json={"query": "How should we price the seed round?", "owner_id": "alice", "min_score": 0.5},
    ).json()
    assert found["has_context"] is True
    assert found["sources"][0]["source_label"] == "Fundraising"
    assert "Relevant Context from Your History" in found["context_text"]

    stats = client.get("/knowledge/stats/alice").json()
    assert stats["conversations_indexed"] == 1
    assert stats["stored_chunks"] == 2


def test_index_requires_content(client: TestClient) -> None:
    resp = client.post("/knowledge/index", json={"owner_id": "alice", "source_ref": "conv-1"})
    assert resp.status_code == 422


def test_async_index(client: TestClient, context) -> None:
    body = {"owner_id": "alice", "source_ref": "conv-9", "text": "Remember the board meeting", "role": "user"}
    resp = client.post("/knowledge/index/async", json=body)
    assert resp.status_code == 202
    assert resp.json()["job_id"].startswith("job_")
    context.indexer.join()
    assert context.records.count("alice") == 1


def test_maintenance_and_metrics(client: TestClient) -> None:
    assert client.post("/maintenance/prune-expired").json() == {"status": "noop", "count": 0}
    resp = client.post("/maintenance/prune-older-than", json={"owner_id": "alice", "days": 30})
    assert resp.json()["count"] == 0
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "memc_cache_lookups_total" in metrics.text


def test_owner_stats_survive_store_failure(client: TestClient, context, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise StoreUnavailable("disk gone")

    monkeypatch.setattr(context.records, "count", broken)
    resp = client.get("/knowledge/stats/alice")
    assert resp.status_code == 200
    assert resp.json()["stored_chunks"] == 0


def test_misconfigured_embeddings_degrade_to_noop(monkeypatch) -> None:
    monkeypatch.setenv("MEMC_EMBEDDING_PROVIDER", "http")
    with TestClient(app) as test_client:
        health = test_client.get("/health").json()
        assert health["embeddings"] == "unavailable/none"
        assert health["details"]["embeddings_available"] is False

        stored = test_client.post("/cache/store", json={"question": QUESTION, "response": "x", "owner_id": "alice"})
        assert stored.status_code == 200
        assert stored.json() == {"stored": False, "entry_id": None}
        lookup = test_client.post("/cache/lookup", json={"question": QUESTION, "owner_id": "alice"})
        assert lookup.json()["hit"] is False

        body = {"owner_id": "alice", "source_ref": "conv-1", "text": "Remember the board meeting", "role": "user"}
        indexed = test_client.post("/knowledge/index", json=body)
        assert indexed.json() == {"chunks_indexed": 0, "chunks_skipped": 1}
