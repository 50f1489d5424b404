"""Tests for embedding utilities."""

import pytest
import requests

from memory_cache.core.config import Settings
from memory_cache.core.errors import EmbeddingUnavailable
from memory_cache.core.metrics import REGISTRY
from memory_cache.ingest.embeddings import (
    HashedEmbeddingProvider,
    HttpEmbeddingProvider,
    UnavailableEmbeddingProvider,
    bytes_to_vector,
    create_embedding_provider,
    embed_with_timeout,
    vector_to_bytes,
)


class _Response:
    def __init__(self, status: int, payload: object) -> None:
        self.status_code = status
        self.ok = 200 <= status < 300
        self._payload = payload
        self.text = str(payload)

    def json(self) -> object:
        return self._payload


class _Session:
    def __init__(self, response: _Response | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    def post(self, url: str, **kwargs) -> _Response:
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def test_hashed_provider_is_normalized_and_deterministic() -> None:
    provider = HashedEmbeddingProvider(dim=32)
    vector = provider.embed("hello")
    assert len(vector) == provider.dim
    assert abs(sum(value * value for value in vector) - 1.0) < 1e-6
    assert provider.embed("hello") == vector
    assert provider.embed("world") != vector


def test_vector_bytes_roundtrip() -> None:
    vector = [0.5, -0.25, 1.0]
    assert bytes_to_vector(vector_to_bytes(vector)) == vector


def test_http_provider_parses_response() -> None:
    session = _Session(_Response(200, {"data": [{"index": 0, "embedding": [1.0, 0.0]}]}))
    provider = HttpEmbeddingProvider(api_key="k", dim=2, api_base="http://embed.local/v1/", session=session)
    assert provider.embed("a") == [1.0, 0.0]
    assert session.calls[0]["url"] == "http://embed.local/v1/embeddings"
    assert session.calls[0]["headers"]["Authorization"] == "Bearer k"
    assert session.calls[0]["json"]["input"] == ["a"]


@pytest.mark.parametrize(
    "session",
    [
        _Session(error=requests.ConnectionError("refused")),
        _Session(_Response(500, {"error": "boom"})),
        _Session(_Response(200, {"unexpected": True})),
        _Session(_Response(200, {"data": [{"index": 0, "embedding": [1.0, 0.0, 0.0]}]})),
        _Session(_Response(200, {"data": [{"embedding": [1.0, 0.0]}, {"embedding": [0.0, 1.0]}]})),
    ],
)
def test_http_provider_failures_raise_unavailable(session) -> None:
    provider = HttpEmbeddingProvider(api_key="k", dim=2, session=session)
    with pytest.raises(EmbeddingUnavailable):
        provider.embed("hello")


def test_factory_picks_provider(monkeypatch) -> None:
    settings = Settings(embedding_provider="auto")
    assert create_embedding_provider(settings).name == "hashed"
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert create_embedding_provider(settings).name == "http"
    monkeypatch.delenv("OPENAI_API_KEY")
    with pytest.raises(EmbeddingUnavailable):
        create_embedding_provider(Settings(embedding_provider="http"))


def test_unavailable_provider_always_fails() -> None:
    provider = UnavailableEmbeddingProvider("OPENAI_API_KEY is not set", dim=8)
    with pytest.raises(EmbeddingUnavailable, match="OPENAI_API_KEY"):
        embed_with_timeout(provider, "hello", None, None)


def test_latency_is_recorded_for_every_provider() -> None:
    labels = {"provider": "hashed"}
    before = REGISTRY.get_sample_value("memc_embed_latency_seconds_count", labels) or 0.0
    embed_with_timeout(HashedEmbeddingProvider(dim=8), "hello", None, None)
    assert REGISTRY.get_sample_value("memc_embed_latency_seconds_count", labels) == before + 1
