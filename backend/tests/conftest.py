"""Test fixtures for the memory cache."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from memory_cache.core.errors import EmbeddingUnavailable  # noqa: E402
from memory_cache.ingest.embeddings import HashedEmbeddingProvider  # noqa: E402


class FakeEmbedder:
    """Hashed embeddings with switchable failures and latency."""

    def __init__(self, dim: int = 64) -> None:
        self._inner = HashedEmbeddingProvider(model_name="fake", dim=dim)
        self.calls = 0
        self.fail_calls: set[int] = set()
        self.fail_all = False
        self.delay = 0.0

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake"

    @property
    def dim(self) -> int:
        return self._inner.dim

    def embed(self, text: str) -> list[float]:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail_all or self.calls in self.fail_calls:
            raise EmbeddingUnavailable(f"fake failure on call {self.calls}")
        return self._inner.embed(text)


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("MEMC_DB_PATH", str(tmp_path / "memory.db"))
    monkeypatch.setenv("MEMC_EMBEDDING_PROVIDER", "hashed")
    monkeypatch.delenv("MEMC_CONFIG", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    from memory_cache.api import dependencies as deps
    from memory_cache.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps.close_context()
    yield
    deps.close_context()
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path):
    from memory_cache.core.config import Settings

    return Settings(db_path=tmp_path / "memory.db", embedding_provider="hashed", embedding_dim=64)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder(dim=64)


@pytest.fixture
def context(settings, embedder):
    from memory_cache.core.context import MemoryContext

    ctx = MemoryContext(settings, embedder=embedder, start_indexer=False)
    yield ctx
    ctx.close()
