"""Embedding providers."""

from __future__ import annotations

import hashlib
import logging
import math
import os
import re
import time
from array import array
from concurrent.futures import Executor
from typing import Protocol, Sequence

import requests

from memory_cache.core.config import Settings
from memory_cache.core.errors import EmbeddingUnavailable
from memory_cache.core.metrics import EMBED_LATENCY
from memory_cache.utils.concurrency import call_with_timeout

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector."""

    @property
    def name(self) -> str: ...

    @property
    def model(self) -> str: ...

    @property
    def dim(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...


class HashedEmbeddingProvider:
    """Lightweight hashed embedding model with deterministic output."""

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        self._model = model_name
        self._dim = dim

    @property
    def name(self) -> str:
        return "hashed"

    @property
    def model(self) -> str:
        return self._model

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dim
        for token in _tokenize(text):
            vector[_hash_token(token, self._dim)] += 1.0
        _normalize(vector)
        return vector


class HttpEmbeddingProvider:
    """Client for an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "text-embedding-3-small",
        dim: int = 1536,
        api_base: str = "https://api.openai.com/v1",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model_name
        self._dim = dim
        self._url = f"{api_base.rstrip('/')}/embeddings"
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return "http"

    @property
    def model(self) -> str:
        return self._model

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        try:
            resp = self._session.post(
                self._url,
                json={"model": self._model, "input": [text]},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise EmbeddingUnavailable(f"Embedding request failed: {exc}") from exc
        if not resp.ok:
            raise EmbeddingUnavailable(f"Embedding endpoint returned {resp.status_code}: {resp.text[:200]}")
        try:
            vectors = [[float(value) for value in item["embedding"]] for item in resp.json()["data"]]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingUnavailable(f"Malformed embedding payload: {exc}") from exc
        if len(vectors) != 1:
            raise EmbeddingUnavailable(f"Expected 1 embedding, received {len(vectors)}")
        vector = vectors[0]
        if len(vector) != self._dim:
            raise EmbeddingUnavailable(
                f"Provider returned dimension {len(vector)}, configured dimension is {self._dim}"
            )
        return vector


class UnavailableEmbeddingProvider:
    """Stands in for a provider that could not be configured; every call fails."""

    def __init__(self, reason: str, dim: int) -> None:
        self.reason = reason
        self._dim = dim

    @property
    def name(self) -> str:
        return "unavailable"

    @property
    def model(self) -> str:
        return "none"

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        raise EmbeddingUnavailable(self.reason)


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Build the configured provider; ``auto`` picks HTTP only when an API key is present."""
    api_key = os.environ.get(settings.embedding_api_key_env, "")
    kind = settings.embedding_provider
    if kind == "auto":
        kind = "http" if api_key else "hashed"
    if kind == "http":
        if not api_key:
            raise EmbeddingUnavailable(f"{settings.embedding_api_key_env} is not set")
        logger.info("Using HTTP embedding provider %s", settings.embedding_model)
        return HttpEmbeddingProvider(
            api_key=api_key,
            model_name=settings.embedding_model,
            dim=settings.embedding_dim,
            api_base=settings.embedding_api_base,
            timeout=settings.embed_timeout_seconds,
        )
    logger.info("Using hashed embedding provider (dim=%s)", settings.embedding_dim)
    return HashedEmbeddingProvider(dim=settings.embedding_dim)


def embed_with_timeout(
    provider: EmbeddingProvider,
    text: str,
    timeout: float | None,
    executor: Executor | None,
) -> list[float]:
    """Embed one text, converting any provider failure or timeout into EmbeddingUnavailable."""
    return call_with_timeout(
        lambda: _checked_embed(provider, text),
        timeout,
        executor,
        on_timeout=lambda: EmbeddingUnavailable(f"{provider.name} embedding timed out after {timeout}s"),
    )


def _checked_embed(provider: EmbeddingProvider, text: str) -> list[float]:
    started = time.perf_counter()
    try:
        return provider.embed(text)
    except EmbeddingUnavailable:
        raise
    except Exception as exc:
        raise EmbeddingUnavailable(f"{provider.name} embedding failed: {exc}") from exc
    finally:
        EMBED_LATENCY.labels(provider=provider.name).observe(time.perf_counter() - started)


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def bytes_to_vector(payload: bytes) -> list[float]:
    floats = array("f")
    floats.frombytes(payload)
    return list(floats)


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingProvider",
    "HashedEmbeddingProvider",
    "HttpEmbeddingProvider",
    "UnavailableEmbeddingProvider",
    "create_embedding_provider",
    "embed_with_timeout",
    "vector_to_bytes",
    "bytes_to_vector",
]
