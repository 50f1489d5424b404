"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "memc_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "memc_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

CACHE_LOOKUPS = Counter(
    "memc_cache_lookups_total",
    "Semantic cache lookups by outcome",
    labelnames=("result", "source"),
    registry=REGISTRY,
)

CACHE_STORES = Counter(
    "memc_cache_stores_total",
    "Semantic cache insertions by outcome",
    labelnames=("status",),
    registry=REGISTRY,
)

DEGRADATIONS = Counter(
    "memc_degradations_total",
    "Memory features that degraded to a no-op",
    labelnames=("component", "error"),
    registry=REGISTRY,
)

CHUNKS_INDEXED = Counter(
    "memc_chunks_indexed_total",
    "Knowledge chunks indexed or skipped",
    labelnames=("status",),
    registry=REGISTRY,
)

INDEX_JOBS = Counter(
    "memc_index_jobs_total",
    "Background indexing jobs by final outcome",
    labelnames=("status",),
    registry=REGISTRY,
)

EMBED_LATENCY = Histogram(
    "memc_embed_latency_seconds",
    "Embedding provider call latency",
    labelnames=("provider",),
    registry=REGISTRY,
)

FRONT_CACHE_SIZE = Gauge(
    "memc_front_cache_entries",
    "Number of entries held in the front cache",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "CACHE_LOOKUPS",
    "CACHE_STORES",
    "DEGRADATIONS",
    "CHUNKS_INDEXED",
    "INDEX_JOBS",
    "EMBED_LATENCY",
    "FRONT_CACHE_SIZE",
    "metrics_response",
]
