"""Error types for the memory features and the degradation reporter."""

from __future__ import annotations

import logging

from memory_cache.core.metrics import DEGRADATIONS


class MemoryFeatureError(Exception):
    """Base class for failures inside the memory subsystem."""

    kind = "memory_error"


class EmbeddingUnavailable(MemoryFeatureError):
    """Embedding provider is down, misconfigured, or timed out."""

    kind = "embedding_unavailable"


class DimensionMismatch(MemoryFeatureError):
    """A vector's dimension disagrees with the one it is compared or stored against."""

    kind = "dimension_mismatch"

    def __init__(self, expected: int, actual: int, record_id: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        target = f" for record {record_id}" if record_id else ""
        super().__init__(f"Vector dimension mismatch{target}: expected {expected}, got {actual}")


class StoreUnavailable(MemoryFeatureError):
    """Durable backend is unreachable, locked past its timeout, or failing."""

    kind = "store_unavailable"


def report_degradation(
    logger: logging.Logger,
    component: str,
    exc: BaseException,
    owner_id: str | None = None,
    action: str = "degraded to no-op",
) -> None:
    """Log and count a memory feature falling back instead of failing the caller."""
    kind = exc.kind if isinstance(exc, MemoryFeatureError) else type(exc).__name__
    DEGRADATIONS.labels(component=component, error=kind).inc()
    logger.warning(
        "%s %s: %s",
        component,
        action,
        exc,
        extra={"ctx_component": component, "ctx_error": kind, "ctx_owner": owner_id},
    )


__all__ = [
    "MemoryFeatureError",
    "EmbeddingUnavailable",
    "DimensionMismatch",
    "StoreUnavailable",
    "report_degradation",
]
