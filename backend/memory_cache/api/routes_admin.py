"""Administrative routes: maintenance, health and metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from memory_cache.api.dependencies import get_context, get_maintenance_service
from memory_cache.core.context import MemoryContext
from memory_cache.core.metrics import metrics_response
from memory_cache.maintenance import MaintenanceService
from memory_cache.models.dto import CountResponse, HealthResponse, PruneOlderThanRequest

router = APIRouter()


@router.post("/maintenance/prune-expired", response_model=CountResponse, summary="Delete expired cache entries")
def prune_expired(service: MaintenanceService = Depends(get_maintenance_service)) -> CountResponse:
    removed = service.prune_expired()
    return CountResponse(status="ok" if removed else "noop", count=removed)


@router.post(
    "/maintenance/prune-older-than",
    response_model=CountResponse,
    summary="Delete an owner's knowledge older than a number of days",
)
def prune_older_than(
    request: PruneOlderThanRequest,
    service: MaintenanceService = Depends(get_maintenance_service),
) -> CountResponse:
    removed = service.prune_older_than(request.owner_id, request.days, request.kind)
    return CountResponse(status="ok" if removed else "noop", count=removed)


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
def health(context: MemoryContext = Depends(get_context)) -> HealthResponse:
    return HealthResponse(
        ok=True,
        embeddings=f"{context.embedder.name}/{context.embedder.model}",
        indexer_running=context.indexer.running,
        pending_jobs=context.indexer.pending,
        details={
            "front_cache_size": context.front_cache.size,
            "db_path": str(context.settings.db_path),
            "embeddings_available": context.embedder.name != "unavailable",
        },
    )


@router.get("/metrics", summary="Prometheus metrics")
def get_metrics():
    return metrics_response()


__all__ = ["router"]
