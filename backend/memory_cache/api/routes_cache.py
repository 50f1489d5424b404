"""Semantic cache routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from memory_cache.api.dependencies import get_cache_service
from memory_cache.cache.service import SemanticCacheService
from memory_cache.models.dto import (
    CacheClearRequest,
    CacheLookupRequest,
    CacheLookupResponse,
    CacheStoreRequest,
    CacheStoreResponse,
    CacheTopEntry,
    CountResponse,
    InvalidateResponse,
)

router = APIRouter()


@router.post("/lookup", response_model=CacheLookupResponse, summary="Find a cached answer for a question")
def lookup(
    request: CacheLookupRequest,
    service: SemanticCacheService = Depends(get_cache_service),
) -> CacheLookupResponse:
    result = service.lookup(request.question, request.owner_id, request.scope, timeout=request.timeout)
    return CacheLookupResponse(**result.to_dict())


@router.post("/store", response_model=CacheStoreResponse, summary="Cache an answer")
def store(
    request: CacheStoreRequest,
    service: SemanticCacheService = Depends(get_cache_service),
) -> CacheStoreResponse:
    entry_id = service.store(
        request.question,
        request.response,
        request.owner_id,
        request.scope,
        model=request.model,
        provider=request.provider,
        tokens_used=request.tokens_used,
    )
    return CacheStoreResponse(stored=entry_id is not None, entry_id=entry_id)


@router.delete("/{entry_id}", response_model=InvalidateResponse, summary="Invalidate one cache entry")
def invalidate(entry_id: str, service: SemanticCacheService = Depends(get_cache_service)) -> InvalidateResponse:
    if not service.invalidate(entry_id):
        raise HTTPException(status_code=404, detail="Cache entry not found")
    return InvalidateResponse(removed=True)


@router.post("/clear", response_model=CountResponse, summary="Clear cached answers")
def clear(request: CacheClearRequest, service: SemanticCacheService = Depends(get_cache_service)) -> CountResponse:
    cleared = service.clear(request.owner_id)
    return CountResponse(status="ok" if cleared else "noop", count=cleared)


@router.get("/stats", summary="Cache statistics")
def stats(
    owner_id: str | None = Query(default=None),
    service: SemanticCacheService = Depends(get_cache_service),
) -> dict:
    return service.stats(owner_id)


@router.get("/top", response_model=list[CacheTopEntry], summary="Most frequently hit entries")
def top(
    owner_id: str = Query(...),
    limit: int = Query(default=10, ge=1, le=100),
    service: SemanticCacheService = Depends(get_cache_service),
) -> list[CacheTopEntry]:
    return [CacheTopEntry(**row) for row in service.most_used(owner_id, limit)]


__all__ = ["router"]
