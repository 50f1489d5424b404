"""Long-term knowledge routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from memory_cache.api.dependencies import get_context, get_knowledge_service
from memory_cache.core.context import MemoryContext
from memory_cache.ingest.background import IndexJob
from memory_cache.models.dto import (
    IndexJobResponse,
    IndexRequest,
    IndexResponse,
    OwnerStatsResponse,
    RetrieveRequest,
    RetrieveResponse,
)
from memory_cache.retrieval.knowledge import KnowledgeRetrievalService
from memory_cache.utils.time import ms_to_datetime

router = APIRouter()


@router.post("/index", response_model=IndexResponse, summary="Index a turn or a conversation now")
def index(
    request: IndexRequest,
    service: KnowledgeRetrievalService = Depends(get_knowledge_service),
) -> IndexResponse:
    if request.turns:
        result = service.index_conversation(
            request.owner_id,
            request.source_ref,
            request.as_turns(),
            source_label=request.source_label,
            source_kind=request.source_kind,
            skip_existing=request.skip_existing,
        )
    elif request.text is not None and request.role:
        result = service.index(
            request.owner_id,
            request.source_ref,
            request.text,
            request.role,
            source_label=request.source_label,
            source_kind=request.source_kind,
        )
    else:
        raise HTTPException(status_code=422, detail="Provide turns, or text with a role")
    return IndexResponse(chunks_indexed=result.chunks_indexed, chunks_skipped=result.chunks_skipped)


@router.post(
    "/index/async",
    response_model=IndexJobResponse,
    status_code=202,
    summary="Queue a conversation for background indexing",
)
def index_async(request: IndexRequest, context: MemoryContext = Depends(get_context)) -> IndexJobResponse:
    turns = request.as_turns()
    if not turns:
        raise HTTPException(status_code=422, detail="Provide turns, or text with a role")
    job_id = context.indexer.submit(
        IndexJob(
            owner_id=request.owner_id,
            source_ref=request.source_ref,
            turns=turns,
            source_label=request.source_label,
            source_kind=request.source_kind,
            skip_existing=request.skip_existing,
        )
    )
    return IndexJobResponse(job_id=job_id, pending=context.indexer.pending)


@router.post("/retrieve", response_model=RetrieveResponse, summary="Retrieve context relevant to a query")
def retrieve(
    request: RetrieveRequest,
    service: KnowledgeRetrievalService = Depends(get_knowledge_service),
) -> RetrieveResponse:
    result = service.retrieve(
        request.query,
        request.owner_id,
        top_k=request.top_k,
        min_score=request.min_score,
        kinds=request.kinds,
        timeout=request.timeout,
    )
    return RetrieveResponse(**result.to_dict())


@router.get("/stats/{owner_id}", response_model=OwnerStatsResponse, summary="Indexing statistics for an owner")
def owner_stats(owner_id: str, context: MemoryContext = Depends(get_context)) -> OwnerStatsResponse:
    stats = context.knowledge.stats(owner_id)
    return OwnerStatsResponse(
        owner_id=stats.owner_id,
        schema_version=stats.schema_version,
        total_elements=stats.total_elements,
        conversations_indexed=stats.conversations_indexed,
        stored_chunks=context.knowledge.stored_chunks(owner_id),
        last_indexed_at=ms_to_datetime(stats.last_indexed_at),
        updated_at=ms_to_datetime(stats.updated_at),
    )


__all__ = ["router"]
