"""FastAPI application setup for the memory cache."""

from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from memory_cache.api.dependencies import close_context, get_app_settings, get_context
from memory_cache.api.routes_admin import router as admin_router
from memory_cache.api.routes_cache import router as cache_router
from memory_cache.api.routes_knowledge import router as knowledge_router
from memory_cache.core.logging import configure_logging
from memory_cache.core.metrics import REQUEST_COUNT, REQUEST_LATENCY

configure_logging()

app = FastAPI(
    title="Memory Cache",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5174",
        "http://localhost:5174",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cache_router, prefix="/cache", tags=["cache"])
app.include_router(knowledge_router, prefix="/knowledge", tags=["knowledge"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(time.perf_counter() - started)
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.on_event("startup")
async def startup() -> None:
    """Build the memory context on startup."""
    get_app_settings()
    get_context()


@app.on_event("shutdown")
async def shutdown() -> None:
    close_context()
