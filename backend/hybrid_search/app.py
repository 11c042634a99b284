"""FastAPI application setup for hybrid search."""

from __future__ import annotations

from fastapi import FastAPI

from hybrid_search.api.dependencies import (
    get_app_settings,
    get_database,
    get_query_service,
    get_vector_index,
)
from hybrid_search.api.routes_admin import router as admin_router
from hybrid_search.api.routes_index import router as index_router
from hybrid_search.api.routes_query import router as query_router
from hybrid_search.core.logging import configure_logging

configure_logging()

app = FastAPI(
    title="Hybrid Search",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(index_router, prefix="/index", tags=["index"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_vector_index()
    get_query_service()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
