"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from hybrid_search.core.config import Settings, get_settings
from hybrid_search.db.sqlite import SQLiteDatabase
from hybrid_search.ingest.pipeline import IndexPipeline
from hybrid_search.llm.client import ModelClient, OllamaClient
from hybrid_search.retrieval import QueryService, VectorIndex

_DB: SQLiteDatabase | None = None
_CLIENT: ModelClient | None = None
_VECTOR_INDEX: VectorIndex | None = None
_PIPELINE: IndexPipeline | None = None
_QUERY_SERVICE: QueryService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_model_client() -> ModelClient:
    global _CLIENT
    if _CLIENT is None:
        settings = get_app_settings()
        _CLIENT = OllamaClient(settings.model_host, timeout=settings.request_timeout)
    return _CLIENT


def get_vector_index() -> VectorIndex:
    global _VECTOR_INDEX
    if _VECTOR_INDEX is None:
        settings = get_app_settings()
        index = VectorIndex(dim=settings.embedding_dim)
        index.rebuild(get_database(), settings.embedding_model)
        _VECTOR_INDEX = index
    return _VECTOR_INDEX


def get_query_service() -> QueryService:
    global _QUERY_SERVICE
    if _QUERY_SERVICE is None:
        _QUERY_SERVICE = QueryService(
            db=get_database(),
            settings=get_app_settings(),
            vector_index=get_vector_index(),
            client=get_model_client(),
        )
    return _QUERY_SERVICE


def get_index_pipeline() -> IndexPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = IndexPipeline(
            database=get_database(),
            settings=get_app_settings(),
            embedder=get_query_service().vector,
            vector_index=get_vector_index(),
        )
    return _PIPELINE


def reset_state() -> None:
    """Drop cached singletons so the next access rebuilds them."""
    global _DB, _CLIENT, _VECTOR_INDEX, _PIPELINE, _QUERY_SERVICE
    if _DB is not None:
        _DB.close()
    get_app_settings.cache_clear()
    get_settings.cache_clear()
    _DB = None
    _CLIENT = None
    _VECTOR_INDEX = None
    _PIPELINE = None
    _QUERY_SERVICE = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_model_client",
    "get_vector_index",
    "get_query_service",
    "get_index_pipeline",
    "reset_state",
]
