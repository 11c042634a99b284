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

SEARCH_COUNT = Counter(
    "hsearch_searches_total",
    "Total search invocations",
    labelnames=("mode", "status"),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "hsearch_search_latency_seconds",
    "Latency of search pipelines",
    labelnames=("mode",),
    registry=REGISTRY,
)

DEGRADED_SIGNALS = Counter(
    "hsearch_degraded_signals_total",
    "Retrieval or model signals that failed and were skipped",
    labelnames=("stage",),
    registry=REGISTRY,
)

RERANK_FALLBACKS = Counter(
    "hsearch_rerank_fallbacks_total",
    "Rerank judgments that fell back to the unknown sentinel",
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "hsearch_indexed_documents",
    "Number of documents stored in the index",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "DEGRADED_SIGNALS",
    "RERANK_FALLBACKS",
    "INDEX_SIZE",
    "metrics_response",
]
