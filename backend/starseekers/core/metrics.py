"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

SYNC_RUNS = Counter(
    "starseek_sync_runs_total",
    "Sync invocations by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

SYNC_DURATION = Histogram(
    "starseek_sync_duration_seconds",
    "Wall time of a full sync",
    registry=REGISTRY,
)

REPOS_EMBEDDED = Counter(
    "starseek_repositories_embedded_total",
    "Repositories sent to the embedding model during sync",
    registry=REGISTRY,
)

INDEX_WRITES = Counter(
    "starseek_index_writes_total",
    "Vector index writes by operation",
    labelnames=("operation",),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "starseek_search_latency_seconds",
    "Latency of search requests",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SYNC_RUNS",
    "SYNC_DURATION",
    "REPOS_EMBEDDED",
    "INDEX_WRITES",
    "SEARCH_LATENCY",
    "metrics_response",
]
