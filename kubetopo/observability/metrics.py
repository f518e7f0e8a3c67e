"""Prometheus collectors for topology queries."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

queries_total = Counter(
    "kubetopo_queries_total",
    "Top-level topology queries by operation and outcome",
    ["operation", "outcome"],
)

query_duration_seconds = Histogram(
    "kubetopo_query_duration_seconds",
    "Wall-clock duration of top-level topology queries",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

store_requests_total = Counter(
    "kubetopo_store_requests_total",
    "Resource store requests issued while resolving topology",
    ["operation"],
)
