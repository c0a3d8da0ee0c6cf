"""Prometheus metrics for the storage layer."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Orchestration metrics ────────────────────────────────────
STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Logical storage operations handled by the registry",
    ["operation", "status"],
)

BACKEND_CALLS = Counter(
    "storage_backend_calls_total",
    "Calls into individual storage backends",
    ["provider", "operation", "status"],
)

BACKEND_LATENCY = Histogram(
    "storage_backend_latency_seconds",
    "Latency of individual storage backend calls",
    ["provider", "operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Health metrics ───────────────────────────────────────────
PROVIDER_HEALTH_SCORE = Gauge(
    "storage_provider_health_score",
    "Rolling health score of a storage provider (0..1)",
    ["provider"],
)

PROVIDER_HEALTHY = Gauge(
    "storage_provider_healthy",
    "1 if the provider is currently considered healthy, else 0",
    ["provider"],
)

HEALTH_CHECK_CYCLES = Counter(
    "storage_health_check_cycles_total",
    "Completed periodic health check cycles",
)
