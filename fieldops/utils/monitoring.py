"""Monitoring utilities leveraging Prometheus client."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

lock_acquisitions_total = Counter(
    "fieldops_lock_acquisitions_total",
    "Lock acquisition attempts",
    ["outcome"],
)

rate_limit_decisions_total = Counter(
    "fieldops_rate_limit_decisions_total",
    "Rate limiter admission decisions",
    ["outcome"],
)

workflow_operations_total = Counter(
    "fieldops_workflow_operations_total",
    "Workflow operations by result",
    ["operation", "result"],
)

events_published_total = Counter(
    "fieldops_events_published_total",
    "Domain events handed to the broadcaster",
    ["channel", "result"],
)

http_requests_total = Counter(
    "fieldops_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_latency_seconds = Histogram(
    "fieldops_http_request_latency_seconds",
    "HTTP request latency",
    ["method", "path"],
)


def observe_request(method: str, path: str, status: int, duration_seconds: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_latency_seconds.labels(method=method, path=path).observe(duration_seconds)


def observe_workflow(operation: str, result: str) -> None:
    workflow_operations_total.labels(operation=operation, result=result).inc()
