from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests.",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds.",
    ["method", "path"],
)

payment_log_writes_total = Counter(
    "payment_log_writes_total",
    "Payment log writes by operation and outcome.",
    ["operation", "outcome"],
)

schema_setup_runs_total = Counter(
    "payment_log_schema_setup_runs_total",
    "Payment log structure setup runs by outcome.",
    ["outcome"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
