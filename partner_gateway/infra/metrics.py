"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Request metrics
request_count = Counter(
    "gateway_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

request_duration = Histogram(
    "gateway_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# Tool metrics
tool_calls_total = Counter(
    "gateway_tool_calls_total",
    "Total tool invocations",
    ["tool_name", "transport", "outcome"],  # outcome: ok or an error code
)

tool_call_duration = Histogram(
    "gateway_tool_call_duration_seconds",
    "Tool invocation duration in seconds",
    ["tool_name"],
)

# Push-stream connections
sse_connections_active = Gauge(
    "gateway_sse_connections_active",
    "Number of open SSE connections",
)

sse_connections_reaped_total = Counter(
    "gateway_sse_connections_reaped_total",
    "SSE connections closed by the stale-connection reaper",
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
