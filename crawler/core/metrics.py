from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Fetch metrics
# ---------------------------------------------------------------------------
fetch_requests_total = Counter(
    "fetch_requests_total",
    "Total number of page fetches by outcome",
    ["error_type"],
)
fetch_duration_seconds = Histogram(
    "fetch_duration_seconds",
    "Time spent fetching a single URL",
    buckets=[0.5, 1, 2, 5, 10, 30, 60],
)
active_page_contexts = Gauge(
    "active_page_contexts",
    "Number of currently open browser contexts",
)

# ---------------------------------------------------------------------------
# Browser / proxy lifecycle
# ---------------------------------------------------------------------------
browser_launches_total = Counter(
    "browser_launches_total",
    "Number of browser launch attempts",
    ["status"],
)
proxy_fallbacks_total = Counter(
    "proxy_fallbacks_total",
    "Number of times a proxy tunnel failure disabled the proxy",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
