"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
store_requests_total = Counter(
    "store_requests_total",
    "Total spreadsheet API requests",
    ["operation", "status"],  # read/append/write, success/error
)

cache_events_total = Counter(
    "cache_events_total",
    "Reconciliation cache events",
    ["collection", "event"],  # hit, refresh, stale_served, invalidated
)

status_transitions_total = Counter(
    "status_transitions_total",
    "Applied status transitions",
    ["collection", "status"],
)

notifications_total = Counter(
    "notifications_total",
    "Webhook notifications",
    ["status"],  # sent, failed, skipped
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
store_request_duration_seconds = Histogram(
    "store_request_duration_seconds",
    "Spreadsheet API request duration",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10, 20],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
