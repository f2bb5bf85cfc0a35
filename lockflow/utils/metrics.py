"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
unlock_attempts_total = Counter(
    "unlock_attempts_total",
    "Total unlock evaluations",
    ["method", "outcome"],  # PASS, FAIL, PENDING
)

unlocks_total = Counter(
    "unlocks_total",
    "Total sessions that reached UNLOCKED",
    ["method"],
)

signed_url_requests_total = Counter(
    "signed_url_requests_total",
    "Total signed download URL requests to object storage",
    ["status"],
)

unlock_counter_failures_total = Counter(
    "unlock_counter_failures_total",
    "Unlock counter increments that failed (logged, not surfaced)",
)

data_integrity_errors_total = Counter(
    "data_integrity_errors_total",
    "Resources whose unlock requirement does not parse for its method",
    ["method"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
storage_request_duration_seconds = Histogram(
    "storage_request_duration_seconds",
    "Object storage request duration",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10],
)

# Gauges
active_unlock_sessions = Gauge(
    "active_unlock_sessions",
    "Unlock sessions currently held in memory",
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
