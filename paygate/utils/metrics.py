"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
purchases_total = Counter(
    "paywall_purchases_total",
    "Total successful purchases",
    ["token", "duration"],
)

withdrawals_total = Counter(
    "paywall_withdrawals_total",
    "Total successful withdrawals",
    ["token"],
)

registry_mutations_total = Counter(
    "paywall_registry_mutations_total",
    "Total registry mutations",
    ["operation"],  # add, remove, update_prices, transfer_ownership
)

registry_errors_total = Counter(
    "paywall_registry_errors_total",
    "Total failed registry operations",
    ["operation", "error"],
)

transfer_requests_total = Counter(
    "transfer_requests_total",
    "Total remote transfer service requests",
    ["method", "status"],
)

circuit_breaker_failures_total = Counter(
    "circuit_breaker_failures_total",
    "Calls counted as failures by a circuit breaker",
    ["name"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
transfer_request_duration_seconds = Histogram(
    "transfer_request_duration_seconds",
    "Remote transfer service request duration",
    ["method"],
    buckets=[0.05, 0.1, 0.5, 1, 2, 5, 10],
)

# Gauges
supported_tokens = Gauge(
    "paywall_supported_tokens",
    "Current length of the supported-token list",
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
