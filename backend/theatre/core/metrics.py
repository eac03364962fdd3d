"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'seat_booking_attempts_total',
    'Total self-service seat booking attempts',
    ['status']  # success, seat_taken, already_booked, denied, error
)

booking_latency = Histogram(
    'seat_booking_latency_seconds',
    'Seat booking latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

admin_booking_changes = Counter(
    'admin_booking_changes_total',
    'Bookings released or reassigned by administrators',
    ['operation']  # release, reassign
)

# Provisioning metrics
provisioning_requests = Counter(
    'account_provisioning_total',
    'Account provisioning requests by outcome',
    ['outcome']  # committed, unauthorized, forbidden, invalid, duplicate, failed
)

# Layout metrics
seat_regenerations = Counter(
    'seat_layout_regenerations_total',
    'Seat grid regenerations'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Render the default registry in the Prometheus text format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, seat_taken, already_booked, denied, error"""
    booking_attempts.labels(status=status).inc()


def record_admin_booking_change(operation: str):
    admin_booking_changes.labels(operation=operation).inc()


def record_provisioning(outcome: str):
    provisioning_requests.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
