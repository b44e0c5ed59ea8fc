"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# HTTP metrics
http_request_latency = Histogram(
    'http_request_duration_seconds',
    'Request latency by route template',
    ['method', 'route', 'status'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0]
)

# Reservation lifecycle metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total reservation attempts',
    ['path', 'outcome']  # path: free, paid; outcome: created, capacity_exceeded, duplicate, error
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reservation creation latency',
    ['path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

reservation_transitions = Counter(
    'reservation_transitions_total',
    'Reservation status transitions',
    ['to_status']  # confirmed, checked_in, cancelled
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Reservation retries due to event version conflicts'
)

# Payment metrics
payment_webhooks = Counter(
    'payment_webhooks_total',
    'Payment provider webhook deliveries',
    ['event_type', 'result']  # result: applied, duplicate, ignored, rejected, not_found
)

refunds = Counter(
    'refunds_total',
    'Refund requests issued to the payment provider',
    ['result']  # succeeded, failed
)

# Notification metrics
notifications = Counter(
    'notifications_total',
    'Outbound notifications',
    ['kind', 'result']  # kind: confirmation, cancellation; result: sent, skipped, failed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_http_request(method: str, route: str, status_code: int, seconds: float):
    http_request_latency.labels(method=method, route=route, status=str(status_code)).observe(seconds)


def record_reservation_attempt(path: str, outcome: str):
    """Record reservation attempt. Path: free, paid"""
    reservation_attempts.labels(path=path, outcome=outcome).inc()


def record_transition(to_status: str):
    reservation_transitions.labels(to_status=to_status).inc()


def record_webhook(event_type: str, result: str):
    payment_webhooks.labels(event_type=event_type, result=result).inc()


def record_refund(succeeded: bool):
    refunds.labels(result="succeeded" if succeeded else "failed").inc()


def record_notification(kind: str, result: str):
    notifications.labels(kind=kind, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
