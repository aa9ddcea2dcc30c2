"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Checkout metrics
checkout_attempts = Counter(
    'checkout_attempts_total',
    'Total checkout session creation attempts',
    ['result']  # created, rejected, upstream_error
)

checkout_latency = Histogram(
    'checkout_latency_seconds',
    'Checkout session creation latency',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Webhook metrics
webhook_events = Counter(
    'webhook_events_total',
    'Payment processor webhook deliveries',
    ['event_type', 'outcome']  # applied, duplicate, ignored, error
)

webhook_signature_failures = Counter(
    'webhook_signature_failures_total',
    'Webhook deliveries rejected for a bad or missing signature'
)

# Sale ledger metrics
sale_transitions = Counter(
    'sale_transitions_total',
    'Conditional sale status transitions',
    ['to_status', 'applied']  # applied=true|false
)

# Inventory metrics
inventory_increments = Counter(
    'inventory_increments_total',
    'Ticket type sold-counter increments',
    ['result']  # applied, oversell
)

# Confirmation metrics
payment_verifications = Counter(
    'payment_verifications_total',
    'Client-initiated payment verifications',
    ['result']  # completed, already_completed, unpaid
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_checkout_attempt(result: str):
    """Record checkout attempt. Result: created, rejected, upstream_error"""
    checkout_attempts.labels(result=result).inc()


def record_webhook_event(event_type: str, outcome: str):
    webhook_events.labels(event_type=event_type, outcome=outcome).inc()


def record_sale_transition(to_status: str, applied: bool):
    sale_transitions.labels(to_status=to_status, applied=str(applied).lower()).inc()


def record_inventory_increment(applied: bool):
    result = "applied" if applied else "oversell"
    inventory_increments.labels(result=result).inc()


def record_payment_verification(result: str):
    payment_verifications.labels(result=result).inc()
