"""Prometheus metrics for checkout volume, webhook outcomes and cancellation scheduling"""

from prometheus_client import Counter, Histogram

# Checkout metrics
checkout_session_counter = Counter(
    "permis_checkout_sessions_total",
    "Checkout sessions created",
    ["mode"],  # 1x | 2x | 3x | 4x
)

checkout_failure_counter = Counter(
    "permis_checkout_failures_total",
    "Checkout session creations rejected or failed",
    ["reason"],  # client_input | provider
)

# Webhook metrics
webhook_event_counter = Counter(
    "permis_webhook_events_total",
    "Webhook events received",
    ["event_type", "outcome"],  # scheduled | duplicate | ignored | invalid_metadata | rejected
)

# Cancellation metrics
cancellation_scheduled_counter = Counter(
    "permis_cancellations_scheduled_total",
    "Installment subscriptions capped with cancel_at",
    ["cycles"],
)

cancellation_failure_counter = Counter(
    "permis_cancellation_failures_total",
    "Failed cancel_at mutations (per attempt)",
)

# Stripe API metrics
stripe_call_latency_histogram = Histogram(
    "stripe_call_latency_seconds",
    "Stripe API call latency",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_checkout(mode_label: str) -> None:
    """Record a created checkout session"""
    checkout_session_counter.labels(mode=mode_label).inc()


def record_webhook(event_type: str, outcome: str) -> None:
    """Record how a webhook event was handled"""
    webhook_event_counter.labels(event_type=event_type or "unknown", outcome=outcome).inc()
