"""
Prometheus metrics for the RSVP core, served at /metrics.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

rsvp_requests = Counter(
    'rsvp_requests_total',
    'RSVP requests by outcome',
    ['outcome']  # going, interested, waitlisted, or an error code
)

rsvp_latency = Histogram(
    'rsvp_latency_seconds',
    'RSVP decision latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

rsvp_cancellations = Counter(
    'rsvp_cancellations_total',
    'Cancelled RSVPs by their status before cancellation',
    ['prior_status']
)

waitlist_promotions = Counter(
    'waitlist_promotions_total',
    'Waitlisted RSVPs promoted to going',
    ['trigger']  # cancellation, sweep
)

promotion_conflicts = Counter(
    'waitlist_promotion_conflicts_total',
    'Promotions abandoned because the RSVP changed underneath us'
)

promotion_failures = Counter(
    'waitlist_promotion_failures_total',
    'Promotions that failed with a database error'
)

notification_failures = Counter(
    'notification_failures_total',
    'Notifications that could not be recorded',
    ['type']
)

cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_rsvp_outcome(outcome: str):
    """Outcome is the resulting RSVP status or the error code."""
    rsvp_requests.labels(outcome=outcome).inc()


def record_cancellation(prior_status: str):
    rsvp_cancellations.labels(prior_status=prior_status).inc()


def record_promotion(trigger: str):
    waitlist_promotions.labels(trigger=trigger).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
