"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Registration metrics
registration_attempts = Counter(
    'registration_attempts_total',
    'Total registration attempts',
    ['result']  # success, already_registered, event_not_open, capacity_exceeded, conflict
)

registration_latency = Histogram(
    'registration_latency_seconds',
    'Registration latency inside the service',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Round progression metrics
outcomes_recorded = Counter(
    'round_outcomes_recorded_total',
    'Round outcomes recorded',
    ['outcome']  # passed, failed, eliminated
)

round_moves = Counter(
    'round_moves_total',
    'Round index changes',
    ['direction', 'trigger']  # advance/rollback, auto/manual
)

# Certificate metrics
certificates_issued = Counter(
    'certificates_issued_total',
    'Certificates minted (idempotent replays are not counted)'
)

certificate_verifications = Counter(
    'certificate_verifications_total',
    'Public verification lookups',
    ['result']  # valid, revoked, unknown
)

# Concurrency metrics
version_conflicts = Counter(
    'version_conflict_retries_total',
    'Optimistic lock conflicts that triggered a retry',
    ['record']  # event, registration, certificate
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

# Notification hand-off
domain_events_published = Counter(
    'domain_events_published_total',
    'Domain events handed to the notification transport',
    ['type', 'result']  # published, dropped
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_registration_attempt(result: str):
    """Record registration attempt. Result: success or an error code."""
    registration_attempts.labels(result=result).inc()


def record_outcome(outcome: str):
    outcomes_recorded.labels(outcome=outcome).inc()


def record_round_move(direction: str, trigger: str):
    round_moves.labels(direction=direction, trigger=trigger).inc()


def record_verification(result: str):
    certificate_verifications.labels(result=result).inc()


def record_version_conflict(record: str):
    version_conflicts.labels(record=record).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
