"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

EXTRACTION_OUTCOMES = Counter(
    "intake_extractions_total",
    "Extraction model invocations by outcome",
    ("outcome",),
)

EXTRACTION_LATENCY = Histogram(
    "intake_extraction_duration_seconds",
    "Wall time of one extraction including transport retries",
    buckets=(0.25, 0.5, 1.0, 2.0, 4.0, 8.0, 12.0, 20.0),
)

PERSISTENCE_WRITES = Counter(
    "intake_persistence_writes_total",
    "Call record writes issued by the intake loop",
    ("operation", "result"),
)

SPEECH_DELIVERIES = Counter(
    "intake_speech_deliveries_total",
    "Dispatcher replies processed by the speech sequencer",
    ("result",),
)

ACTIVE_SESSIONS = Counter(
    "intake_sessions_total",
    "Call sessions started and ended",
    ("event",),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def observe_extraction(outcome: str, duration_seconds: float) -> None:
    """Record one extraction and how long it took."""

    EXTRACTION_OUTCOMES.labels(outcome=outcome).inc()
    EXTRACTION_LATENCY.observe(max(0.0, duration_seconds))


def record_persistence_write(operation: str, result: str) -> None:
    PERSISTENCE_WRITES.labels(operation=operation, result=result).inc()


def record_speech_delivery(result: str) -> None:
    SPEECH_DELIVERIES.labels(result=result).inc()


def record_session_event(event: str) -> None:
    ACTIVE_SESSIONS.labels(event=event).inc()
