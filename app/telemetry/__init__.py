"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    EXTRACTION_OUTCOMES,
    PERSISTENCE_WRITES,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SPEECH_DELIVERIES,
    observe_extraction,
    observe_request,
    record_persistence_write,
    record_session_event,
    record_speech_delivery,
)

__all__ = [
    "ERROR_COUNTER",
    "EXTRACTION_OUTCOMES",
    "PERSISTENCE_WRITES",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SPEECH_DELIVERIES",
    "observe_extraction",
    "observe_request",
    "record_persistence_write",
    "record_session_event",
    "record_speech_delivery",
]
