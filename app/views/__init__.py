"""Pydantic schemas used as views in the MVC architecture."""

from .common import ErrorResponse, HealthResponse
from .emergency import (
    EmergencyCallCreateRequest,
    EmergencyCallResponse,
    EmergencyCallUpdateRequest,
)
from .intake import (
    CallSnapshotResponse,
    CallStartResponse,
    FragmentRequest,
    FragmentResponse,
    LocationHintRequest,
    MessageRequest,
    RecognizerErrorRequest,
    RecognizerStatus,
    TurnResponse,
)

__all__ = [
    "EmergencyCallCreateRequest",
    "EmergencyCallUpdateRequest",
    "EmergencyCallResponse",
    "CallStartResponse",
    "CallSnapshotResponse",
    "FragmentRequest",
    "FragmentResponse",
    "LocationHintRequest",
    "MessageRequest",
    "RecognizerErrorRequest",
    "RecognizerStatus",
    "TurnResponse",
    "ErrorResponse",
    "HealthResponse",
]
