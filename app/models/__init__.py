"""SQLAlchemy models for the MVC architecture."""

from .base import Base
from .emergency_call import CallPriority, CallStatus, EmergencyCall  # noqa: F401

__all__ = [
    "Base",
    "CallPriority",
    "CallStatus",
    "EmergencyCall",
]
