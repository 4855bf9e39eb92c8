"""SQLAlchemy model for emergency calls raised by the intake loop."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy import Enum as SqlEnum
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import Base
from app.services.response_contract import EmergencyType, Severity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallStatus(str, Enum):
    """Dispatch lifecycle of a call record."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DISPATCHED = "DISPATCHED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class CallPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class EmergencyCall(Base):
    __tablename__ = "emergency_calls"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    emergency_type = Column(
        SqlEnum(EmergencyType, name="emergency_type"),
        nullable=False,
        default=EmergencyType.OTHER,
    )
    severity = Column(
        SqlEnum(Severity, name="severity"),
        nullable=False,
        default=Severity.MEDIUM,
    )
    description = Column(Text, nullable=False)
    casualties = Column(Integer, nullable=False, default=0)
    location = Column(String(512), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    transcript = Column(Text, nullable=True)
    auto_escalated = Column(Boolean, nullable=False, default=False)
    human_takeover = Column(Boolean, nullable=False, default=False)
    caller_name = Column(String(128), nullable=True)
    caller_phone = Column(String(32), nullable=True)
    status = Column(
        SqlEnum(CallStatus, name="call_status"),
        nullable=False,
        default=CallStatus.PENDING,
        index=True,
    )
    priority = Column(
        SqlEnum(CallPriority, name="call_priority"),
        nullable=False,
        default=CallPriority.MEDIUM,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


__all__ = ["CallPriority", "CallStatus", "EmergencyCall"]
