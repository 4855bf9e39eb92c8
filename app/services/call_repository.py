"""Repository helpers for reading/writing emergency call records.

This is the persistence gateway used by the intake loop (create, then
update-by-id) and by the dispatch CRUD endpoints.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from app.database import session_scope
from app.models.emergency_call import CallPriority, CallStatus, EmergencyCall
from app.services.response_contract import EmergencyType, Severity

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "No description provided"
DEFAULT_LOCATION = "Location unavailable"

_PRIORITY_BY_SEVERITY = {
    Severity.CRITICAL: CallPriority.CRITICAL,
    Severity.HIGH: CallPriority.HIGH,
    Severity.MEDIUM: CallPriority.MEDIUM,
    Severity.LOW: CallPriority.LOW,
}

_NULLABLE_FIELDS = ("latitude", "longitude", "transcript", "caller_name", "caller_phone")


class CallNotFoundError(LookupError):
    """Raised when an emergency call id does not exist."""


class EmergencyCallWrite(BaseModel):
    """Create/update payload for a call record (camelCase on the wire)."""

    type: Optional[EmergencyType] = None
    severity: Optional[Severity] = None
    description: Optional[str] = None
    casualties: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    transcript: Optional[str] = None
    auto_escalated: Optional[bool] = Field(default=None, alias="autoEscalated")
    human_takeover: Optional[bool] = Field(default=None, alias="humanTakeover")
    caller_name: Optional[str] = Field(default=None, alias="callerName")
    caller_phone: Optional[str] = Field(default=None, alias="callerPhone")
    status: Optional[CallStatus] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def priority_for(severity: Severity | None) -> CallPriority:
    """Map a reported severity onto the dispatch priority."""

    if severity is None:
        return CallPriority.LOW
    return _PRIORITY_BY_SEVERITY[severity]


def _is_escalated(payload: EmergencyCallWrite) -> bool:
    return bool(payload.auto_escalated or payload.human_takeover)


class SqlAlchemyCallRepository:
    """Create, update and read :class:`EmergencyCall` rows."""

    def __init__(self, session_factory=session_scope) -> None:
        self._session_factory = session_factory

    async def create_call(self, payload: EmergencyCallWrite) -> EmergencyCall:
        severity = payload.severity or Severity.MEDIUM
        call = EmergencyCall(
            emergency_type=payload.type or EmergencyType.OTHER,
            severity=severity,
            description=payload.description or DEFAULT_DESCRIPTION,
            casualties=payload.casualties or 0,
            location=payload.location or DEFAULT_LOCATION,
            latitude=payload.latitude,
            longitude=payload.longitude,
            transcript=payload.transcript,
            auto_escalated=bool(payload.auto_escalated),
            human_takeover=bool(payload.human_takeover),
            caller_name=payload.caller_name,
            caller_phone=payload.caller_phone,
            status=(
                CallStatus.IN_PROGRESS if _is_escalated(payload) else CallStatus.PENDING
            ),
            priority=priority_for(severity),
        )
        async with self._session_factory() as session:
            session.add(call)
            await session.commit()
            await session.refresh(call)
        logger.info(
            "Emergency call created id=%s type=%s severity=%s",
            call.id,
            call.emergency_type,
            call.severity,
        )
        return call

    async def update_call(self, call_id: UUID | str, payload: EmergencyCallWrite) -> EmergencyCall:
        """Apply ``payload`` to a stored call.

        Omitted fields keep their stored value. Nullable columns that are
        sent explicitly as null are cleared, so a full snapshot from the
        intake loop replaces stale coordinates.
        """

        changes: dict[str, Any] = {}
        if payload.type is not None:
            changes["emergency_type"] = payload.type
        if payload.severity is not None:
            changes["severity"] = payload.severity
            changes["priority"] = priority_for(payload.severity)
        for field in (
            "description",
            "location",
            "latitude",
            "longitude",
            "transcript",
            "caller_name",
            "caller_phone",
            "casualties",
            "auto_escalated",
            "human_takeover",
            "status",
        ):
            value = getattr(payload, field)
            if value is not None:
                changes[field] = value
        for field in _NULLABLE_FIELDS:
            if field in payload.model_fields_set and getattr(payload, field) is None:
                changes[field] = None
        if _is_escalated(payload):
            changes["status"] = CallStatus.IN_PROGRESS

        async with self._session_factory() as session:
            call = await session.get(EmergencyCall, _as_uuid(call_id))
            if call is None:
                raise CallNotFoundError(str(call_id))
            for key, value in changes.items():
                setattr(call, key, value)
            await session.commit()
            await session.refresh(call)
        logger.info("Emergency call updated id=%s fields=%s", call_id, sorted(changes))
        return call

    async def get_call(self, call_id: UUID | str) -> EmergencyCall:
        async with self._session_factory() as session:
            call = await session.get(EmergencyCall, _as_uuid(call_id))
        if call is None:
            raise CallNotFoundError(str(call_id))
        return call

    async def list_calls(self) -> Sequence[EmergencyCall]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(EmergencyCall).order_by(EmergencyCall.created_at.desc())
            )
            return list(result.scalars().all())


def _as_uuid(call_id: UUID | str) -> UUID:
    if isinstance(call_id, UUID):
        return call_id
    try:
        return UUID(str(call_id))
    except ValueError as exc:
        raise CallNotFoundError(str(call_id)) from exc


_DEFAULT_REPOSITORY: SqlAlchemyCallRepository | None = None


def get_call_repository() -> SqlAlchemyCallRepository:
    """Return the shared SQLAlchemy-backed repository."""

    global _DEFAULT_REPOSITORY
    if _DEFAULT_REPOSITORY is None:
        _DEFAULT_REPOSITORY = SqlAlchemyCallRepository()
    return _DEFAULT_REPOSITORY


__all__ = [
    "CallNotFoundError",
    "DEFAULT_DESCRIPTION",
    "DEFAULT_LOCATION",
    "EmergencyCallWrite",
    "SqlAlchemyCallRepository",
    "get_call_repository",
    "priority_for",
]
