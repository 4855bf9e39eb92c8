"""Pydantic schemas for emergency call records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.models.emergency_call import CallPriority, CallStatus
from app.services.call_repository import EmergencyCallWrite
from app.services.response_contract import EmergencyType, Severity


def _camel(name: str, camel: str, **kwargs: Any) -> Any:
    """Accept ORM attribute or camelCase input; always emit camelCase."""

    return Field(
        validation_alias=AliasChoices(name, camel),
        serialization_alias=camel,
        **kwargs,
    )


class EmergencyCallCreateRequest(EmergencyCallWrite):
    """Payload for creating a call record; omitted fields take defaults."""

    description: Optional[str] = Field(default=None, max_length=4000)
    location: Optional[str] = Field(default=None, max_length=512)
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class EmergencyCallUpdateRequest(EmergencyCallCreateRequest):
    """Partial update; only the fields that are sent are changed."""


class EmergencyCallResponse(BaseModel):
    """Serialized representation of an emergency call."""

    id: UUID
    type: EmergencyType = Field(validation_alias=AliasChoices("type", "emergency_type"))
    severity: Severity
    description: str
    casualties: int
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    transcript: Optional[str] = None
    auto_escalated: bool = _camel("auto_escalated", "autoEscalated")
    human_takeover: bool = _camel("human_takeover", "humanTakeover")
    caller_name: Optional[str] = _camel("caller_name", "callerName", default=None)
    caller_phone: Optional[str] = _camel("caller_phone", "callerPhone", default=None)
    status: CallStatus
    priority: CallPriority
    created_at: datetime = _camel("created_at", "createdAt")
    updated_at: datetime = _camel("updated_at", "updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = [
    "EmergencyCallCreateRequest",
    "EmergencyCallResponse",
    "EmergencyCallUpdateRequest",
]
