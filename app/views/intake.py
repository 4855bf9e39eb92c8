"""Pydantic schemas for the call intake endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.pipelines.intake import CallSnapshot, ExtractionOutcome, TurnOutcome
from app.services.response_contract import EmergencyRecord


class FragmentRequest(BaseModel):
    """One recognizer result, interim or final."""

    is_final: bool = Field(alias="isFinal")
    text: str = Field(default="", max_length=2000)
    result_index: Optional[int] = Field(default=None, alias="resultIndex", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class FragmentResponse(BaseModel):
    processing: bool
    interim: str


class MessageRequest(BaseModel):
    """Manual text typed by the caller."""

    text: str = Field(..., min_length=1, max_length=2000)

    @field_validator("text")
    @classmethod
    def validate_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message text must not be blank")
        return value


class LocationHintRequest(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class RecognizerErrorRequest(BaseModel):
    error: str = Field(..., min_length=1, max_length=64)


class RecognizerStatus(BaseModel):
    available: bool
    listening: bool
    message: Optional[str] = None
    last_fault: Optional[str] = Field(default=None, alias="lastFault")

    model_config = ConfigDict(populate_by_name=True)


class TurnView(BaseModel):
    speaker: str
    text: str


class CallStartResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    greeting: str

    model_config = ConfigDict(populate_by_name=True)


class TurnResponse(BaseModel):
    outcome: ExtractionOutcome
    reply: Optional[str] = None
    record: Optional[EmergencyRecord] = None
    record_changed: bool = Field(alias="recordChanged")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_outcome(cls, outcome: TurnOutcome) -> "TurnResponse":
        return cls(
            outcome=outcome.extraction.outcome,
            reply=outcome.extraction.reply,
            record=outcome.extraction.record,
            record_changed=outcome.record_changed,
        )


class CallSnapshotResponse(BaseModel):
    """Live state of one call for the caller-facing client."""

    session_id: str = Field(alias="sessionId")
    active: bool
    call_id: Optional[str] = Field(default=None, alias="callId")
    record: Optional[EmergencyRecord] = None
    history: list[TurnView]
    interim_transcript: str = Field(alias="interimTranscript")
    pending_replies: int = Field(alias="pendingReplies")
    has_location_hint: bool = Field(alias="hasLocationHint")
    recognizer: RecognizerStatus

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_snapshot(cls, snapshot: CallSnapshot) -> "CallSnapshotResponse":
        state = snapshot.recognizer
        return cls(
            session_id=snapshot.session_id,
            active=snapshot.active,
            call_id=snapshot.call_id,
            record=snapshot.record,
            history=[
                TurnView(speaker=turn.speaker.value, text=turn.text)
                for turn in snapshot.history
            ],
            interim_transcript=snapshot.interim_transcript,
            pending_replies=snapshot.pending_replies,
            has_location_hint=snapshot.location_hint is not None,
            recognizer=RecognizerStatus(
                available=state.available,
                listening=state.listening,
                message=state.message,
                last_fault=state.last_fault.value if state.last_fault else None,
            ),
        )


__all__ = [
    "CallSnapshotResponse",
    "CallStartResponse",
    "FragmentRequest",
    "FragmentResponse",
    "LocationHintRequest",
    "MessageRequest",
    "RecognizerErrorRequest",
    "RecognizerStatus",
    "TurnResponse",
    "TurnView",
]
