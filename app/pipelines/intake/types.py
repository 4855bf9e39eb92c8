"""Typed containers shared across the call intake pipeline.

These live in their own module so the other stages (`session`,
`prompts`, `extraction`, `flow`) can import them without creating
circular dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.services.geocoding import GeoPoint
from app.services.response_contract import EmergencyRecord


class Speaker(str, Enum):
    CALLER = "caller"
    DISPATCHER = "dispatcher"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class ConversationTurn:
    """One line of dialogue; ``timestamp`` is a monotonic clock reading."""

    timestamp: float
    speaker: Speaker
    text: str


@dataclass(frozen=True)
class RecognizerFragment:
    """Interim or final text reported by the speech recognizer."""

    is_final: bool
    text: str
    result_index: Optional[int] = None


class ExtractionOutcome(str, Enum):
    PARSED = "parsed"
    FALLBACK = "fallback"
    TRANSPORT_FAILED = "transport_failed"


@dataclass(frozen=True)
class ExtractionRequest:
    """Normalized payload handed to the extraction model client."""

    context: str
    current_record: Optional[EmergencyRecord]
    utterance: str
    location_hint: Optional[GeoPoint]
    system_prompt: str
    user_prompt: str


@dataclass(frozen=True)
class ExtractionResult:
    """What one extraction produced.

    ``record`` is None when the model reported no emergency data yet or
    when the turn fell back; ``reply`` is None only on transport failure.
    """

    outcome: ExtractionOutcome
    record: Optional[EmergencyRecord] = None
    reply: Optional[str] = None
    raw_response: Optional[str] = None


@dataclass(frozen=True)
class TurnOutcome:
    """Result of processing one caller utterance end-to-end."""

    extraction: ExtractionResult
    record_changed: bool = False
    applied: bool = True


__all__ = [
    "ConversationTurn",
    "EmergencyRecord",
    "ExtractionOutcome",
    "ExtractionRequest",
    "ExtractionResult",
    "GeoPoint",
    "RecognizerFragment",
    "Speaker",
    "TurnOutcome",
]
