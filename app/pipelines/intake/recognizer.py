"""Speech recognizer fault classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger("app.services.intake_pipeline")

MANUAL_TEXT_MESSAGE = "Speech recognition is unavailable. Please type your message instead."


class RecognizerFault(str, Enum):
    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    UNKNOWN = "unknown"

    @property
    def is_fatal(self) -> bool:
        return self not in (RecognizerFault.NO_SPEECH, RecognizerFault.ABORTED)


_MESSAGES = {
    RecognizerFault.NOT_ALLOWED: "Microphone permission was denied. Please type your message instead.",
    RecognizerFault.SERVICE_NOT_ALLOWED: "Speech recognition is not allowed here. Please type your message instead.",
    RecognizerFault.NETWORK: "Speech recognition lost its network connection. Please type your message instead.",
    RecognizerFault.AUDIO_CAPTURE: "No microphone was found. Please type your message instead.",
}


def classify(code: str | None) -> RecognizerFault:
    try:
        return RecognizerFault((code or "").strip().lower())
    except ValueError:
        return RecognizerFault.UNKNOWN


@dataclass(frozen=True)
class RecognizerState:
    available: bool
    listening: bool
    message: Optional[str] = None
    last_fault: Optional[RecognizerFault] = None


class RecognizerMonitor:
    """Tracks whether voice input is still usable for a call.

    ``no-speech`` and ``aborted`` keep the recognizer listening. Every
    other fault stops it for the rest of the call and points the caller
    at manual text entry.
    """

    def __init__(self) -> None:
        self._state = RecognizerState(available=True, listening=True)

    @property
    def state(self) -> RecognizerState:
        return self._state

    @property
    def available(self) -> bool:
        return self._state.available

    @property
    def message(self) -> Optional[str]:
        return self._state.message

    def report(self, code: str | None) -> RecognizerState:
        fault = classify(code)
        if not fault.is_fatal:
            logger.info("Recognizer reported %s; still listening", fault.value)
            self._state = RecognizerState(
                available=self._state.available,
                listening=self._state.listening,
                message=self._state.message,
                last_fault=fault,
            )
            return self._state

        logger.warning("Recognizer fault %r; switching to manual text", code)
        self._state = RecognizerState(
            available=False,
            listening=False,
            message=_MESSAGES.get(fault, MANUAL_TEXT_MESSAGE),
            last_fault=fault,
        )
        return self._state

    def stop(self) -> None:
        self._state = RecognizerState(
            available=self._state.available,
            listening=False,
            message=self._state.message,
            last_fault=self._state.last_fault,
        )


__all__ = [
    "MANUAL_TEXT_MESSAGE",
    "RecognizerFault",
    "RecognizerMonitor",
    "RecognizerState",
    "classify",
]
