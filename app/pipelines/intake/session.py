"""Per-call conversation state.

A :class:`ConversationSession` is the single source of truth for one
call's dialogue and its latest derived emergency record. It is only ever
touched from the event loop that owns the call, so it carries no locks.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, Optional

from .types import ConversationTurn, EmergencyRecord, Speaker

DEFAULT_CONTEXT_WINDOW = 10


class InvalidSessionState(RuntimeError):
    """Raised when an ended session is used; indicates a caller-side bug."""


class ConversationSession:
    """Ordered turn history, current record and call id for one call."""

    def __init__(
        self,
        session_id: str | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_id = session_id or uuid.uuid4().hex
        self._clock = clock
        self._history: list[ConversationTurn] = []
        self._current_record: Optional[EmergencyRecord] = None
        self._last_processed_at: Optional[float] = None
        self._call_id: Optional[str] = None
        self._active = True

    @classmethod
    def start(
        cls,
        session_id: str | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ConversationSession":
        return cls(session_id, clock=clock)

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def history(self) -> tuple[ConversationTurn, ...]:
        self.ensure_active()
        return tuple(self._history)

    @property
    def current_record(self) -> Optional[EmergencyRecord]:
        self.ensure_active()
        return self._current_record

    @property
    def last_processed_at(self) -> Optional[float]:
        self.ensure_active()
        return self._last_processed_at

    @property
    def call_id(self) -> Optional[str]:
        self.ensure_active()
        return self._call_id

    def append_turn(self, speaker: Speaker, text: str) -> None:
        # Content is not validated; blank turns are kept for audit fidelity.
        self.ensure_active()
        self._history.append(
            ConversationTurn(timestamp=self._clock(), speaker=Speaker(speaker), text=text)
        )

    def context_window(self, limit: int = DEFAULT_CONTEXT_WINDOW) -> str:
        """Flatten the most recent ``limit`` turns into a transcript."""

        self.ensure_active()
        if limit <= 0:
            return ""
        return _format_turns(self._history[-limit:])

    def transcript(self) -> str:
        self.ensure_active()
        return _format_turns(self._history)

    def replace_record(self, record: EmergencyRecord) -> None:
        self.ensure_active()
        self._current_record = record

    def mark_processed(self, now: float) -> None:
        self.ensure_active()
        self._last_processed_at = now

    def assign_call_id(self, call_id: str) -> None:
        self.ensure_active()
        self._call_id = call_id

    def end(self) -> None:
        self.ensure_active()
        self._active = False
        self._history = []
        self._current_record = None
        self._last_processed_at = None
        self._call_id = None

    def ensure_active(self) -> None:
        if not self._active:
            raise InvalidSessionState(f"Session {self._session_id} has ended.")


def _format_turns(turns: list[ConversationTurn]) -> str:
    return "\n".join(f"{turn.speaker.label}: {turn.text}" for turn in turns)


__all__ = ["ConversationSession", "DEFAULT_CONTEXT_WINDOW", "InvalidSessionState"]
