"""Recognizer fragment buffering (the transcript accumulator)."""

from __future__ import annotations

import logging
from typing import Optional

from .types import RecognizerFragment

logger = logging.getLogger("app.services.intake_pipeline")


class TranscriptAccumulator:
    """Fold interim/final recognizer fragments into finalized utterances.

    Interim text only ever replaces the interim buffer. A final fragment
    closes the utterance and is handed back exactly once; if the
    recognizer tags results with an index, a re-reported final for an
    index that was already finalized is dropped.
    """

    def __init__(self) -> None:
        self._finalized: list[str] = []
        self._interim = ""
        self._finalized_indexes: set[int] = set()

    @property
    def interim(self) -> str:
        return self._interim

    @property
    def transcript(self) -> str:
        parts = list(self._finalized)
        if self._interim:
            parts.append(self._interim)
        return " ".join(parts)

    def push(self, fragment: RecognizerFragment) -> Optional[str]:
        text = (fragment.text or "").strip()
        index = fragment.result_index

        if index is not None and index in self._finalized_indexes:
            logger.debug("Dropping fragment for finalized result_index=%s", index)
            return None

        if not fragment.is_final:
            self._interim = text
            return None

        self._interim = ""
        if not text:
            return None
        if index is not None:
            self._finalized_indexes.add(index)
        self._finalized.append(text)
        return text

    def reset_stream(self) -> None:
        """Forget per-stream state after the recognizer restarts itself."""

        self._interim = ""
        self._finalized_indexes.clear()


__all__ = ["TranscriptAccumulator"]
