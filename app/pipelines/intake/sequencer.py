"""Ordered text-to-speech delivery of dispatcher replies."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional, Protocol

from app.services.speech_tts import TtsResult
from app.telemetry import record_speech_delivery

logger = logging.getLogger("app.services.intake_pipeline")

AudioDelivery = Callable[[str, TtsResult], Awaitable[None]]


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> TtsResult: ...


class SpeechResponseSequencer:
    """Play replies strictly in the order they were enqueued.

    A single drain task synthesizes and delivers one reply at a time, so a
    slow synthesis for reply A always finishes before reply B is heard. A
    failing reply is logged and skipped; the rest of the queue keeps going.
    """

    def __init__(self, tts: SpeechSynthesizer, deliver: AudioDelivery) -> None:
        self._tts = tts
        self._deliver = deliver
        self._queue: deque[str] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, text: str) -> bool:
        """Queue ``text`` for playback; returns False once closed or for blank text."""

        if self._closed:
            logger.debug("Sequencer closed; dropping reply")
            return False
        if not text or not text.strip():
            return False
        self._queue.append(text.strip())
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return True

    async def _drain(self) -> None:
        while self._queue:
            text = self._queue.popleft()
            try:
                audio = await self._tts.synthesize(text)
                if self._closed:
                    logger.debug("Sequencer closed during synthesis; dropping reply")
                    record_speech_delivery("dropped")
                    continue
                await self._deliver(text, audio)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Speech delivery failed; skipping reply")
                record_speech_delivery("failed")
                continue
            record_speech_delivery("delivered")

    def close(self, *, discard_pending: bool = True) -> None:
        """Stop accepting replies; by default drop any not yet started."""

        self._closed = True
        if discard_pending and self._queue:
            logger.info("Discarding %s queued replies on close", len(self._queue))
            self._queue.clear()

    async def wait_idle(self) -> None:
        task = self._drain_task
        if task is not None and not task.done():
            await asyncio.shield(task)


__all__ = ["AudioDelivery", "SpeechResponseSequencer", "SpeechSynthesizer"]
