"""Turn processing for one live call.

Execution order for every processed caller utterance:

1. ``transcript`` folds recognizer fragments into a finalized utterance.
2. ``session`` appends the caller turn; the debounce check decides
   whether the utterance is processed now or folded into the next one.
3. ``extraction`` derives the record and the dispatcher reply.
4. ``location`` enriches the record with coordinates or an address.
5. ``change_detector`` decides whether the record is written.
6. ``persistence`` queues the write without blocking the turn.
7. ``sequencer`` speaks the reply in order.

Every completion re-checks ``session.is_active`` before applying results,
because ending a call abandons in-flight work instead of cancelling it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from app.config.settings import settings
from app.services.speech_tts import TtsResult

from .change_detector import ChangeDetector
from .extraction import ExtractionEngine
from .location import LocationResolver
from .persistence import CallGateway, PersistenceQueue
from .recognizer import RecognizerMonitor, RecognizerState
from .sequencer import AudioDelivery, SpeechResponseSequencer, SpeechSynthesizer
from .session import ConversationSession
from .transcript import TranscriptAccumulator
from .types import (
    ConversationTurn,
    EmergencyRecord,
    ExtractionOutcome,
    ExtractionResult,
    GeoPoint,
    RecognizerFragment,
    Speaker,
    TurnOutcome,
)

logger = logging.getLogger("app.services.intake_pipeline")
transcript_logger = logging.getLogger("app.logs.transcript")

_AUDIO_OUTBOX_SIZE = 32


@dataclass(frozen=True)
class SpokenReply:
    text: str
    audio: TtsResult


@dataclass(frozen=True)
class CallSnapshot:
    session_id: str
    active: bool
    call_id: Optional[str]
    record: Optional[EmergencyRecord]
    history: tuple[ConversationTurn, ...]
    interim_transcript: str
    pending_utterances: int
    pending_replies: int
    location_hint: Optional[GeoPoint]
    recognizer: RecognizerState


class CallIntakePipeline:
    """Owns one call session and every per-call collaborator."""

    def __init__(
        self,
        session: ConversationSession,
        *,
        engine: ExtractionEngine,
        resolver: LocationResolver,
        tts: SpeechSynthesizer,
        gateway: CallGateway,
        deliver: AudioDelivery | None = None,
        debounce_seconds: float | None = None,
        context_window: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._engine = engine
        self._resolver = resolver
        self._change_detector = ChangeDetector()
        self._accumulator = TranscriptAccumulator()
        self._recognizer = RecognizerMonitor()
        self._persistence = PersistenceQueue(session, gateway)
        self._audio_outbox: asyncio.Queue[Optional[SpokenReply]] = asyncio.Queue(
            maxsize=_AUDIO_OUTBOX_SIZE
        )
        self._sequencer = SpeechResponseSequencer(tts, deliver or self._push_audio)
        self._debounce_seconds = (
            settings.intake.debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self._context_window = context_window or settings.intake.context_window
        self._clock = clock
        self._pending_utterances: list[str] = []
        self._location_hint: Optional[GeoPoint] = None
        self._tasks: set[asyncio.Task] = set()
        # Turns are numbered when they start; a record from a turn older than
        # the last one applied is discarded.
        self._turn_seq = 0
        self._applied_seq = 0

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def is_active(self) -> bool:
        return self._session.is_active

    @property
    def recognizer(self) -> RecognizerState:
        return self._recognizer.state

    # -- inputs ---------------------------------------------------------

    def greet(self, text: str | None = None) -> str:
        greeting = (text or settings.intake.greeting).strip()
        self._say(greeting)
        return greeting

    def accept_fragment(self, fragment: RecognizerFragment, now: float | None = None) -> bool:
        """Feed one recognizer fragment; True when a turn was scheduled."""

        self._session.ensure_active()
        utterance = self._accumulator.push(fragment)
        if utterance is None:
            return False
        self._session.append_turn(Speaker.CALLER, utterance)
        self._log_line(Speaker.CALLER, utterance)
        self._pending_utterances.append(utterance)
        return self._maybe_process(self._now(now))

    def flush(self, now: float | None = None) -> bool:
        """Recognizer end-of-stream: process held utterances if allowed."""

        self._session.ensure_active()
        self._accumulator.reset_stream()
        if not self._pending_utterances:
            return False
        return self._maybe_process(self._now(now))

    async def submit_text(self, text: str, now: float | None = None) -> TurnOutcome:
        """Manual text path; bypasses the debounce and waits for the turn."""

        message = text.strip()
        self._session.append_turn(Speaker.CALLER, message)
        self._log_line(Speaker.CALLER, message)
        utterance = self._take_pending(message)
        self._session.mark_processed(self._now(now))
        return await self._process_turn(utterance)

    def set_location_hint(self, latitude: float, longitude: float) -> GeoPoint:
        self._session.ensure_active()
        self._location_hint = GeoPoint(latitude=latitude, longitude=longitude)
        logger.info(
            "Location hint set session=%s lat=%.5f lon=%.5f",
            self.session_id,
            latitude,
            longitude,
        )
        return self._location_hint

    def report_recognizer_error(self, code: str | None) -> RecognizerState:
        self._session.ensure_active()
        return self._recognizer.report(code)

    # -- lifecycle ------------------------------------------------------

    def end(self) -> None:
        """Tear the call down; in-flight work finishes but is not applied."""

        self._session.end()
        self._recognizer.stop()
        self._sequencer.close()
        self._persistence.close()
        self._pending_utterances.clear()
        self._offer_audio(None)
        logger.info("Call ended session=%s", self.session_id)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._sequencer.wait_idle()
        await self._persistence.wait_idle()

    async def next_audio(self) -> Optional[SpokenReply]:
        """Next spoken reply for the caller, or None once the call ended."""

        if not self._session.is_active and self._audio_outbox.empty():
            return None
        return await self._audio_outbox.get()

    def snapshot(self) -> CallSnapshot:
        session = self._session
        return CallSnapshot(
            session_id=session.session_id,
            active=session.is_active,
            call_id=session.call_id,
            record=session.current_record,
            history=session.history,
            interim_transcript=self._accumulator.interim,
            pending_utterances=len(self._pending_utterances),
            pending_replies=self._sequencer.pending,
            location_hint=self._location_hint,
            recognizer=self._recognizer.state,
        )

    # -- turn processing ------------------------------------------------

    def _maybe_process(self, now: float) -> bool:
        last = self._session.last_processed_at
        if last is not None and now - last < self._debounce_seconds:
            logger.debug(
                "Debounced utterance session=%s pending=%s",
                self.session_id,
                len(self._pending_utterances),
            )
            return False
        utterance = self._take_pending()
        self._session.mark_processed(now)
        task = asyncio.get_running_loop().create_task(self._process_turn(utterance))
        self._tasks.add(task)
        task.add_done_callback(self._on_turn_done)
        return True

    def _on_turn_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Turn processing crashed session=%s", self.session_id, exc_info=exc
            )

    async def _process_turn(self, utterance: str) -> TurnOutcome:
        session = self._session
        if not session.is_active:
            return _dropped(ExtractionOutcome.TRANSPORT_FAILED)

        self._turn_seq += 1
        seq = self._turn_seq
        hint = self._location_hint
        result = await self._engine.extract(
            session.context_window(self._context_window),
            session.current_record,
            utterance,
            hint,
        )
        if not session.is_active:
            logger.info("Dropping extraction for ended session=%s", self.session_id)
            return TurnOutcome(extraction=result, applied=False)

        changed = False
        record: Optional[EmergencyRecord] = None
        if result.record is not None:
            record = await self._enrich(result.record, hint, session.current_record)
            if not session.is_active:
                logger.info("Dropping enrichment for ended session=%s", self.session_id)
                return TurnOutcome(extraction=result, applied=False)
            if seq < self._applied_seq:
                logger.info(
                    "Discarding record from superseded turn session=%s turn=%s latest=%s",
                    self.session_id,
                    seq,
                    self._applied_seq,
                )
                record = None
            else:
                self._applied_seq = seq

        if record is not None and self._change_detector.is_material_change(
            session.current_record, record
        ):
            session.replace_record(record)
            self._persistence.submit(record, session.transcript())
            changed = True
            logger.info(
                "Record changed session=%s type=%s severity=%s",
                self.session_id,
                record.type.value,
                record.severity.value,
            )

        if result.reply:
            self._say(result.reply)

        return TurnOutcome(extraction=result, record_changed=changed)

    async def _enrich(
        self,
        record: EmergencyRecord,
        hint: Optional[GeoPoint],
        previous: Optional[EmergencyRecord],
    ) -> EmergencyRecord:
        try:
            enriched = await self._resolver.enrich(record, hint, previous)
        except Exception:  # pragma: no cover - resolver already degrades
            logger.exception("Location enrichment failed session=%s", self.session_id)
            return record
        return enriched or record

    def _say(self, text: str) -> None:
        self._session.append_turn(Speaker.DISPATCHER, text)
        self._log_line(Speaker.DISPATCHER, text)
        self._sequencer.enqueue(text)

    def _take_pending(self, extra: str | None = None) -> str:
        parts = list(self._pending_utterances)
        if extra:
            parts.append(extra)
        self._pending_utterances.clear()
        return " ".join(parts)

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def _log_line(self, speaker: Speaker, text: str) -> None:
        transcript_logger.info("[%s] %s: %s", self.session_id, speaker.label, text)

    # -- audio outbox ---------------------------------------------------

    async def _push_audio(self, text: str, audio: TtsResult) -> None:
        if not self._session.is_active:
            return
        self._offer_audio(SpokenReply(text=text, audio=audio))

    def _offer_audio(self, item: Optional[SpokenReply]) -> None:
        if self._audio_outbox.full():
            self._audio_outbox.get_nowait()
            logger.warning("Audio outbox full session=%s; dropping oldest reply", self.session_id)
        self._audio_outbox.put_nowait(item)


def _dropped(outcome: ExtractionOutcome) -> TurnOutcome:
    return TurnOutcome(extraction=ExtractionResult(outcome=outcome), applied=False)


__all__ = ["CallIntakePipeline", "CallSnapshot", "SpokenReply"]
