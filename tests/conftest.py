"""Shared fakes for the intake pipeline tests."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys
from types import SimpleNamespace
from typing import Any, Optional
from uuid import uuid4

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from app.pipelines.intake import (  # noqa: E402
    CallIntakePipeline,
    ConversationSession,
    ExtractionEngine,
    LocationResolver,
)
from app.services.geocoding import GeocodingError, GeoPoint  # noqa: E402
from app.services.llm_client import LlmInvocationError  # noqa: E402
from app.services.speech_tts import TtsError, TtsResult  # noqa: E402


def model_reply(record: Optional[dict[str, Any]], reply: str = "Is anyone hurt?") -> str:
    return json.dumps(
        {"schemaVersion": 1, "emergencyData": record, "dispatcherResponse": reply}
    )


FIRE_RECORD = {
    "type": "FIRE",
    "severity": "HIGH",
    "description": "House fire, one person hurt",
    "location": "12 Elm Street",
    "casualties": 1,
    "latitude": None,
    "longitude": None,
}

MEDICAL_RECORD = {
    "type": "MEDICAL",
    "severity": "HIGH",
    "description": "Elderly man collapsed, not breathing normally",
    "location": "5 Oak Avenue",
    "casualties": 1,
    "latitude": None,
    "longitude": None,
}


class FakeLlm:
    """Scripted model client; each item is a reply string or an exception."""

    def __init__(self, *responses: Any, delay: float = 0.0, delays: tuple[float, ...] = ()) -> None:
        self._responses = list(responses)
        self._delay = delay
        self._delays = delays
        self.calls: list[dict[str, str]] = []
        self.started = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def invoke(self, *, system_prompt: str, user_prompt: str) -> Optional[str]:
        index = len(self.calls)
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        delay = self._delays[index] if index < len(self._delays) else self._delay
        if delay:
            await asyncio.sleep(delay)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeTts:
    def __init__(self, *, delays: Optional[dict[str, float]] = None, failing: tuple[str, ...] = ()) -> None:
        self._delays = delays or {}
        self._failing = set(failing)
        self.synthesized: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def synthesize(self, text: str) -> TtsResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delays.get(text, 0))
            self.synthesized.append(text)
            if text in self._failing:
                raise TtsError(f"cannot synthesize {text!r}")
            return TtsResult(audio_bytes=text.encode("utf-8"), media_type="audio/mpeg", voice_id="Joanna")
        finally:
            self.in_flight -= 1


class FakeGeocoder:
    def __init__(
        self,
        *,
        forward: Optional[dict[str, GeoPoint]] = None,
        reverse: Optional[dict[tuple[float, float], str]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self._forward = forward or {}
        self._reverse = reverse or {}
        self._error = error
        self._delay = delay
        self.forward_calls: list[str] = []
        self.reverse_calls: list[tuple[float, float]] = []

    async def forward(self, query: str) -> Optional[GeoPoint]:
        self.forward_calls.append(query)
        await self._maybe_fail()
        return self._forward.get(query)

    async def reverse(self, latitude: float, longitude: float) -> Optional[str]:
        self.reverse_calls.append((latitude, longitude))
        await self._maybe_fail()
        return self._reverse.get((latitude, longitude))

    async def _maybe_fail(self) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error


class FakeGateway:
    def __init__(self, *, fail_first: bool = False) -> None:
        self.creates: list[Any] = []
        self.updates: list[tuple[str, Any]] = []
        self._fail_next = fail_first

    async def create_call(self, payload):
        if self._fail_next:
            self._fail_next = False
            raise RuntimeError("database unavailable")
        self.creates.append(payload)
        return SimpleNamespace(id=uuid4())

    async def update_call(self, call_id, payload):
        self.updates.append((call_id, payload))
        return SimpleNamespace(id=call_id)


class Harness(SimpleNamespace):
    pipeline: CallIntakePipeline
    session: ConversationSession
    llm: FakeLlm
    tts: FakeTts
    geocoder: FakeGeocoder
    gateway: FakeGateway
    delivered: list[str]


def build_harness(
    llm: FakeLlm,
    *,
    tts: Optional[FakeTts] = None,
    geocoder: Optional[FakeGeocoder] = None,
    gateway: Optional[FakeGateway] = None,
    debounce_seconds: float = 2.0,
    extraction_timeout: float = 5.0,
) -> Harness:
    """Assemble a pipeline around in-memory collaborators.

    Must be called from inside a running event loop.
    """

    tts = tts or FakeTts()
    geocoder = geocoder or FakeGeocoder()
    gateway = gateway or FakeGateway()
    delivered: list[str] = []

    async def deliver(text: str, audio: TtsResult) -> None:
        delivered.append(text)

    session = ConversationSession.start()
    pipeline = CallIntakePipeline(
        session,
        engine=ExtractionEngine(
            llm,
            transport_retries=0,
            timeout_seconds=extraction_timeout,
            retry_backoff_seconds=0,
        ),
        resolver=LocationResolver(geocoder, timeout_seconds=1.0),
        tts=tts,
        gateway=gateway,
        deliver=deliver,
        debounce_seconds=debounce_seconds,
    )
    return Harness(
        pipeline=pipeline,
        session=session,
        llm=llm,
        tts=tts,
        geocoder=geocoder,
        gateway=gateway,
        delivered=delivered,
    )


__all__ = [
    "FIRE_RECORD",
    "MEDICAL_RECORD",
    "FakeGateway",
    "FakeGeocoder",
    "FakeLlm",
    "FakeTts",
    "GeocodingError",
    "LlmInvocationError",
    "build_harness",
    "model_reply",
]
