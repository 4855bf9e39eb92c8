"""Live call pipelines, keyed by session id."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from app.config.settings import settings
from app.services.call_repository import get_call_repository
from app.services.geocoding import NominatimGeocoder
from app.services.llm_client import get_llm_client
from app.services.speech_tts import get_speech_tts_service
from app.telemetry import record_session_event

from .extraction import ExtractionEngine
from .flow import CallIntakePipeline
from .location import LocationResolver
from .session import ConversationSession

logger = logging.getLogger("app.services.intake_pipeline")

PipelineFactory = Callable[[ConversationSession], CallIntakePipeline]


class UnknownSessionError(KeyError):
    """Raised when no live call exists for a session id."""


def build_default_pipeline(session: ConversationSession) -> CallIntakePipeline:
    """Wire a session to Bedrock, Polly, Nominatim and the SQL repository.

    The clients are shared by reference; they hold no per-call state.
    The resolver is per call so its lookup cache never leaks across calls.
    """

    return CallIntakePipeline(
        session,
        engine=ExtractionEngine(get_llm_client()),
        resolver=LocationResolver(
            NominatimGeocoder(timeout=settings.intake.geocoding_timeout_seconds)
        ),
        tts=get_speech_tts_service(),
        gateway=get_call_repository(),
    )


class CallSessionRegistry:
    def __init__(self, factory: Optional[PipelineFactory] = None) -> None:
        self._factory = factory or build_default_pipeline
        self._pipelines: dict[str, CallIntakePipeline] = {}

    def __len__(self) -> int:
        return len(self._pipelines)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._pipelines

    def start(self) -> CallIntakePipeline:
        session = ConversationSession.start()
        pipeline = self._factory(session)
        self._pipelines[session.session_id] = pipeline
        record_session_event("started")
        logger.info("Call started session=%s", session.session_id)
        return pipeline

    def get(self, session_id: str) -> CallIntakePipeline:
        try:
            return self._pipelines[session_id]
        except KeyError as exc:
            raise UnknownSessionError(session_id) from exc

    def end(self, session_id: str) -> CallIntakePipeline:
        pipeline = self._pipelines.pop(session_id, None)
        if pipeline is None:
            raise UnknownSessionError(session_id)
        if pipeline.is_active:
            pipeline.end()
        record_session_event("ended")
        return pipeline

    async def close(self, *, timeout: float = 5.0) -> None:
        """End every live call and give queued writes a chance to land."""

        pipelines = list(self._pipelines.values())
        for session_id in list(self._pipelines):
            self.end(session_id)
        if not pipelines:
            return
        try:
            await asyncio.wait_for(
                asyncio.gather(*(p.wait_idle() for p in pipelines), return_exceptions=True),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for %s calls to drain", len(pipelines))


_DEFAULT_REGISTRY: CallSessionRegistry | None = None


def get_registry() -> CallSessionRegistry:
    """Return the process-wide registry of live calls."""

    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = CallSessionRegistry()
    return _DEFAULT_REGISTRY


__all__ = [
    "CallSessionRegistry",
    "PipelineFactory",
    "UnknownSessionError",
    "build_default_pipeline",
    "get_registry",
]
