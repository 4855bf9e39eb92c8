"""Extraction stage: one model call per caller utterance.

The engine never retries reasoning. It retries transport failures a
bounded number of times, validates the response contract once, and
degrades every failure into an :class:`ExtractionResult` instead of
raising, so a bad model turn can never take the call down.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Protocol

from app.config.settings import settings
from app.services.llm_client import LlmInvocationError
from app.services.response_contract import EmergencyRecord, ExtractionContractError, ExtractionPayload
from app.telemetry import observe_extraction

from .prompts import build_extraction_request
from .types import ExtractionOutcome, ExtractionRequest, ExtractionResult, GeoPoint

logger = logging.getLogger("app.services.intake_pipeline")

FALLBACK_REPLY = "Please describe your emergency and your location."


class LlmClient(Protocol):
    async def invoke(self, *, system_prompt: str, user_prompt: str) -> str | None: ...


def _truncate(value: str, max_length: int = 500) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


class ExtractionEngine:
    """Turn conversation context into (record, dispatcher reply)."""

    def __init__(
        self,
        client: LlmClient,
        *,
        transport_retries: int | None = None,
        timeout_seconds: float | None = None,
        retry_backoff_seconds: float = 0.25,
    ) -> None:
        self._client = client
        self._transport_retries = (
            settings.intake.extraction_transport_retries
            if transport_retries is None
            else transport_retries
        )
        self._timeout_seconds = (
            settings.intake.extraction_timeout_seconds
            if timeout_seconds is None
            else timeout_seconds
        )
        self._retry_backoff_seconds = retry_backoff_seconds

    async def extract(
        self,
        context: str,
        current_record: Optional[EmergencyRecord],
        utterance: str,
        location_hint: Optional[GeoPoint] = None,
    ) -> ExtractionResult:
        request = build_extraction_request(context, current_record, utterance, location_hint)
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(self._run(request), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Extraction timed out after %.1fs; using fallback reply", self._timeout_seconds
            )
            result = ExtractionResult(outcome=ExtractionOutcome.FALLBACK, reply=FALLBACK_REPLY)
        observe_extraction(result.outcome.value, time.perf_counter() - started)
        return result

    async def _run(self, request: ExtractionRequest) -> ExtractionResult:
        raw_response = await self._invoke_with_retries(request)
        if raw_response is None:
            return ExtractionResult(outcome=ExtractionOutcome.TRANSPORT_FAILED)

        logger.info("Raw extraction response: %s", _truncate(raw_response))

        try:
            payload = ExtractionPayload.from_json(raw_response)
        except ExtractionContractError as exc:
            logger.warning("Extraction payload rejected: %s", exc)
            return ExtractionResult(
                outcome=ExtractionOutcome.FALLBACK,
                reply=FALLBACK_REPLY,
                raw_response=raw_response,
            )

        return ExtractionResult(
            outcome=ExtractionOutcome.PARSED,
            record=payload.emergency_data,
            reply=payload.dispatcher_response,
            raw_response=raw_response,
        )

    async def _invoke_with_retries(self, request: ExtractionRequest) -> str | None:
        attempts = self._transport_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                raw_response = await self._client.invoke(
                    system_prompt=request.system_prompt,
                    user_prompt=request.user_prompt,
                )
            except LlmInvocationError as exc:
                logger.warning(
                    "Extraction transport failure attempt=%s/%s: %s", attempt, attempts, exc
                )
                if attempt < attempts:
                    await asyncio.sleep(self._retry_backoff_seconds * attempt)
                continue
            # An empty body is a malformed answer, not a transport fault.
            return raw_response or ""
        return None


__all__ = ["ExtractionEngine", "FALLBACK_REPLY", "LlmClient"]
