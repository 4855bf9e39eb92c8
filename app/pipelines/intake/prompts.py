"""Prompt construction stage for the call intake pipeline.

Transforms the bounded conversation context, the current record and the
newest caller utterance into the system/user prompts consumed by the
extraction model.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from app.services.response_contract import (
    CONTRACT_VERSION,
    EmergencyRecord,
    EmergencyType,
    Severity,
)

from .types import ExtractionRequest, GeoPoint

logger = logging.getLogger("app.services.intake_pipeline")

_SYSTEM_PROMPT = """You are a calm, professional 911 emergency dispatcher talking to a caller.
On every turn you do two things:
1. Maintain a structured record of the emergency from everything the caller has said.
2. Say the next thing the dispatcher should say to the caller.

Reply rules:
- One short sentence, two at most. Ask one question at a time.
- Give immediate safety instructions when lives are at risk.
- Never promise response times.

Record rules:
- type is one of: {types}.
- severity is one of: {severities}. CRITICAL means an immediate threat to life.
- casualties is the number of injured or unresponsive people (0 if none mentioned).
- location is the address or place as the caller described it ("" if unknown).
- latitude/longitude are null unless known.
- If there is not enough information for a record yet, emergencyData is null.
- If a current record is given, return it EXACTLY unchanged unless the newest
  caller message adds or corrects information. Do not reword fields for style.

{location_policy}

Respond with JSON only, no prose and no Markdown, in exactly this shape:
{{"schemaVersion": {version},
  "emergencyData": {{"type": "...", "severity": "...", "description": "...",
                    "location": "...", "casualties": 0,
                    "latitude": null, "longitude": null}} | null,
  "dispatcherResponse": "..."}}"""

_LOCATION_WITH_HINT = (
    "Location policy: the caller's device reported latitude {lat:.6f}, longitude {lon:.6f}. "
    "Treat these coordinates as authoritative and copy them into the record. Do not ask "
    "where the caller is; only ask for corroborating detail such as the street address, "
    "building, floor or a nearby landmark if it is still missing."
)

_LOCATION_WITHOUT_HINT = (
    "Location policy: no device location is available. Until the caller has given a "
    "usable location, asking where they are is your highest-priority follow-up question."
)


def _truncate(value: str, max_length: int = 240) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


def build_system_prompt(location_hint: Optional[GeoPoint]) -> str:
    if location_hint is not None:
        location_policy = _LOCATION_WITH_HINT.format(
            lat=location_hint.latitude, lon=location_hint.longitude
        )
    else:
        location_policy = _LOCATION_WITHOUT_HINT
    return _SYSTEM_PROMPT.format(
        types=", ".join(member.value for member in EmergencyType),
        severities=", ".join(member.value for member in Severity),
        location_policy=location_policy,
        version=CONTRACT_VERSION,
    )


def build_user_prompt(
    context: str,
    current_record: Optional[EmergencyRecord],
    utterance: str,
) -> str:
    record_json = (
        json.dumps(current_record.model_dump(mode="json"), ensure_ascii=False)
        if current_record is not None
        else "null"
    )
    return (
        "Conversation so far:\n"
        f"{context or '(no conversation yet)'}\n\n"
        f"Current record: {record_json}\n\n"
        f"Newest caller message: {utterance.strip() or '(silence)'}"
    )


def build_extraction_request(
    context: str,
    current_record: Optional[EmergencyRecord],
    utterance: str,
    location_hint: Optional[GeoPoint] = None,
) -> ExtractionRequest:
    """Assemble prompts and metadata for one extraction call."""

    system_prompt = build_system_prompt(location_hint)
    user_prompt = build_user_prompt(context, current_record, utterance)

    logger.debug(
        "Extraction prompt built hint=%s\nUSER> %s",
        location_hint is not None,
        _truncate(user_prompt, 500),
    )

    return ExtractionRequest(
        context=context,
        current_record=current_record,
        utterance=utterance,
        location_hint=location_hint,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
    )


__all__ = ["build_extraction_request", "build_system_prompt", "build_user_prompt"]
