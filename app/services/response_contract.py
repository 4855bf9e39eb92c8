"""Pydantic models for validating the extraction model's JSON responses.

The model answers every turn with a single tagged payload::

    {"schemaVersion": 1,
     "emergencyData": {...} | null,
     "dispatcherResponse": "..."}

Anything that does not validate against these schemas is rejected as a
whole; downstream code never receives a partially trusted record.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONTRACT_VERSION = 1


class EmergencyType(str, Enum):
    FIRE = "FIRE"
    MEDICAL = "MEDICAL"
    POLICE = "POLICE"
    NATURAL_DISASTER = "NATURAL_DISASTER"
    ACCIDENT = "ACCIDENT"
    OTHER = "OTHER"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class EmergencyRecord(BaseModel):
    """Complete structured description of the reported incident.

    Frozen so that equality is purely structural and a record can never be
    patched in place once it is the session's current record.
    """

    type: EmergencyType
    severity: Severity
    description: str
    location: str = ""
    casualties: int = Field(default=0, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("type", "severity", mode="before")
    @classmethod
    def normalize_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper().replace(" ", "_")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("location", mode="before")
    @classmethod
    def normalize_location(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @field_validator("casualties", mode="before")
    @classmethod
    def default_casualties(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ExtractionPayload(BaseModel):
    schema_version: int = Field(default=CONTRACT_VERSION, alias="schemaVersion")
    emergency_data: Optional[EmergencyRecord] = Field(alias="emergencyData")
    dispatcher_response: str = Field(alias="dispatcherResponse", min_length=1)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("schema_version")
    @classmethod
    def supported_version(cls, value: int) -> int:
        if value != CONTRACT_VERSION:
            raise ValueError(f"unsupported contract version {value}")
        return value

    @field_validator("dispatcher_response", mode="before")
    @classmethod
    def strip_response(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @classmethod
    def from_json(cls, payload: str) -> "ExtractionPayload":
        cleaned = _clean_json_payload(payload)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ExtractionContractError(f"Payload is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ExtractionContractError("Payload is not a JSON object.")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ExtractionContractError(str(exc)) from exc


class ResponseContractError(RuntimeError):
    """Raised when the LLM response contract cannot be validated."""


class ExtractionContractError(ResponseContractError):
    """The extraction payload was missing, malformed or failed validation."""


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = [
    "CONTRACT_VERSION",
    "EmergencyRecord",
    "EmergencyType",
    "ExtractionContractError",
    "ExtractionPayload",
    "ResponseContractError",
    "Severity",
]
