"""Service layer helpers for external integrations."""

from .geocoding import GeocodingError, GeoPoint, NominatimGeocoder
from .llm_client import BedrockLlmClient, LlmInvocationError, get_llm_client
from .speech_tts import (
    SpeechTtsService,
    TtsError,
    TtsResult,
    get_speech_tts_service,
)

__all__ = [
    "BedrockLlmClient",
    "LlmInvocationError",
    "get_llm_client",
    "SpeechTtsService",
    "TtsResult",
    "TtsError",
    "get_speech_tts_service",
    "GeoPoint",
    "GeocodingError",
    "NominatimGeocoder",
]
