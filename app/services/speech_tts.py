"""Amazon Polly text-to-speech for dispatcher replies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape as html_escape
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TtsResult:
    """Synthesised MP3 audio for one dispatcher reply."""

    audio_bytes: bytes
    media_type: str
    voice_id: str


class TtsError(RuntimeError):
    """Raised when Polly speech synthesis fails."""


class SpeechTtsService:
    """Generate calm, slightly slowed dispatcher speech with Amazon Polly."""

    def __init__(
        self,
        *,
        default_voice_id: str | None = None,
        engine: str | None = None,
        rate: float = 0.95,
    ) -> None:
        self._default_voice_id = default_voice_id or settings.polly.default_voice_id
        self._engine = engine or settings.polly.engine
        self._rate = rate
        self._client = None

    def _polly(self):
        if self._client is None:
            self._client = create_boto3_client(
                "polly",
                region_name=settings.polly.region,
                read_timeout=10.0,
                max_attempts=2,
            )
        return self._client

    async def synthesize(self, text: str, *, voice_id: str | None = None) -> TtsResult:
        """Convert text to MP3 speech."""

        if not text or not text.strip():
            raise TtsError("Cannot synthesize empty text.")

        voice = voice_id or self._default_voice_id
        ssml = self._build_ssml(text.strip(), rate=self._rate)
        try:
            response: dict[str, Any] = await run_in_threadpool(
                self._polly().synthesize_speech,
                TextType="ssml",
                Text=ssml,
                VoiceId=voice,
                Engine=self._engine,
                OutputFormat="mp3",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Polly synth failed for voice '%s'", voice)
            raise TtsError(f"Failed to synthesize speech: {exc}") from exc

        audio_stream = response.get("AudioStream")
        if audio_stream is None:
            raise TtsError("Polly returned no audio stream.")
        audio_bytes = await run_in_threadpool(audio_stream.read)
        if not audio_bytes:
            raise TtsError("Polly returned an empty audio stream.")

        return TtsResult(audio_bytes=audio_bytes, media_type="audio/mpeg", voice_id=voice)

    @staticmethod
    def _build_ssml(text: str, *, rate: float) -> str:
        rate_pct = max(60, min(140, int(round(rate * 100))))
        if rate_pct != 100:
            return f'<speak><prosody rate="{rate_pct}%">{html_escape(text)}</prosody></speak>'
        return f"<speak>{html_escape(text)}</speak>"


_DEFAULT_SERVICE: SpeechTtsService | None = None


def get_speech_tts_service() -> SpeechTtsService:
    """Return the default TTS service instance."""

    global _DEFAULT_SERVICE
    if _DEFAULT_SERVICE is None:
        _DEFAULT_SERVICE = SpeechTtsService()
    return _DEFAULT_SERVICE


__all__ = [
    "SpeechTtsService",
    "TtsResult",
    "TtsError",
    "get_speech_tts_service",
]
