"""Hosted transcription through the Mistral audio API."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from .errors import (
    EmptyRecording,
    FileNotFound,
    HttpRequestError,
    HttpStatusError,
    JsonParseError,
)
from .models import DEFAULT_MODEL, MISTRAL_TRANSCRIPTIONS_URL, Config

logger = logging.getLogger(__name__)


class TranscriptionUsage(BaseModel):
    prompt_audio_seconds: float
    prompt_tokens: int
    total_tokens: int
    completion_tokens: int


class TranscriptionResponse(BaseModel):
    model: str
    text: str
    language: Optional[str] = None
    usage: Optional[TranscriptionUsage] = None
    segments: List[Any] = Field(default_factory=list)
    finish_reason: Optional[str] = None


class TranscriptionClient:
    """Send a finished recording to the speech-to-text endpoint."""

    def __init__(
        self,
        endpoint: str = MISTRAL_TRANSCRIPTIONS_URL,
        model: str = DEFAULT_MODEL,
        timeout: Optional[float] = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: Config) -> "TranscriptionClient":
        return cls(endpoint=config.api_url, timeout=config.request_timeout)

    async def transcribe(self, audio_path: Path, api_key: str, language: Optional[str] = None) -> str:
        """Return the transcript text for ``audio_path``."""

        response = await self.fetch_transcription(audio_path, api_key, language)
        return response.text

    async def fetch_transcription(
        self,
        audio_path: Path,
        api_key: str,
        language: Optional[str] = None,
    ) -> TranscriptionResponse:
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFound(audio_path)
        size = audio_path.stat().st_size
        logger.info("Audio file size: %d bytes", size)
        if size == 0:
            raise EmptyRecording(audio_path)

        audio = await asyncio.to_thread(audio_path.read_bytes)
        file_name = audio_path.name or "audio.wav"

        data = {"model": self.model}
        if language is not None:
            data["language"] = language
        files = {"file": (file_name, audio, "audio/wav")}
        headers = {"Authorization": f"Bearer {api_key}"}

        logger.info("Transcribing %s (%d bytes), language=%s", file_name, len(audio), language)
        logger.debug("API key present: %s", bool(api_key))
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, headers=headers, data=data, files=files)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise HttpRequestError(f"Failed to send transcription request: {exc}") from exc

        raw = response.text
        logger.debug("Raw API response (status %s): %s", response.status_code, raw)
        if not response.is_success:
            logger.error("Mistral API error (%s): %s", response.status_code, raw)
            raise HttpStatusError(response.status_code, raw)

        try:
            parsed = TranscriptionResponse.model_validate_json(raw)
        except ValidationError as exc:
            raise JsonParseError(raw, detail=f"{exc.error_count()} validation error(s)") from exc

        logger.info("Transcription successful: %d characters", len(parsed.text))
        return parsed
