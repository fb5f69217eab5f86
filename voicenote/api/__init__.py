"""FastAPI application exposing recording and transcription commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Type

from fastapi import FastAPI, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from .. import __version__
from ..errors import (
    Base64DecodeError,
    EmptyRecording,
    FileNotCreated,
    FileNotFound,
    FileWriteError,
    NoActiveSession,
    ProcessSpawnError,
    SessionAlreadyActive,
    TranscriptionError,
    VoicenoteError,
)
from ..models import DEFAULT_MODEL, DEFAULT_PROVIDER, SttSettings
from ..recorder import CaptureController
from ..storage import SettingsStore, load_stt_settings, save_stt_settings
from ..tempfiles import save_audio_temp_file
from ..transcriber import TranscriptionClient

logger = logging.getLogger(__name__)

_ERROR_STATUS: Dict[Type[VoicenoteError], int] = {
    SessionAlreadyActive: status.HTTP_409_CONFLICT,
    NoActiveSession: status.HTTP_404_NOT_FOUND,
    FileNotFound: status.HTTP_404_NOT_FOUND,
    EmptyRecording: status.HTTP_422_UNPROCESSABLE_CONTENT,
    FileNotCreated: status.HTTP_422_UNPROCESSABLE_CONTENT,
    Base64DecodeError: status.HTTP_400_BAD_REQUEST,
    ProcessSpawnError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FileWriteError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    TranscriptionError: status.HTTP_502_BAD_GATEWAY,
}


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    recording: bool


class RecordingResponse(BaseModel):
    path: str


class RecordingStatus(BaseModel):
    active: bool
    path: Optional[str] = None


class AudioUpload(BaseModel):
    audio_data: str
    file_name: str


class TranscriptionRequest(BaseModel):
    audio_path: str
    api_key: Optional[str] = None
    language: Optional[str] = None


class TranscriptionResult(BaseModel):
    text: str


class SettingsPayload(BaseModel):
    provider: str = DEFAULT_PROVIDER
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    language: Optional[str] = None


def _http_error(exc: VoicenoteError) -> HTTPException:
    for error_type in type(exc).__mro__:
        code = _ERROR_STATUS.get(error_type)
        if code is not None:
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _settings_payload(settings: SttSettings) -> SettingsPayload:
    return SettingsPayload(
        provider=settings.provider,
        api_key=settings.api_key,
        model=settings.model,
        language=settings.language,
    )


def create_app(
    controller: CaptureController,
    client: TranscriptionClient,
    store: SettingsStore,
    upload_dir: Optional[Path] = None,
) -> FastAPI:
    """Build the API around explicitly supplied collaborators."""

    app = FastAPI(
        title="voicenote API",
        description="Microphone capture and hosted transcription commands.",
        version=__version__,
    )

    @app.on_event("shutdown")
    async def discard_recording() -> None:
        if await controller.cancel():
            logger.info("Discarded active recording during shutdown")

    @app.get("/health", response_model=HealthResponse)
    async def healthcheck() -> HealthResponse:
        return HealthResponse(version=__version__, recording=controller.active)

    @app.get("/recordings/status", response_model=RecordingStatus)
    async def recording_status() -> RecordingStatus:
        path = controller.current_path
        return RecordingStatus(active=path is not None, path=str(path) if path else None)

    @app.post("/recordings/start", response_model=RecordingResponse, status_code=status.HTTP_201_CREATED)
    async def start_recording() -> RecordingResponse:
        try:
            path = await controller.start()
        except VoicenoteError as exc:
            raise _http_error(exc) from exc
        return RecordingResponse(path=str(path))

    @app.post("/recordings/stop", response_model=RecordingResponse)
    async def stop_recording() -> RecordingResponse:
        try:
            path = await controller.stop()
        except VoicenoteError as exc:
            raise _http_error(exc) from exc
        return RecordingResponse(path=str(path))

    @app.post("/recordings/cancel", status_code=status.HTTP_204_NO_CONTENT)
    async def cancel_recording() -> None:
        await controller.cancel()

    @app.post("/audio", response_model=RecordingResponse, status_code=status.HTTP_201_CREATED)
    async def upload_audio(payload: AudioUpload) -> RecordingResponse:
        try:
            path = await run_in_threadpool(
                save_audio_temp_file, payload.audio_data, payload.file_name, upload_dir
            )
        except VoicenoteError as exc:
            raise _http_error(exc) from exc
        return RecordingResponse(path=str(path))

    @app.post("/transcriptions", response_model=TranscriptionResult)
    async def create_transcription(request: TranscriptionRequest) -> TranscriptionResult:
        settings = await run_in_threadpool(load_stt_settings, store)
        api_key = request.api_key or settings.api_key
        if not api_key:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No API key supplied and none stored in settings.",
            )
        language = request.language if request.language is not None else settings.language
        try:
            text = await client.transcribe(Path(request.audio_path), api_key, language)
        except VoicenoteError as exc:
            raise _http_error(exc) from exc
        return TranscriptionResult(text=text)

    @app.get("/settings", response_model=SettingsPayload)
    async def get_settings() -> SettingsPayload:
        settings = await run_in_threadpool(load_stt_settings, store)
        return _settings_payload(settings)

    @app.put("/settings", response_model=SettingsPayload)
    async def put_settings(payload: SettingsPayload) -> SettingsPayload:
        settings = SttSettings(
            provider=payload.provider,
            api_key=payload.api_key,
            model=payload.model,
            language=payload.language,
        )
        await run_in_threadpool(save_stt_settings, store, settings)
        return _settings_payload(await run_in_threadpool(load_stt_settings, store))

    return app
