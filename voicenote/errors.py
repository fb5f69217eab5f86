"""Exceptions raised by the capture and transcription pipeline."""

from __future__ import annotations

from pathlib import Path


class VoicenoteError(RuntimeError):
    """Base class for every failure surfaced by voicenote."""


class RecordingError(VoicenoteError):
    """Raised when the recording subprocess cannot be managed."""


class ProcessSpawnError(RecordingError):
    """Raised when the recording utility cannot be launched."""


class SessionAlreadyActive(RecordingError):
    """Raised when a recording is started while another one is running."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"A recording is already in progress: {path}")
        self.path = path


class NoActiveSession(RecordingError):
    """Raised when stopping without a running recording."""

    def __init__(self) -> None:
        super().__init__("No active recording to stop")


class FileNotCreated(RecordingError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Recording file was not created: {path}")
        self.path = path


class EmptyRecording(VoicenoteError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Recording file is empty: {path}")
        self.path = path


class FileNotFound(VoicenoteError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Audio file does not exist: {path}")
        self.path = path


class Base64DecodeError(VoicenoteError):
    """Raised when an uploaded audio payload is not valid base64."""


class FileWriteError(VoicenoteError):
    """Raised when a decoded payload cannot be written to disk."""


class TranscriptionError(VoicenoteError):
    """Raised when the remote speech-to-text call fails."""


class HttpRequestError(TranscriptionError):
    """Transport level failure: DNS, connection, timeout."""


class HttpStatusError(TranscriptionError):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Mistral API error ({status}): {body}")
        self.status = status
        self.body = body


class JsonParseError(TranscriptionError):
    def __init__(self, raw_body: str, detail: str = "") -> None:
        message = f"Failed to parse transcription response. Raw response: {raw_body}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.raw_body = raw_body
