"""Dataclasses describing persistent and runtime objects for voicenote."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_PROVIDER = "mistral"
DEFAULT_MODEL = "voxtral-mini-latest"
MISTRAL_TRANSCRIPTIONS_URL = "https://api.mistral.ai/v1/audio/transcriptions"


@dataclass(slots=True)
class RecordingSession:
    """A running recorder process and the file it is writing."""

    process: subprocess.Popen
    path: Path
    started_at: datetime = field(default_factory=datetime.now)


@dataclass(slots=True)
class SttSettings:
    """Speech-to-text preferences stored in the settings database."""

    provider: str = DEFAULT_PROVIDER
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    language: Optional[str] = None


@dataclass(slots=True)
class Config:
    """User configuration stored on disk."""

    recorder_binary: str = "arecord"
    recording_dir: Optional[str] = None
    stop_grace_period: float = 5.0
    api_url: str = MISTRAL_TRANSCRIPTIONS_URL
    request_timeout: float = 120.0
    settings_db: Optional[str] = None
