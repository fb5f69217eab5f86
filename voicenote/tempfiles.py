"""Materialise uploaded audio payloads as temporary files."""

from __future__ import annotations

import base64
import binascii
import logging
import tempfile
from pathlib import Path
from typing import Optional

from .errors import Base64DecodeError, FileWriteError

logger = logging.getLogger(__name__)


def save_audio_temp_file(audio_data: str, file_name: str, directory: Optional[Path] = None) -> Path:
    """Decode ``audio_data`` and write it as ``file_name`` in the temp directory."""

    try:
        audio = base64.b64decode(audio_data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise Base64DecodeError(f"Failed to decode base64: {exc}") from exc

    # Only the final component is honoured; uploads never escape the directory.
    name = Path(file_name).name or "audio.wav"
    target_dir = Path(directory) if directory is not None else Path(tempfile.gettempdir())
    path = (target_dir / name).resolve()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(audio)
    except OSError as exc:
        raise FileWriteError(f"Failed to write audio file {path}: {exc}") from exc

    logger.info("Saved audio file to %s (%d bytes)", path, len(audio))
    return path
