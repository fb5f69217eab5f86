"""Microphone capture through an external recording utility.

The recorder is a plain subprocess (``arecord`` by default) writing a 16 kHz
mono S16_LE WAV file. A :class:`CaptureController` owns at most one such
process at a time through its :class:`SessionSlot`; callers start it, then
either stop it (keeping the file) or cancel it (discarding the file).
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .config import resolve_recording_dir
from .errors import (
    EmptyRecording,
    FileNotCreated,
    NoActiveSession,
    ProcessSpawnError,
    SessionAlreadyActive,
)
from .models import Config, RecordingSession

logger = logging.getLogger(__name__)

# 16-bit signed little-endian PCM, 16 kHz, mono.
ARECORD_ARGS = ("-f", "S16_LE", "-r", "16000", "-c", "1")


class Terminator(Protocol):
    """Asks a recorder process to finish writing and exit."""

    def request_stop(self, process: subprocess.Popen) -> None:
        ...


class SignalTerminator:
    """Send SIGTERM so the recorder can flush its WAV header before exiting."""

    def request_stop(self, process: subprocess.Popen) -> None:
        process.send_signal(signal.SIGTERM)


class KillTerminator:
    """Fallback for platforms without a cooperative stop signal."""

    def request_stop(self, process: subprocess.Popen) -> None:
        process.kill()


def default_terminator() -> Terminator:
    if os.name == "posix":
        return SignalTerminator()
    return KillTerminator()


class SessionSlot:
    """Holds at most one :class:`RecordingSession`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: Optional[RecordingSession] = None

    def acquire(self, factory: Callable[[], RecordingSession]) -> RecordingSession:
        """Create a session with ``factory`` and install it, unless one is held.

        The factory runs under the lock so two concurrent callers can never both
        spawn a recorder.
        """

        with self._lock:
            if self._session is not None:
                raise SessionAlreadyActive(self._session.path)
            session = factory()
            self._session = session
            return session

    def release(self) -> Optional[RecordingSession]:
        with self._lock:
            session, self._session = self._session, None
            return session

    @property
    def current(self) -> Optional[RecordingSession]:
        with self._lock:
            return self._session


class CaptureController:
    """Start, stop and cancel a single recording subprocess."""

    def __init__(
        self,
        directory: Path,
        binary: str = "arecord",
        grace_period: Optional[float] = 5.0,
        terminator: Optional[Terminator] = None,
    ) -> None:
        self.directory = Path(directory)
        self.binary = binary
        self.grace_period = grace_period
        self.terminator = terminator or default_terminator()
        self._slot = SessionSlot()

    @classmethod
    def from_config(cls, config: Config) -> "CaptureController":
        return cls(
            directory=resolve_recording_dir(config),
            binary=config.recorder_binary,
            grace_period=config.stop_grace_period,
        )

    @property
    def active(self) -> bool:
        return self._slot.current is not None

    @property
    def current_path(self) -> Optional[Path]:
        session = self._slot.current
        return session.path if session is not None else None

    def build_command(self, path: Path) -> List[str]:
        return [self.binary, *ARECORD_ARGS, str(path)]

    def _next_path(self) -> Path:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        return self.directory / f"recording_{stamp}.wav"

    def _spawn(self) -> RecordingSession:
        path = self._next_path()
        command = self.build_command(path)
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ProcessSpawnError(
                f"Failed to start {self.binary}: {exc}. Is {self.binary} installed?"
            ) from exc
        return RecordingSession(process=process, path=path)

    async def start(self) -> Path:
        """Launch the recorder and return the path it is writing to."""

        session = self._slot.acquire(self._spawn)
        logger.info("Recording started (pid %s) to %s", session.process.pid, session.path)
        return session.path

    async def stop(self) -> Path:
        """Stop the recorder gracefully and return the finished, non-empty file."""

        session = self._slot.release()
        if session is None:
            raise NoActiveSession()

        logger.info("Stopping recording process %s", session.process.pid)
        await asyncio.to_thread(self._finish, session.process)

        path = session.path
        if not path.exists():
            raise FileNotCreated(path)
        if path.stat().st_size == 0:
            raise EmptyRecording(path)
        logger.info("Recording stopped, file saved to %s", path)
        return path

    async def cancel(self) -> bool:
        """Kill the recorder and delete its file. Returns False when idle."""

        session = self._slot.release()
        if session is None:
            return False

        logger.info("Cancelling recording process %s", session.process.pid)
        await asyncio.to_thread(_kill_and_reap, session.process)
        try:
            session.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete cancelled recording %s: %s", session.path, exc)
        logger.info("Recording cancelled")
        return True

    def _finish(self, process: subprocess.Popen) -> None:
        try:
            self.terminator.request_stop(process)
        except ProcessLookupError:
            pass  # exited on its own
        try:
            process.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            logger.warning(
                "Recorder %s ignored stop request for %.1fs; killing it",
                process.pid,
                self.grace_period,
            )
            process.kill()
            process.wait()


def _kill_and_reap(process: subprocess.Popen) -> None:
    try:
        process.kill()
    except OSError as exc:
        logger.debug("Kill failed for recorder %s: %s", process.pid, exc)
    try:
        process.wait()
    except OSError as exc:
        logger.debug("Wait failed for recorder %s: %s", process.pid, exc)
