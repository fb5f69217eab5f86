import sys
import time
from pathlib import Path

import pytest

from voicenote.recorder import CaptureController

FAKE_RECORDER = """\
import signal
import sys
import time

mode, path = sys.argv[1], sys.argv[2]
if mode == "stubborn":
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
if mode in ("write", "stubborn"):
    with open(path, "wb") as fh:
        fh.write(b"RIFF" + b"\\0" * 40)
elif mode == "empty":
    open(path, "wb").close()
open(path + ".ready", "w").close()
while True:
    time.sleep(0.05)
"""


class ScriptedController(CaptureController):
    """Runs a Python stand-in instead of arecord."""

    def __init__(self, directory: Path, script: Path, mode: str, **kwargs) -> None:
        super().__init__(directory, binary=sys.executable, **kwargs)
        self.script = script
        self.mode = mode

    def build_command(self, path: Path) -> list[str]:
        return [sys.executable, str(self.script), self.mode, str(path)]


@pytest.fixture
def recorder_script(tmp_path):
    script = tmp_path / "fake_recorder.py"
    script.write_text(FAKE_RECORDER)
    return script


@pytest.fixture
def make_controller(tmp_path, recorder_script):
    directory = tmp_path / "recordings"
    directory.mkdir()

    def factory(mode: str = "write", **kwargs) -> ScriptedController:
        kwargs.setdefault("grace_period", 5.0)
        return ScriptedController(directory, recorder_script, mode, **kwargs)

    return factory


@pytest.fixture
def wait_for_recorder():
    def wait(path: Path, timeout: float = 10.0) -> None:
        marker = Path(f"{path}.ready")
        deadline = time.monotonic() + timeout
        while not marker.exists():
            if time.monotonic() > deadline:
                raise AssertionError(f"Recorder for {path} never became ready")
            time.sleep(0.02)

    return wait
