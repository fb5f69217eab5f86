import asyncio
import sys
import time
from pathlib import Path

import pytest

from voicenote.errors import (
    EmptyRecording,
    FileNotCreated,
    NoActiveSession,
    ProcessSpawnError,
    SessionAlreadyActive,
)
from voicenote.recorder import ARECORD_ARGS, CaptureController, SessionSlot

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="requires POSIX signals")


def test_stop_returns_started_path_with_audio(make_controller, wait_for_recorder):
    controller = make_controller()

    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    stopped = asyncio.run(controller.stop())

    assert stopped == path
    assert stopped.stat().st_size > 0
    assert not controller.active


def test_cancel_removes_file_and_stops_process(make_controller, wait_for_recorder):
    controller = make_controller()

    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    process = controller._slot.current.process

    assert asyncio.run(controller.cancel()) is True
    assert not path.exists()
    assert process.poll() is not None
    assert not controller.active


def test_stop_without_session_raises():
    controller = CaptureController(Path("."))
    with pytest.raises(NoActiveSession):
        asyncio.run(controller.stop())


def test_cancel_without_session_is_noop():
    controller = CaptureController(Path("."))
    assert asyncio.run(controller.cancel()) is False
    assert asyncio.run(controller.cancel()) is False


def test_second_start_is_rejected_without_leaking_first(make_controller, wait_for_recorder):
    controller = make_controller()

    path = asyncio.run(controller.start())
    first = controller._slot.current
    with pytest.raises(SessionAlreadyActive) as excinfo:
        asyncio.run(controller.start())

    assert excinfo.value.path == path
    assert controller._slot.current is first
    assert first.process.poll() is None

    wait_for_recorder(path)
    assert asyncio.run(controller.stop()) == path
    assert first.process.poll() is not None


def test_empty_recording_is_reported_and_slot_cleared(make_controller, wait_for_recorder):
    controller = make_controller(mode="empty")

    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    with pytest.raises(EmptyRecording):
        asyncio.run(controller.stop())
    assert not controller.active


def test_missing_file_is_reported(make_controller, wait_for_recorder):
    controller = make_controller(mode="none")

    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    with pytest.raises(FileNotCreated):
        asyncio.run(controller.stop())


def test_recorder_ignoring_sigterm_is_killed_after_grace_period(make_controller, wait_for_recorder):
    controller = make_controller(mode="stubborn", grace_period=0.2)

    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    process = controller._slot.current.process

    assert asyncio.run(controller.stop()) == path
    assert process.returncode is not None


def test_missing_binary_raises_spawn_error(tmp_path):
    controller = CaptureController(tmp_path, binary=str(tmp_path / "no-such-arecord"))

    with pytest.raises(ProcessSpawnError) as excinfo:
        asyncio.run(controller.start())

    assert "no-such-arecord" in str(excinfo.value)
    assert not controller.active


def test_build_command_uses_speech_friendly_pcm(tmp_path):
    controller = CaptureController(tmp_path)
    target = tmp_path / "out.wav"

    assert controller.build_command(target) == ["arecord", *ARECORD_ARGS, str(target)]
    assert ARECORD_ARGS == ("-f", "S16_LE", "-r", "16000", "-c", "1")


def test_recording_paths_are_time_stamped_in_directory(tmp_path):
    controller = CaptureController(tmp_path)
    path = controller._next_path()

    assert path.parent == tmp_path
    assert path.name.startswith("recording_") and path.suffix == ".wav"


def test_session_slot_holds_a_single_session(tmp_path):
    slot = SessionSlot()
    calls = []

    def factory():
        calls.append(1)
        return object()

    session = slot.acquire(factory)
    assert slot.current is session
    assert slot.release() is session
    assert slot.release() is None
    assert calls == [1]


def test_stop_waits_without_blocking_the_event_loop(make_controller, wait_for_recorder):
    controller = make_controller(mode="stubborn", grace_period=0.5)
    path = asyncio.run(controller.start())
    wait_for_recorder(path)

    async def scenario():
        ticks = []

        async def ticker():
            for _ in range(5):
                await asyncio.sleep(0.02)
                ticks.append(time.monotonic())

        async def stop():
            stopped = await controller.stop()
            return stopped, time.monotonic()

        (stopped, stopped_at), _ = await asyncio.gather(stop(), ticker())
        return stopped, stopped_at, ticks

    stopped, stopped_at, ticks = asyncio.run(scenario())

    assert stopped == path
    assert len(ticks) == 5
    assert ticks[-1] < stopped_at - 0.2


def test_cancel_ignores_deletion_failure(make_controller, wait_for_recorder, monkeypatch):
    controller = make_controller()
    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    process = controller._slot.current.process

    def failing_unlink(self, missing_ok=False):
        raise PermissionError(f"read-only: {self}")

    monkeypatch.setattr(Path, "unlink", failing_unlink)

    assert asyncio.run(controller.cancel()) is True
    assert not controller.active
    assert process.poll() is not None


def test_cancel_tolerates_already_deleted_file(make_controller, wait_for_recorder):
    controller = make_controller()
    path = asyncio.run(controller.start())
    wait_for_recorder(path)
    path.unlink()

    assert asyncio.run(controller.cancel()) is True
    assert not controller.active
