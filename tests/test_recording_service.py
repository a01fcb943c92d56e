import asyncio

import pytest

from config.app_config import settings
from n2k_connect.core.exceptions import RecordingError
from n2k_connect.core.patterns import AsyncEventBus, ConnectionEvent, EventKind
from n2k_connect.models.profile import ConnectionProfile
from n2k_connect.services.recording_service import RecordingService
from n2k_connect.transports.file_transport import FileReplayTransport


@pytest.fixture
def recorder(tmp_path):
    return RecordingService(str(tmp_path / "recordings"))


def _raw(line):
    return ConnectionEvent(EventKind.RAW_MESSAGE, line, profile_id="tcp")


@pytest.mark.asyncio
async def test_records_raw_lines_from_the_bus(recorder):
    bus = AsyncEventBus()
    bus.subscribe(recorder)
    await bus.start()
    try:
        bus.publish(_raw("dropped before start"))
        await bus.join()

        status = recorder.start_recording("harbour")
        assert status["file_name"] == "harbour.txt"
        bus.publish(_raw("2024-01-01T00:00:00.000Z,2,127250,1,255,8,ff"))
        bus.publish(ConnectionEvent(EventKind.SYNTHETIC_MESSAGE, "ignored"))
        bus.publish(ConnectionEvent(EventKind.CONNECTED))
        bus.publish(_raw("2024-01-01T00:00:01.000Z,2,130306,1,255,8,00"))
        await bus.join()
    finally:
        await bus.stop()

    assert recorder.status()["message_count"] == 2
    assert recorder.status()["file_size"] > 0
    final = recorder.stop_recording()
    assert final["is_recording"] is False
    assert final["message_count"] == 2

    content = (recorder.directory / "harbour.txt").read_text(encoding="utf-8")
    assert content.splitlines() == [
        "2024-01-01T00:00:00.000Z,2,127250,1,255,8,ff",
        "2024-01-01T00:00:01.000Z,2,130306,1,255,8,00",
    ]


def test_default_name_and_conflicts(recorder):
    status = recorder.start_recording()
    assert status["file_name"].startswith("recording_")
    assert status["file_name"].endswith(".txt")

    with pytest.raises(RecordingError):
        recorder.start_recording("other")
    name = recorder.stop_recording()["file_name"]

    with pytest.raises(RecordingError):
        recorder.start_recording(name)
    with pytest.raises(RecordingError):
        recorder.stop_recording()


@pytest.mark.parametrize("name", ["../escape.txt", "sub/dir.txt", "..", ""])
def test_rejects_names_outside_the_directory(recorder, name):
    with pytest.raises(RecordingError):
        recorder.recording_path(name)


@pytest.mark.asyncio
async def test_list_and_delete(recorder):
    recorder.start_recording("a.log")
    await recorder.notify(_raw("one"))
    await recorder.notify(_raw("two"))

    with pytest.raises(RecordingError):
        recorder.delete_recording("a.log")
    recorder.stop_recording()

    (listed,) = recorder.list_recordings()
    assert listed.name == "a.log"
    assert listed.line_count == 2

    recorder.delete_recording("a.log")
    assert recorder.list_recordings() == []
    with pytest.raises(RecordingError):
        recorder.delete_recording("a.log")


@pytest.mark.asyncio
async def test_recording_plays_back_through_file_replay(recorder, drain, monkeypatch):
    monkeypatch.setattr(settings, "REPLAY_BASE_INTERVAL", 0.001)
    lines = [f"2024-01-01T00:00:0{i}.000Z,2,127250,1,255,8,0{i}" for i in range(3)]
    recorder.start_recording("trip")
    for line in lines:
        await recorder.notify(_raw(line))
    recorder.stop_recording()

    profile = ConnectionProfile.from_row(
        {"type": "file", "filePath": str(recorder.directory / "trip.txt")}, "replay")
    events = asyncio.Queue()
    await FileReplayTransport(profile, events).connect()
    seen = await drain(events, EventKind.DISCONNECTED)
    assert [e.payload for e in seen if e.kind is EventKind.RAW_MESSAGE] == lines
