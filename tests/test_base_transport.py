import asyncio

import pytest

from n2k_connect.core.exceptions import TransmitError, TransportError
from n2k_connect.core.patterns.observer import EventKind
from n2k_connect.models.profile import ConnectionProfile
from n2k_connect.transports.base_transport import BaseTransport

PROFILE = ConnectionProfile.from_row({"type": "socketcan", "socketcanInterface": "vcan0"}, "fake")


class _GatedTransport(BaseTransport):
    """Open blocks until the test releases it."""

    def __init__(self, profile, events, fail=None):
        super().__init__(profile, events)
        self.gate = asyncio.Event()
        self.fail = fail
        self.opened = 0
        self.released = 0
        self.written = []

    async def _open(self):
        self.opened += 1
        await self.gate.wait()
        if self.fail:
            raise self.fail

    async def _release(self):
        self.released += 1

    async def _write(self, data):
        self.written.append(data)


def _kinds(events):
    return [e.kind for e in events]


@pytest.mark.asyncio
async def test_concurrent_connects_share_one_attempt(drain):
    events = asyncio.Queue()
    transport = _GatedTransport(PROFILE, events)

    first = asyncio.create_task(transport.connect())
    second = asyncio.create_task(transport.connect())
    await asyncio.sleep(0)
    transport.gate.set()

    assert await first is True
    assert await second is True
    assert transport.opened == 1
    assert await transport.connect() is True
    assert _kinds(await drain(events, EventKind.CONNECTED)) == [EventKind.CONNECTED]


@pytest.mark.asyncio
async def test_disconnect_mid_connect_releases_everything(drain):
    events = asyncio.Queue()
    transport = _GatedTransport(PROFILE, events)

    connecting = asyncio.create_task(transport.connect())
    await asyncio.sleep(0.01)
    await transport.disconnect()

    assert await connecting is False
    assert transport.released == 1
    assert not transport.is_active
    assert _kinds(await drain(events, EventKind.DISCONNECTED)) == [EventKind.DISCONNECTED]


@pytest.mark.asyncio
async def test_failed_open_reports_error_then_disconnected(drain):
    events = asyncio.Queue()
    transport = _GatedTransport(PROFILE, events, fail=OSError("No such device"))
    transport.gate.set()

    assert await transport.connect() is False
    seen = await drain(events, EventKind.DISCONNECTED)
    assert _kinds(seen) == [EventKind.ERROR, EventKind.DISCONNECTED]
    assert isinstance(seen[0].payload, TransportError)
    assert not seen[0].payload.actionable
    assert transport.released == 1


@pytest.mark.asyncio
async def test_disconnect_is_safe_in_any_state(drain):
    events = asyncio.Queue()
    transport = _GatedTransport(PROFILE, events)
    await transport.disconnect()
    assert events.empty()

    transport.gate.set()
    await transport.connect()
    await transport.disconnect()
    await transport.disconnect()
    seen = await drain(events, EventKind.DISCONNECTED)
    assert _kinds(seen) == [EventKind.CONNECTED, EventKind.DISCONNECTED]
    assert events.empty()


@pytest.mark.asyncio
async def test_send_requires_open_channel():
    transport = _GatedTransport(PROFILE, asyncio.Queue())
    with pytest.raises(TransmitError):
        await transport.send(b"x")

    transport.gate.set()
    await transport.connect()
    await transport.send(b"x")
    assert transport.written == [b"x"]

    await transport.disconnect()
    with pytest.raises(TransmitError):
        await transport.send(b"y")


@pytest.mark.asyncio
async def test_events_carry_profile_id(drain):
    events = asyncio.Queue()
    transport = _GatedTransport(PROFILE, events)
    transport.gate.set()
    await transport.connect()
    (event,) = await drain(events, EventKind.CONNECTED)
    assert event.profile_id == "fake"
