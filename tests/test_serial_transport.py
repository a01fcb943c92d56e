import asyncio

import pytest

from n2k_connect.core.exceptions import ConfigurationError, RoutingError
from n2k_connect.core.patterns.observer import EventKind
from n2k_connect.models.messages import OutboundMessage
from n2k_connect.models.profile import ConnectionProfile
from n2k_connect.transports import (
    FileReplayTransport,
    SerialTransport,
    SignalKTransport,
    SocketCANTransport,
    TCPTransport,
    TransportFactory,
    UDPTransport,
)
from n2k_connect.transports import serial_transport
from n2k_connect.transports.serial_streams import (
    N2K_MSG_RECEIVED,
    N2K_MSG_SEND,
    BstDecoder,
    build_bst_frame,
)

RECEIVED = bytes([2, 0x12, 0xF1, 0x01, 255, 1, 0, 0, 0, 0, 2, 0xAB, 0xCD])


def _serial(device):
    return ConnectionProfile.from_row({
        "type": "serial", "serialPort": "/dev/ttyUSB0", "baudRate": 115200, "deviceType": device}, "usb")


class _FakePort:
    """Loopback TCP server standing in for the serial device."""

    def __init__(self, script=b""):
        self.script = script
        self.received = bytearray()
        self.got_data = asyncio.Event()
        self.server = None
        self.opened_with = None

    async def handle(self, reader, writer):
        writer.write(self.script)
        await writer.drain()
        while True:
            data = await reader.read(1024)
            if not data:
                break
            self.received += data
            self.got_data.set()
        writer.close()

    async def open(self, url, baudrate):
        self.opened_with = (url, baudrate)
        port = self.server.sockets[0].getsockname()[1]
        return await asyncio.open_connection("127.0.0.1", port)

    async def __aenter__(self):
        self.server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
        return self

    async def __aexit__(self, *exc):
        self.server.close()
        await self.server.wait_closed()


@pytest.mark.asyncio
async def test_actisense_frames_in_and_out(monkeypatch, drain):
    async with _FakePort(build_bst_frame(N2K_MSG_RECEIVED, RECEIVED)) as port:
        monkeypatch.setattr(serial_transport.serial_asyncio, "open_serial_connection", port.open)
        events = asyncio.Queue()
        transport = SerialTransport(_serial("Actisense"), events)
        assert await transport.connect() is True
        assert port.opened_with == ("/dev/ttyUSB0", 115200)

        seen = await drain(events, EventKind.RAW_MESSAGE)
        assert seen[-1].payload.split(",", 1)[1] == "2,127250,1,255,2,ab,cd"

        await transport.send_message(OutboundMessage(pgn=59904, dst=0x23, prio=6, data=b"\x14\xF0\x01"))
        await asyncio.wait_for(port.got_data.wait(), 2)
        await transport.disconnect()

    ((command, payload),) = BstDecoder().feed(bytes(port.received))
    assert command == N2K_MSG_SEND
    assert payload == bytes([6, 0x00, 0xEA, 0x00, 0x23, 3, 0x14, 0xF0, 0x01])


@pytest.mark.asyncio
async def test_ikonvert_goes_online_on_open(monkeypatch, drain):
    script = b"$PDGY,000000,4,0\r\n!PDGY,127250,255,AAEC\r\n"
    async with _FakePort(script) as port:
        monkeypatch.setattr(serial_transport.serial_asyncio, "open_serial_connection", port.open)
        events = asyncio.Queue()
        transport = SerialTransport(_serial("iKonvert"), events)
        await transport.connect()
        seen = await drain(events, EventKind.RAW_MESSAGE)
        await asyncio.wait_for(port.got_data.wait(), 2)
        await transport.disconnect()

    assert seen[-1].payload == "!PDGY,127250,255,AAEC"
    assert bytes(port.received) == b"$PDGY,N2NET_INIT,ALL\r\n"


@pytest.mark.asyncio
async def test_generic_serial_reads_lines_and_takes_only_bytes(monkeypatch, drain):
    async with _FakePort(b"09F11201 00 01 02\r\n") as port:
        monkeypatch.setattr(serial_transport.serial_asyncio, "open_serial_connection", port.open)
        events = asyncio.Queue()
        transport = SerialTransport(_serial("Yacht Devices"), events)
        await transport.connect()
        seen = await drain(events, EventKind.RAW_MESSAGE)
        with pytest.raises(RoutingError):
            await transport.send_message(OutboundMessage(pgn=127250, data=b"\x00"))
        await transport.disconnect()

    assert seen[-1].payload == "09F11201 00 01 02"


@pytest.mark.asyncio
async def test_missing_port_is_reported(monkeypatch, drain):
    async def unplugged(url, baudrate):
        raise OSError(2, "could not open port /dev/ttyUSB0")

    monkeypatch.setattr(serial_transport.serial_asyncio, "open_serial_connection", unplugged)
    events = asyncio.Queue()
    assert await SerialTransport(_serial("Actisense"), events).connect() is False
    seen = await drain(events, EventKind.DISCONNECTED)
    assert "could not open port" in str(seen[0].payload)


# ------------------------------------------------------------------ #
#  Factory
# ------------------------------------------------------------------ #
@pytest.mark.parametrize("row, expected", [
    ({"type": "serial", "serialPort": "/dev/ttyUSB0", "baudRate": 115200, "deviceType": "Actisense"},
     SerialTransport),
    ({"type": "network", "networkHost": "h", "networkPort": 1, "networkProtocol": "tcp"}, TCPTransport),
    ({"type": "network", "networkHost": "h", "networkPort": 1, "networkProtocol": "udp"}, UDPTransport),
    ({"type": "socketcan", "socketcanInterface": "can0"}, SocketCANTransport),
    ({"type": "signalk", "signalkUrl": "http://boat:3000"}, SignalKTransport),
    ({"type": "file", "filePath": "x.log"}, FileReplayTransport),
])
def test_factory_picks_adapter(row, expected):
    transport = TransportFactory.create(ConnectionProfile.from_row(row), asyncio.Queue())
    assert type(transport) is expected
    assert not transport.is_active


def test_factory_rejects_network_without_protocol():
    profile = ConnectionProfile.from_row({"type": "network", "networkHost": "h", "networkPort": 1})
    with pytest.raises(ConfigurationError):
        TransportFactory.resolve(profile)
