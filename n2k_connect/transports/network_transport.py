import asyncio

from config.app_config import settings
from n2k_connect.core.patterns.observer import EventKind
from n2k_connect.models.profile import DeviceType
from n2k_connect.transports.base_transport import BaseTransport, LineBuffer
from n2k_connect.transports.serial_streams import IKonvertStream
from n2k_connect.transports.stream_transport import StreamTransport


class TCPTransport(StreamTransport):
    """TCP client to a network gateway; the session ends when the peer closes."""

    def _make_framer(self):
        if self.profile.device is DeviceType.NAVLINK2:
            return IKonvertStream()
        return LineBuffer("\n")

    async def _open_stream(self):
        return await asyncio.open_connection(self.profile.host, self.profile.port)


class _DatagramProtocol(asyncio.DatagramProtocol):

    def __init__(self, owner: "UDPTransport"):
        self._owner = owner

    def datagram_received(self, data: bytes, addr) -> None:
        self._owner._on_datagram(data)

    def error_received(self, exc: Exception) -> None:
        self._owner._on_datagram_error(exc)


class UDPTransport(BaseTransport):
    """
    Binds the profile's port locally and emits the lines of every datagram.

    Each datagram is split on its own; a line is never carried over into the next
    datagram. Outbound bytes go to the profile's host:port.
    """

    def __init__(self, profile, events):
        super().__init__(profile, events)
        self._transport: asyncio.DatagramTransport = None

    async def _open(self) -> None:
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _DatagramProtocol(self),
            local_addr=(settings.UDP_BIND_HOST, self.profile.port),
        )

    def _on_datagram(self, data: bytes) -> None:
        if not self._connected:
            return
        buffer = LineBuffer("\n")
        for line in buffer.feed(data) + buffer.flush():
            self._emit_line(line)

    def _on_datagram_error(self, exc: Exception) -> None:
        self.logger.warning(f"UDP error on {self.profile.describe()}: {exc}")
        self._emit(EventKind.ERROR, self._translate_error(exc))

    async def _write(self, data: bytes) -> None:
        self._transport.sendto(data, (self.profile.host, self.profile.port))

    async def _release(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()
