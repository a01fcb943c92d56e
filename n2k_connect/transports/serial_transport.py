import asyncio
from typing import Optional

import serial_asyncio

from n2k_connect.core.exceptions import RoutingError, TransmitError
from n2k_connect.models.messages import OutboundMessage
from n2k_connect.models.profile import SERIAL_STREAM_DEVICES, DeviceType
from n2k_connect.transports.base_transport import LineBuffer
from n2k_connect.transports.serial_streams import ActisenseStream, IKonvertStream
from n2k_connect.transports.stream_transport import StreamTransport

# One helper per device in SERIAL_STREAM_DEVICES
STREAM_HELPERS = {
    DeviceType.ACTISENSE: ActisenseStream,
    DeviceType.IKONVERT: IKonvertStream,
}

# Line delimiter for the generic line reader
SERIAL_DELIMITERS = {
    DeviceType.YACHT_DEVICES: "\r\n",
    DeviceType.YACHT_DEVICES_RAW: "\r\n",
}
DEFAULT_DELIMITER = "\n"


class SerialTransport(StreamTransport):
    """
    Serial gateway (USB or RS-422) opened with pyserial-asyncio.

    Actisense NGT-1 and iKonvert go through their stream helper, which also encodes
    outbound messages; those are queued on an internal channel and written by a
    single writer task. Every other device type is read as delimited text.
    No automatic retry: a failed open or a lost port ends the session.
    """

    def __init__(self, profile, events):
        super().__init__(profile, events)
        self._outbound: Optional[asyncio.Queue] = None

    @property
    def uses_stream_helper(self) -> bool:
        return self.profile.device in SERIAL_STREAM_DEVICES

    def _make_framer(self):
        helper = STREAM_HELPERS.get(self.profile.device)
        if helper is not None:
            return helper()
        return LineBuffer(SERIAL_DELIMITERS.get(self.profile.device, DEFAULT_DELIMITER))

    def _greeting(self) -> bytes:
        if self.uses_stream_helper:
            return self._framer.opening_bytes()
        return b""

    async def _open_stream(self):
        return await serial_asyncio.open_serial_connection(
            url=self.profile.serial_port, baudrate=self.profile.baud_rate)

    async def _open(self) -> None:
        await super()._open()
        if self.uses_stream_helper:
            self._outbound = asyncio.Queue()
            self._spawn(self._drain_outbound(), "writer")

    async def send_message(self, message: OutboundMessage) -> None:
        if not self.uses_stream_helper:
            raise RoutingError(f"{self.profile.device_type} serial gateways take pre-encoded bytes")
        if not self._connected or self._outbound is None:
            raise TransmitError(f"No open channel on {self.profile.describe()}")
        self._outbound.put_nowait(message)

    async def _drain_outbound(self) -> None:
        while True:
            message = await self._outbound.get()
            try:
                await self._write(self._framer.encode(message, message.data or b""))
            except OSError as e:
                await self._fail(e)
                return

    async def _release(self) -> None:
        self._outbound = None
        await super()._release()
