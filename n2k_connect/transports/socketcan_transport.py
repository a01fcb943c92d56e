import asyncio
import itertools

from config.app_config import settings
from n2k_connect.core.exceptions import DependencyMissingError, TransmitError, TransportError
from n2k_connect.core.patterns.observer import EventKind
from n2k_connect.models.messages import OutboundMessage
from n2k_connect.outbound.wire_formats import encode_can_id, fast_packet_frames, to_candump
from n2k_connect.transports.base_transport import BaseTransport


def load_python_can():
    """Import python-can on first use; it is an optional extra."""
    try:
        import can
    except ImportError as e:
        raise DependencyMissingError(
            "SocketCAN support requires the python-can package: pip install python-can") from e
    return can


class _FrameListener:
    """python-can listener feeding frames and bus errors into an asyncio queue."""

    def __init__(self, queue: asyncio.Queue):
        self._queue = queue

    def __call__(self, msg) -> None:
        self._queue.put_nowait(msg)

    def on_error(self, exc: Exception) -> None:
        self._queue.put_nowait(exc)

    def stop(self) -> None:
        pass


class SocketCANTransport(BaseTransport):
    """
    Linux CAN interface through python-can.

    Inbound frames are emitted as candump ``-L`` lines. A bus fault is reported as a
    transient error and the bus is reopened after ``CAN_RECONNECT_DELAY``; the
    session itself stays up.
    """

    def __init__(self, profile, events):
        super().__init__(profile, events)
        self._can = None
        self._bus = None
        self._notifier = None
        self._frames: asyncio.Queue = asyncio.Queue()
        self._sequence = itertools.count()

    @property
    def interface(self) -> str:
        return self.profile.can_interface

    async def _open(self) -> None:
        self._can = load_python_can()
        self._open_bus()
        self._spawn(self._read_frames(), "reader")

    def _open_bus(self) -> None:
        can = self._can
        try:
            self._bus = can.Bus(interface=settings.CAN_BUSTYPE, channel=self.interface)
        except can.CanInterfaceNotImplementedError as e:
            raise DependencyMissingError(
                f"CAN interface type '{settings.CAN_BUSTYPE}' is not available on this system: {e}") from e
        self._notifier = can.Notifier(
            self._bus, [_FrameListener(self._frames)], loop=asyncio.get_running_loop())

    def _close_bus(self) -> None:
        notifier, self._notifier = self._notifier, None
        bus, self._bus = self._bus, None
        if notifier is not None:
            notifier.stop()
        if bus is not None:
            bus.shutdown()

    async def _read_frames(self) -> None:
        while True:
            item = await self._frames.get()
            if isinstance(item, Exception):
                if not await self._recover(item):
                    return
                continue
            if item.is_error_frame:
                continue
            self._emit_line(to_candump(item.arbitration_id, item.data, self.interface, item.timestamp))

    async def _recover(self, error: Exception) -> bool:
        """Reopen the bus after a fault; False when the session had to end instead."""
        self.logger.warning(f"CAN bus error on {self.interface}: {error}")
        self._emit(EventKind.ERROR, TransportError(f"CAN bus error on {self.interface}: {error}"))
        self._close_bus()
        while True:
            await asyncio.sleep(settings.CAN_RECONNECT_DELAY)
            try:
                self._open_bus()
            except DependencyMissingError as e:
                # retrying cannot help; end the session with the reason
                await self._fail(e)
                return False
            except (self._can.CanError, OSError) as e:
                self.logger.warning(f"Reopening {self.interface} failed: {e}")
                continue
            self.logger.info(f"Reopened CAN interface {self.interface}")
            return True

    async def send_message(self, message: OutboundMessage) -> None:
        if not self._connected or self._bus is None:
            raise TransmitError(f"No open channel on {self.profile.describe()}")
        can_id = encode_can_id(message.pgn, message.src, message.dst, message.prio)
        frames = fast_packet_frames(message.data or b"", next(self._sequence))
        for frame in frames:
            msg = self._can.Message(arbitration_id=can_id, is_extended_id=True, data=frame)
            try:
                self._bus.send(msg, timeout=0.1)
            except self._can.CanError as e:
                raise TransmitError(f"CAN transmit on {self.interface} failed: {e}") from e

    async def _release(self) -> None:
        self._close_bus()
