"""
NMEA 2000 Transport Framework
Base abstract class shared by every transport adapter.

An adapter owns exactly one channel (serial port, socket, CAN bus, WebSocket or
capture file). Lifecycle and data are reported as ConnectionEvents pushed onto the
queue handed in by the ConnectionManager; nothing is raised out of the I/O tasks.
"""

import asyncio
import codecs
import logging
from abc import ABC, abstractmethod
from typing import Any, Coroutine, List, Optional, Set

from n2k_connect.core.exceptions import (
    N2KConnectError,
    RoutingError,
    TransmitError,
    TransportError,
)
from n2k_connect.core.patterns.observer import ConnectionEvent, EventKind
from n2k_connect.models.messages import OutboundMessage
from n2k_connect.models.profile import ConnectionProfile


class LineBuffer:
    """Reassembles protocol lines from arbitrarily split reads."""

    def __init__(self, delimiter: str = "\n", encoding: str = "utf-8"):
        self.delimiter = delimiter
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        """Return the complete, non-blank lines now available."""
        self._pending += self._decoder.decode(data)
        *complete, self._pending = self._pending.split(self.delimiter)
        return [line.strip() for line in complete if line.strip()]

    def flush(self) -> List[str]:
        """Return whatever trails the last delimiter and reset."""
        rest = (self._pending + self._decoder.decode(b"", final=True)).strip()
        self._pending = ""
        return [rest] if rest else []

    def clear(self) -> None:
        self._pending = ""
        self._decoder.reset()


class BaseTransport(ABC):
    """
    Abstract base class for transport adapters.

    Implements the Template Method pattern: subclasses provide ``_open``,
    ``_release`` and ``_write``; the base class owns idempotent connect, the single
    ``disconnected`` emission and background task bookkeeping.
    """

    def __init__(self, profile: ConnectionProfile, events: asyncio.Queue):
        self.profile = profile
        self._events = events
        self.logger = logging.getLogger(self.__class__.__name__)
        self._connected = False
        self._active = False
        self._connect_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_active(self) -> bool:
        """Connecting or connected."""
        return self._active

    # ------------------------------------------------------------------ #
    #  Lifecycle (template methods)
    # ------------------------------------------------------------------ #
    async def connect(self) -> bool:
        """
        Open the channel. Returns True once ``connected`` has been emitted.

        A second call while a connect is in flight waits on the same attempt
        instead of opening a second channel.
        """
        if self._connected:
            return True
        return await self.wait_connected(self.start_connect())

    def start_connect(self) -> Optional[asyncio.Task]:
        """Begin connecting without waiting; returns the in-flight attempt."""
        if self._connect_task is None and not self._connected:
            self._active = True
            self._connect_task = asyncio.create_task(
                self._run_connect(), name=f"{self.profile.id}:connect")
        return self._connect_task

    async def wait_connected(self, task: Optional[asyncio.Task]) -> bool:
        """Wait for a connect attempt; False if it failed or was cancelled by ``disconnect``."""
        if task is None:
            return self._connected
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return False
            raise

    async def disconnect(self) -> None:
        """Release every owned resource and emit ``disconnected``. Safe in any state."""
        if not self._active:
            return
        self._active = False
        was_connected = self._connected
        self._connected = False

        if was_connected:
            try:
                await self._before_release()
            except Exception as e:
                self.logger.warning(f"Error while closing session on {self.profile.describe()}: {e}")

        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current and not t.done()]
        if self._connect_task is not None and self._connect_task is not current \
                and not self._connect_task.done():
            pending.append(self._connect_task)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        try:
            await self._release()
        except Exception as e:
            self.logger.warning(f"Error releasing {self.profile.describe()}: {e}")

        self.logger.info(f"Disconnected from {self.profile.describe()}")
        self._emit(EventKind.DISCONNECTED)

    async def _run_connect(self) -> bool:
        self.logger.info(f"Connecting to {self.profile.describe()}")
        try:
            await self._open()
        except asyncio.CancelledError:
            self.logger.debug(f"Connect to {self.profile.describe()} cancelled")
            return False
        except Exception as e:
            error = self._translate_error(e)
            self.logger.error(f"Connection to {self.profile.describe()} failed: {error}")
            self._emit(EventKind.ERROR, error)
            self._connect_task = None
            await self.disconnect()
            return False
        finally:
            if self._connect_task is asyncio.current_task():
                self._connect_task = None

        self._connected = True
        self.logger.info(f"Connected to {self.profile.describe()}")
        self._emit(EventKind.CONNECTED)
        self._on_connected()
        return True

    # ------------------------------------------------------------------ #
    #  Transmit
    # ------------------------------------------------------------------ #
    async def send(self, data: bytes) -> None:
        """Write already-formatted bytes; TransmitError when no channel is open."""
        if not self._connected:
            raise TransmitError(f"No open channel on {self.profile.describe()}")
        try:
            await self._write(bytes(data))
        except OSError as e:
            raise TransmitError(f"Write to {self.profile.describe()} failed: {e}") from e

    async def send_message(self, message: OutboundMessage) -> None:
        """Hand a structured message to an adapter that does its own encoding."""
        raise RoutingError(f"{self.__class__.__name__} does not accept structured messages")

    # ------------------------------------------------------------------ #
    #  Subclass hooks
    # ------------------------------------------------------------------ #
    @abstractmethod
    async def _open(self) -> None:
        """Acquire the channel and start reader tasks; raise on failure."""
        pass

    @abstractmethod
    async def _release(self) -> None:
        """Close whatever ``_open`` acquired, including half-opened handles."""
        pass

    async def _write(self, data: bytes) -> None:
        raise TransmitError(f"{self.__class__.__name__} cannot transmit")

    async def _before_release(self) -> None:
        """Last chance to talk to the peer before the channel closes."""
        pass

    def _on_connected(self) -> None:
        pass

    # ------------------------------------------------------------------ #
    #  Helpers
    # ------------------------------------------------------------------ #
    def _emit(self, kind: EventKind, payload: Any = None) -> None:
        self._events.put_nowait(ConnectionEvent(kind, payload, profile_id=self.profile.id))

    def _emit_line(self, line: str) -> None:
        self._emit(EventKind.RAW_MESSAGE, line)

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        """Start a background task that ``disconnect`` will cancel."""
        task = asyncio.create_task(coro, name=f"{self.profile.id}:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fail(self, error: Exception) -> None:
        """Report a channel failure and tear the channel down."""
        translated = self._translate_error(error)
        self.logger.error(f"{self.profile.describe()}: {translated}")
        self._emit(EventKind.ERROR, translated)
        await self.disconnect()

    def _translate_error(self, error: Exception) -> N2KConnectError:
        if isinstance(error, N2KConnectError):
            return error
        translated = TransportError(f"{self.profile.describe()}: {error}")
        translated.__cause__ = error
        return translated
