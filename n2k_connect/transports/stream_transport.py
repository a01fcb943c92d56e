"""Common reader/writer plumbing for byte-stream channels (serial ports, TCP)."""

import asyncio
from abc import abstractmethod
from typing import Tuple

from config.app_config import settings
from n2k_connect.core.exceptions import TransportError
from n2k_connect.transports.base_transport import BaseTransport, LineBuffer


class StreamTransport(BaseTransport):
    """Reads chunks from an asyncio stream and emits one event per framed line."""

    def __init__(self, profile, events):
        super().__init__(profile, events)
        self._reader: asyncio.StreamReader = None
        self._writer: asyncio.StreamWriter = None
        self._framer = self._make_framer()

    @abstractmethod
    async def _open_stream(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        pass

    def _make_framer(self):
        """Object with ``feed(bytes) -> list[str]``."""
        return LineBuffer("\n")

    def _greeting(self) -> bytes:
        return b""

    async def _open(self) -> None:
        # partial lines and decoder state never survive into a new session
        self._framer = self._make_framer()
        self._reader, self._writer = await self._open_stream()
        greeting = self._greeting()
        if greeting:
            self._writer.write(greeting)
            await self._writer.drain()
        self._spawn(self._read_loop(), "reader")

    async def _read_loop(self) -> None:
        try:
            while True:
                data = await self._reader.read(settings.READ_CHUNK_SIZE)
                if not data:
                    break
                for line in self._framer.feed(data):
                    self._emit_line(line)
        except OSError as e:
            await self._fail(e)
            return
        await self._fail(TransportError(f"{self.profile.describe()} closed by peer"))

    async def _write(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def _release(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            self.logger.debug(f"Ignoring error while closing {self.profile.describe()}: {e}")
