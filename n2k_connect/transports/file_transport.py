import asyncio
from pathlib import Path

from config.app_config import settings
from n2k_connect.core.exceptions import TransportError
from n2k_connect.replay.scheduler import END_OF_INPUT, ReplayScheduler, unwrap_replay_line
from n2k_connect.transports.base_transport import BaseTransport

# file lines read before the reader gives the loop a turn
READ_YIELD_LINES = 64


class FileReplayTransport(BaseTransport):
    """
    Replays a capture file through a ReplayScheduler.

    One reader task per pass feeds the bounded replay channel; the playback task
    drains it. After the last line of a pass the file is read again from the start
    (loop) or the session ends with ``disconnected``.
    """

    def __init__(self, profile, events):
        super().__init__(profile, events)
        self.path = Path(profile.file_path).expanduser() if profile.file_path else None
        self._queue: asyncio.Queue = None
        self.scheduler: ReplayScheduler = None
        self.passes = 0

    async def _open(self) -> None:
        if self.path is None or not self.path.is_file():
            raise TransportError(f"Replay file not found: {self.path}")
        self._queue = asyncio.Queue(maxsize=settings.REPLAY_QUEUE_SIZE)
        self.scheduler = ReplayScheduler(self._queue, self._emit_line, self.profile.playback_speed)
        self._spawn(self._playback(), "playback")

    async def _playback(self) -> None:
        while True:
            reader = self._spawn(self._read_file(), "reader")
            emitted = await self.scheduler.run()
            await reader
            self.passes += 1
            if not self.profile.loop_playback:
                self.logger.info(f"Replay of {self.path} finished ({emitted} lines)")
                await self.disconnect()
                return
            self.logger.debug(f"Restarting replay of {self.path}")
            await asyncio.sleep(settings.REPLAY_LOOP_DELAY)

    async def _read_file(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8", errors="replace") as handle:
                for number, raw in enumerate(handle, 1):
                    line = unwrap_replay_line(raw)
                    if line is not None:
                        await self._queue.put(line)
                    if number % READ_YIELD_LINES == 0:
                        await asyncio.sleep(0)
        except OSError as e:
            await self._fail(e)
            return
        await self._queue.put(END_OF_INPUT)

    async def _release(self) -> None:
        self._queue = None
