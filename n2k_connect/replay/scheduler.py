"""
Timed re-emission of captured protocol lines.

The file reader appends to a bounded FIFO channel; ``ReplayScheduler.run`` is its
single consumer. End of input is an explicit marker put on the same channel, so it
can only be seen after every line queued before it has been emitted.
"""

import asyncio
import logging
import re
from typing import Callable, Optional

from config.app_config import settings

logger = logging.getLogger(__name__)

#: put on the replay channel by the reader once the file is exhausted
END_OF_INPUT = object()

# ``<source>;<tag>;<payload>`` as written by multiplexing loggers,
# e.g. ``1502979132106;A;2017-08-17T14:12:12.106Z,2,127250,...``
_MULTIPLEXED = re.compile(r"^([^;,\s]+);([A-Za-z]);(.*)$")
RAW_SOURCE_TAG = "A"


def unwrap_replay_line(raw: str) -> Optional[str]:
    """Return the line to emit, or None when the line must be skipped."""
    line = raw.strip()
    if not line or line.startswith("#"):
        return None
    match = _MULTIPLEXED.match(line)
    if match is None:
        return line
    tag, payload = match.group(2), match.group(3).strip()
    if tag != RAW_SOURCE_TAG or not payload:
        return None
    return payload


class ReplayScheduler:
    """
    Drains the replay channel at ``base_interval / speed`` seconds per line.

    A speed of 0 means unlimited: each line only yields to the event loop before the
    next one. An empty channel just suspends the scheduler; only the end-of-input
    marker ends ``run``.
    """

    def __init__(self, queue: asyncio.Queue, emit: Callable[[str], None],
                 speed: Optional[float] = 1.0, base_interval: Optional[float] = None):
        self._queue = queue
        self._emit = emit
        self.speed = 1.0 if speed is None else float(speed)
        self.base_interval = settings.REPLAY_BASE_INTERVAL if base_interval is None else base_interval
        self.emitted = 0

    @property
    def delay(self) -> float:
        if self.speed <= 0:
            return 0.0
        return self.base_interval / self.speed

    async def run(self) -> int:
        """Emit until end of input; returns the number of lines emitted this pass."""
        emitted = 0
        delay = self.delay
        while True:
            item = await self._queue.get()
            if item is END_OF_INPUT:
                logger.debug(f"Replay pass finished after {emitted} lines")
                return emitted
            self._emit(item)
            emitted += 1
            self.emitted += 1
            await asyncio.sleep(delay)
