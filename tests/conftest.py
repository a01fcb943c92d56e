import asyncio

import pytest

from n2k_connect.core.patterns.observer import EventKind


async def collect_until(queue: asyncio.Queue, kind: EventKind, timeout: float = 2.0):
    """Drain ConnectionEvents from ``queue`` up to and including the first of ``kind``."""
    seen = []

    async def _drain():
        while True:
            event = await queue.get()
            seen.append(event)
            if event.kind is kind:
                return

    await asyncio.wait_for(_drain(), timeout)
    return seen


@pytest.fixture
def drain():
    return collect_until
