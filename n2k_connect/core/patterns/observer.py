"""
Observer Pattern Implementation for Connection Events

Every lifecycle and data event produced by the active transport is published on an
AsyncEventBus and delivered, in publish order, to the registered observers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Iterable, List, Optional, Set


class EventKind(Enum):
    """Kinds of events a transport can raise."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RAW_MESSAGE = "raw-message"
    ERROR = "error"
    SYNTHETIC_MESSAGE = "synthetic-message"


@dataclass(frozen=True)
class ConnectionEvent:
    """Event data for one transport occurrence."""
    kind: EventKind
    payload: Any = None
    profile_id: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="milliseconds"))


class ConnectionObserver(ABC):
    """Abstract base class for connection event observers."""

    @abstractmethod
    async def notify(self, event: ConnectionEvent) -> None:
        """Handle an event."""
        pass

    @abstractmethod
    def get_observer_id(self) -> str:
        """Get unique identifier for this observer."""
        pass

    def get_interested_events(self) -> Set[EventKind]:
        """Event kinds this observer wants; all by default."""
        return set(EventKind)


class EventSubscription(ConnectionObserver):
    """Queue-backed observer, consumed with ``await get()`` or ``async for``."""

    def __init__(self, bus: "AsyncEventBus", kinds: Optional[Iterable[EventKind]] = None):
        self._bus = bus
        self._kinds = set(kinds) if kinds else set(EventKind)
        self._queue: asyncio.Queue = asyncio.Queue()

    def get_observer_id(self) -> str:
        return f"subscription-{id(self):x}"

    def get_interested_events(self) -> Set[EventKind]:
        return self._kinds

    async def notify(self, event: ConnectionEvent) -> None:
        self._queue.put_nowait(event)

    async def get(self) -> ConnectionEvent:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ConnectionEvent:
        return await self._queue.get()


class AsyncEventBus:
    """Single-queue event bus; one task delivers events to observers in order."""

    def __init__(self):
        self._observers: List[ConnectionObserver] = []
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._processing_task: Optional[asyncio.Task] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def running(self) -> bool:
        return self._processing_task is not None and not self._processing_task.done()

    async def start(self) -> None:
        """Start the event processing loop."""
        if self.running:
            return
        self._processing_task = asyncio.create_task(self._process_events(), name="event-bus")
        self._logger.debug("Event bus started")

    async def stop(self) -> None:
        """Deliver what is queued, then stop the processing loop."""
        if not self.running:
            return
        await self._event_queue.join()
        self._processing_task.cancel()
        try:
            await self._processing_task
        except asyncio.CancelledError:
            pass
        self._processing_task = None
        self._logger.debug("Event bus stopped")

    def publish(self, event: ConnectionEvent) -> None:
        """Queue an event for delivery. Never blocks."""
        self._event_queue.put_nowait(event)

    async def join(self) -> None:
        """Wait until every published event has been delivered."""
        await self._event_queue.join()

    def subscribe(self, observer: ConnectionObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)
            self._logger.debug(f"Subscribed observer: {observer.get_observer_id()}")

    def unsubscribe(self, observer: ConnectionObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
            self._logger.debug(f"Unsubscribed observer: {observer.get_observer_id()}")

    def listen(self, kinds: Optional[Iterable[EventKind]] = None) -> EventSubscription:
        """Register and return a queue-backed subscription."""
        subscription = EventSubscription(self, kinds)
        self.subscribe(subscription)
        return subscription

    async def stream(self, kinds: Optional[Iterable[EventKind]] = None) -> AsyncIterator[ConnectionEvent]:
        """Yield events until the consumer stops iterating."""
        subscription = self.listen(kinds)
        try:
            async for event in subscription:
                yield event
        finally:
            subscription.close()

    async def _process_events(self) -> None:
        while True:
            event = await self._event_queue.get()
            try:
                for observer in list(self._observers):
                    if event.kind in observer.get_interested_events():
                        await self._safe_notify_observer(observer, event)
            finally:
                self._event_queue.task_done()

    async def _safe_notify_observer(self, observer: ConnectionObserver, event: ConnectionEvent) -> None:
        """Notify a single observer, logging any exception it raises."""
        try:
            await observer.notify(event)
        except Exception as e:
            self._logger.error(f"Error notifying observer {observer.get_observer_id()}: {e}", exc_info=True)

    def get_queue_size(self) -> int:
        return self._event_queue.qsize()

    def get_observer_count(self) -> int:
        return len(self._observers)
