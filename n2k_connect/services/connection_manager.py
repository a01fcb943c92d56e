"""Single-owner coordinator for the active transport, its events and outbound sends."""
from __future__ import annotations
import asyncio, logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Union

from n2k_connect.core.exceptions import TransmitError
from n2k_connect.core.patterns import (
    AsyncEventBus, ConnectionEvent, ConnectionObserver, EventKind, EventSubscription,
    ConnectionState, ConnectionStateMachine,
)
from n2k_connect.models.messages import OutboundMessage, SendResult
from n2k_connect.models.profile import ConnectionProfile
from n2k_connect.outbound.router import OutboundFormatRouter, PgnEncoder
from n2k_connect.transports.base_transport import BaseTransport
from n2k_connect.transports.transport_factory import TransportFactory

TransportBuilder = Callable[[ConnectionProfile, asyncio.Queue], BaseTransport]


class ConnectionManager:
    """
    Owns at most one active transport adapter.

    Every adapter gets its own event channel; a pump task per activation applies
    each event to the connection state and republishes it unchanged on the event
    bus. Switching profiles fully tears the previous adapter down, including the
    delivery of its ``disconnected`` event, before the next adapter is created.
    """

    def __init__(self, encoder: Optional[PgnEncoder] = None,
                 transport_factory: Optional[TransportBuilder] = None,
                 event_bus: Optional[AsyncEventBus] = None):
        self.encoder  = encoder
        self.bus      = event_bus or AsyncEventBus()
        self.state    = ConnectionStateMachine()
        self.log      = logging.getLogger(self.__class__.__name__)
        self._factory = transport_factory or TransportFactory.create
        self._lock    = asyncio.Lock()

        self._profile: Optional[ConnectionProfile] = None
        self._adapter: Optional[BaseTransport] = None
        self._router:  Optional[OutboundFormatRouter] = None
        self._pump:    Optional[asyncio.Task] = None

        self._last_error:  Optional[str] = None
        self._last_update: Optional[str] = None

    # --------------------------------------------------------------------- #
    #  Lifecycle
    # --------------------------------------------------------------------- #
    async def start(self) -> None:
        await self.bus.start()

    async def stop(self) -> None:
        await self.deactivate()
        await self.bus.stop()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False

    # --------------------------------------------------------------------- #
    #  Public API
    # --------------------------------------------------------------------- #
    @property
    def active_profile(self) -> Optional[ConnectionProfile]:
        return self._profile

    @property
    def adapter(self) -> Optional[BaseTransport]:
        return self._adapter

    @property
    def is_connected(self) -> bool:
        return self._adapter is not None and self._adapter.is_connected

    async def activate(self, profile: ConnectionProfile) -> bool:
        """
        Make ``profile`` the active connection.

        Raises ConfigurationError before touching the current connection when the
        profile is incomplete. Returns True once the new transport is connected;
        failures are reported as ``error`` events and leave the state Disconnected.
        """
        profile.validate()
        async with self._lock:
            if self._profile == profile and self._adapter is not None and self._adapter.is_active:
                self.log.debug(f"Profile {profile.id} is already active")
                adapter = self._adapter
            else:
                adapter = await self._replace_adapter(profile)
            # joins the attempt in flight when the profile is already connecting
            connecting = adapter.start_connect()

        return await adapter.wait_connected(connecting)

    async def deactivate(self) -> None:
        """Disconnect the active transport, if any, and forget the active profile."""
        async with self._lock:
            await self._teardown()

    async def send(self, message: Union[OutboundMessage, Dict[str, Any]]) -> SendResult:
        """
        Transmit a structured message on the active transport.

        With no active profile the message is broadcast only and nothing is
        transmitted. With an active profile whose transport is not open, raises
        TransmitError.
        """
        if isinstance(message, dict):
            message = OutboundMessage.from_row(message)
        else:
            message.validate()

        router, adapter = self._router, self._adapter
        if router is None or adapter is None:
            return SendResult(message.pgn, transmitted=False, detail="broadcast only")
        if not adapter.is_connected:
            raise TransmitError(f"Profile {self._profile.id} has no open transport")
        return await router.route(message)

    def subscribe(self, observer: ConnectionObserver) -> None:
        self.bus.subscribe(observer)

    def unsubscribe(self, observer: ConnectionObserver) -> None:
        self.bus.unsubscribe(observer)

    def listen(self, kinds: Optional[Iterable[EventKind]] = None) -> EventSubscription:
        return self.bus.listen(kinds)

    def events(self, kinds: Optional[Iterable[EventKind]] = None):
        """Async iterator over manager events."""
        return self.bus.stream(kinds)

    def status(self) -> Dict[str, Any]:
        auth = getattr(self._adapter, "auth", None)
        return {
            "is_connected":   self.is_connected,
            "state":          self.state.state.value,
            "active_profile": self._profile.id if self._profile else None,
            "error":          self._last_error,
            "last_update":    self._last_update,
            "auth":           auth.status() if auth is not None else None,
        }

    # --------------------------------------------------------------------- #
    #  Private helpers
    # --------------------------------------------------------------------- #
    async def _replace_adapter(self, profile: ConnectionProfile) -> BaseTransport:
        if not self.bus.running:
            await self.bus.start()
        await self._teardown()

        events: asyncio.Queue = asyncio.Queue()
        adapter = self._factory(profile, events)
        self._profile     = profile
        self._adapter     = adapter
        self._router      = OutboundFormatRouter.for_profile(profile, adapter, self.encoder)
        self._last_error  = None
        self.state.transition_to(ConnectionState.CONNECTING)
        self._pump = asyncio.create_task(self._pump_events(adapter, events),
                                         name=f"{profile.id}:events")
        self.log.info(f"Activating profile {profile.id} ({profile.describe()})")
        return adapter

    async def _teardown(self) -> None:
        adapter, pump = self._adapter, self._pump
        if adapter is None:
            return
        self.log.info(f"Releasing profile {self._profile.id}")
        if adapter.is_active:
            self.state.transition_to(ConnectionState.DISCONNECTING)
            await adapter.disconnect()
        if pump is not None:
            await pump
        self.state.transition_to(ConnectionState.DISCONNECTED)
        self._profile = self._adapter = self._router = self._pump = None

    async def _pump_events(self, adapter: BaseTransport, events: asyncio.Queue) -> None:
        while True:
            event: ConnectionEvent = await events.get()
            self._apply(adapter, event)
            self.bus.publish(event)
            if event.kind is EventKind.DISCONNECTED:
                return

    def _apply(self, adapter: BaseTransport, event: ConnectionEvent) -> None:
        current = adapter is self._adapter
        if event.kind is EventKind.CONNECTED and current:
            self.state.transition_to(ConnectionState.CONNECTED)
        elif event.kind is EventKind.DISCONNECTED and current:
            self.state.transition_to(ConnectionState.DISCONNECTED)
        elif event.kind is EventKind.ERROR:
            self._last_error = str(event.payload)
            self.log.warning(f"[{event.profile_id}] {event.payload}")
        elif event.kind in (EventKind.RAW_MESSAGE, EventKind.SYNTHETIC_MESSAGE):
            self._last_update = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
