import asyncio
import logging

from n2k_connect.core.exceptions import ConfigurationError
from n2k_connect.models.profile import ConnectionProfile, NetworkProtocol, TransportKind
from n2k_connect.transports.base_transport import BaseTransport
from n2k_connect.transports.file_transport import FileReplayTransport
from n2k_connect.transports.network_transport import TCPTransport, UDPTransport
from n2k_connect.transports.serial_transport import SerialTransport
from n2k_connect.transports.signalk_transport import SignalKTransport
from n2k_connect.transports.socketcan_transport import SocketCANTransport

logger = logging.getLogger(__name__)


class TransportFactory:

    _registry = {
        TransportKind.SERIAL    : SerialTransport,
        TransportKind.SOCKETCAN : SocketCANTransport,
        TransportKind.SIGNALK   : SignalKTransport,
        TransportKind.FILE      : FileReplayTransport,
    }

    _network_registry = {
        NetworkProtocol.TCP : TCPTransport,
        NetworkProtocol.UDP : UDPTransport,
    }

    @classmethod
    def resolve(cls, profile: ConnectionProfile) -> type:
        """Adapter class for a profile."""
        if profile.transport is TransportKind.NETWORK:
            handler = cls._network_registry.get(profile.protocol)
        else:
            handler = cls._registry.get(profile.transport)
        if not handler:
            raise ConfigurationError(f"No transport registered for {profile.transport.value}")
        return handler

    @classmethod
    def create(cls, profile: ConnectionProfile, events: asyncio.Queue) -> BaseTransport:
        """
        Create the adapter for a profile.

        Args:
            profile (ConnectionProfile): validated connection profile
            events (asyncio.Queue): channel the adapter pushes its events onto

        Returns:
            BaseTransport: a not-yet-connected adapter
        """
        handler = cls.resolve(profile)
        logger.debug(f"Creating {handler.__name__} for profile {profile.id}")
        return handler(profile, events)

    @classmethod
    def register(cls, kind: TransportKind, handler: type) -> None:
        cls._registry[kind] = handler
