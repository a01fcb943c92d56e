"""Domain objects: connection profiles and outbound messages."""

from .profile import (
    ConnectionProfile,
    TransportKind,
    NetworkProtocol,
    DeviceType,
)
from .messages import OutboundMessage, SendResult

__all__ = [
    'ConnectionProfile',
    'TransportKind',
    'NetworkProtocol',
    'DeviceType',
    'OutboundMessage',
    'SendResult',
]
