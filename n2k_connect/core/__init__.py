# n2k_connect/core/__init__.py
"""Core infrastructure: exceptions, connection state, event bus."""

# Import order: most fundamental to most specific

from .exceptions import (
    N2KConnectError,
    ConfigurationError,
    TransportError,
    DependencyMissingError,
    AuthenticationError,
    TransmitError,
    RoutingError,
    InvalidMessageError,
    RecordingError,
)

from .patterns.state_machine import ConnectionState, ConnectionStateMachine
from .patterns.observer import (
    EventKind,
    ConnectionEvent,
    ConnectionObserver,
    EventSubscription,
    AsyncEventBus,
)


__all__ = [
    "N2KConnectError",
    "ConfigurationError",
    "TransportError",
    "DependencyMissingError",
    "AuthenticationError",
    "TransmitError",
    "RoutingError",
    "InvalidMessageError",
    "RecordingError",
    "ConnectionState",
    "ConnectionStateMachine",
    "EventKind",
    "ConnectionEvent",
    "ConnectionObserver",
    "EventSubscription",
    "AsyncEventBus",
]
