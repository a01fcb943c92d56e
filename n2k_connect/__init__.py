"""NMEA 2000 connection manager - Main Package"""

__version__ = '1.0.0'
__description__ = 'Single-transport NMEA 2000 connection and session manager'

# Core patterns - most fundamental
from .core import (
    N2KConnectError,
    ConfigurationError,
    TransportError,
    TransmitError,
    RoutingError,
    ConnectionState,
    EventKind,
    ConnectionEvent,
    ConnectionObserver,
)

# Models - domain objects
from .models import ConnectionProfile, OutboundMessage, SendResult, DeviceType, TransportKind

# Outbound
from .outbound import OutboundFormatRouter, PgnEncoder

# Transports
from .transports import TransportFactory

# Services
from .services import ConnectionManager, RecordingService

__all__ = [
    # Core
    'N2KConnectError',
    'ConfigurationError',
    'TransportError',
    'TransmitError',
    'RoutingError',
    'ConnectionState',
    'EventKind',
    'ConnectionEvent',
    'ConnectionObserver',

    # Models
    'ConnectionProfile',
    'OutboundMessage',
    'SendResult',
    'DeviceType',
    'TransportKind',

    # Outbound
    'OutboundFormatRouter',
    'PgnEncoder',

    # Transports
    'TransportFactory',

    # Services
    'ConnectionManager',
    'RecordingService',
]
