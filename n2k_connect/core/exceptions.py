"""
Centralised exception definitions for the NMEA 2000 connection manager.
All custom exceptions should inherit from N2KConnectError.
"""

class N2KConnectError(Exception):
    """Base class for every custom exception thrown by this project."""

class ConfigurationError(N2KConnectError):
    """Raised when a connection profile or setting is missing or invalid."""

class TransportError(N2KConnectError):
    """Connection-level failure inside a transport adapter (serial, TCP, CAN, …)."""

    #: True when the operator must act (install a package, fix a path) before retrying
    actionable = False

class DependencyMissingError(TransportError):
    """An optional library or OS facility needed by the transport is unavailable."""

    actionable = True

class AuthenticationError(TransportError):
    """The SignalK server rejected the login request."""

class TransmitError(N2KConnectError):
    """Send attempted while no channel is open."""

class RoutingError(N2KConnectError):
    """No wire encoding exists for the active device type."""

class InvalidMessageError(N2KConnectError):
    """An outbound message is structurally invalid."""

class RecordingError(N2KConnectError):
    """A recording could not be started, stopped, or removed."""
