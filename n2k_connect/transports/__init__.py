"""Transport adapters: one class per channel kind, all sharing BaseTransport."""

from .base_transport import BaseTransport, LineBuffer
from .serial_transport import SerialTransport
from .network_transport import TCPTransport, UDPTransport
from .socketcan_transport import SocketCANTransport
from .signalk_transport import SignalKTransport
from .file_transport import FileReplayTransport
from .transport_factory import TransportFactory

__all__ = [
    'BaseTransport',
    'LineBuffer',
    'SerialTransport',
    'TCPTransport',
    'UDPTransport',
    'SocketCANTransport',
    'SignalKTransport',
    'FileReplayTransport',
    'TransportFactory',
]
