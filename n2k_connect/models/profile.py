from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from n2k_connect.core.exceptions import ConfigurationError


class TransportKind(Enum):
    SERIAL = "serial"
    NETWORK = "network"
    SOCKETCAN = "socketcan"
    SIGNALK = "signalk"
    FILE = "file"


class NetworkProtocol(Enum):
    TCP = "tcp"
    UDP = "udp"


class DeviceType(Enum):
    """Gateway hardware families; the value is the tag used in profiles."""
    ACTISENSE = "Actisense"
    ACTISENSE_ASCII = "Actisense ASCII"
    IKONVERT = "iKonvert"
    YACHT_DEVICES = "Yacht Devices"
    YACHT_DEVICES_RAW = "Yacht Devices RAW"
    NAVLINK2 = "NavLink2"
    SOCKETCAN = "SocketCAN"

    @classmethod
    def lookup(cls, tag: Optional[str]) -> Optional["DeviceType"]:
        """Resolve a profile tag, or None when the family is unknown."""
        if tag is None:
            return None
        try:
            return cls(tag)
        except ValueError:
            return None


MAX_PLAYBACK_SPEED = 10.0

# Serial gateways whose stream helper frames traffic and encodes outbound messages itself
SERIAL_STREAM_DEVICES = frozenset({DeviceType.ACTISENSE, DeviceType.IKONVERT})


###############################################################################
# CONNECTION PROFILE ----------------------------------------------------------
###############################################################################

@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Immutable description of one transport and its parameters."""
    id: str
    name: str
    transport: TransportKind
    device_type: Optional[str] = None

    # serial
    serial_port: Optional[str] = None
    baud_rate: Optional[int] = None

    # network
    host: Optional[str] = None
    port: Optional[int] = None
    protocol: Optional[NetworkProtocol] = None

    # socketcan
    can_interface: Optional[str] = None

    # signalk
    signalk_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    # file replay
    file_path: Optional[str] = None
    loop_playback: bool = False
    playback_speed: float = 1.0

    # ---------- factory --------------------------------------------------- #
    @classmethod
    def from_row(cls, row: Dict[str, Any], profile_id: Optional[str] = None) -> "ConnectionProfile":
        """Build a profile from the camelCase JSON shape used by saved profiles."""
        if not isinstance(row, dict):
            raise ConfigurationError("Connection profile must be a JSON object")
        try:
            transport = TransportKind(row.get("type"))
        except ValueError:
            raise ConfigurationError(
                "Connection type must be serial, network, signalk, socketcan, or file") from None

        protocol = row.get("networkProtocol")
        if protocol is not None:
            try:
                protocol = NetworkProtocol(str(protocol).lower())
            except ValueError:
                raise ConfigurationError("Network protocol must be tcp or udp") from None

        speed = row.get("playbackSpeed")
        return cls(
            id             = profile_id or row.get("id") or row.get("name") or transport.value,
            name           = row.get("name") or profile_id or transport.value,
            transport      = transport,
            device_type    = row.get("deviceType"),
            serial_port    = row.get("serialPort"),
            baud_rate      = _parse_int(row.get("baudRate"), "baudRate"),
            host           = row.get("networkHost"),
            port           = _parse_int(row.get("networkPort"), "networkPort"),
            protocol       = protocol,
            can_interface  = row.get("socketcanInterface"),
            signalk_url    = row.get("signalkUrl"),
            username       = row.get("signalkUsername"),
            password       = row.get("signalkPassword"),
            file_path      = row.get("filePath"),
            loop_playback  = bool(row.get("loopPlayback", False)),
            playback_speed = 1.0 if speed is None else _parse_float(speed, "playbackSpeed"),
        )

    # ---------- validation ------------------------------------------------ #
    def validate(self) -> None:
        """Raise ConfigurationError when a required field is missing or out of range."""
        if self.transport is TransportKind.SERIAL:
            if not self.serial_port:
                raise ConfigurationError("Serial port is required for serial connection")
            if not self.baud_rate:
                raise ConfigurationError("Baud rate is required for serial connection")
            if not self.device_type:
                raise ConfigurationError("Device type is required for serial connection")

        elif self.transport is TransportKind.NETWORK:
            if not self.host:
                raise ConfigurationError("Network host is required for network connection")
            if not self.port:
                raise ConfigurationError("Network port is required for network connection")
            if not 1 <= self.port <= 65535:
                raise ConfigurationError(f"Network port must be between 1 and 65535, got {self.port}")
            if not isinstance(self.protocol, NetworkProtocol):
                raise ConfigurationError("Network protocol must be tcp or udp")

        elif self.transport is TransportKind.SIGNALK:
            if not self.signalk_url:
                raise ConfigurationError("SignalK URL is required for SignalK connection")
            if not self.signalk_url.startswith(("http://", "https://", "ws://", "wss://")):
                raise ConfigurationError(f"SignalK URL must be http(s) or ws(s): {self.signalk_url}")

        elif self.transport is TransportKind.SOCKETCAN:
            if not self.can_interface:
                raise ConfigurationError("SocketCAN interface is required for SocketCAN connection")

        elif self.transport is TransportKind.FILE:
            if not self.file_path:
                raise ConfigurationError("File path is required for file connection")
            if not 0 <= self.playback_speed <= MAX_PLAYBACK_SPEED:
                raise ConfigurationError(f"Playback speed must be between 0 and {MAX_PLAYBACK_SPEED:g}")

    # ---------- helpers --------------------------------------------------- #
    @property
    def device(self) -> Optional[DeviceType]:
        return DeviceType.lookup(self.device_type)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def describe(self) -> str:
        """Short human-readable endpoint, for log lines."""
        if self.transport is TransportKind.SERIAL:
            return f"{self.serial_port}@{self.baud_rate} ({self.device_type})"
        if self.transport is TransportKind.NETWORK:
            proto = self.protocol.value if self.protocol else "?"
            return f"{proto}://{self.host}:{self.port}"
        if self.transport is TransportKind.SOCKETCAN:
            return f"can:{self.can_interface}"
        if self.transport is TransportKind.SIGNALK:
            return self.signalk_url or ""
        return f"file:{self.file_path}"


###############################################################################
# Helper functions ------------------------------------------------------------
###############################################################################

def _parse_int(value: Any, field_name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{field_name} must be an integer, got {value!r}") from None


def _parse_float(value: Any, field_name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{field_name} must be a number, got {value!r}") from None
