"""
Outbound format dispatch.

The route for a profile is resolved once, when the profile is activated; ``route()``
then only follows it. Device types without a known encoding fail closed.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from n2k_connect.core.exceptions import RoutingError
from n2k_connect.models.messages import OutboundMessage, SendResult
from n2k_connect.models.profile import (
    SERIAL_STREAM_DEVICES,
    ConnectionProfile,
    DeviceType,
    TransportKind,
)
from n2k_connect.outbound.wire_formats import to_actisense_ascii, to_ikonvert, to_ydgw_raw

LINE_TERMINATOR = "\r\n"


class PgnEncoder(Protocol):
    """Field encoder boundary: turns ``message.fields`` into the PGN payload bytes."""

    def encode(self, message: OutboundMessage) -> bytes:
        ...


class RouteKind(Enum):
    SIGNALK = "signalk"
    STRUCTURED = "structured"
    ENCODED = "encoded"
    BROADCAST_ONLY = "broadcast-only"
    UNROUTABLE = "unroutable"


@dataclass(frozen=True)
class Route:
    kind: RouteKind
    formatter: Optional[Callable[[OutboundMessage, bytes], List[str]]] = None
    reason: Optional[str] = None


# Text encodings for gateways that take pre-formatted lines
TEXT_ENCODERS = {
    DeviceType.IKONVERT          : to_ikonvert,
    DeviceType.NAVLINK2          : to_ikonvert,
    DeviceType.ACTISENSE_ASCII   : to_actisense_ascii,
    DeviceType.YACHT_DEVICES     : to_ydgw_raw,
    DeviceType.YACHT_DEVICES_RAW : to_ydgw_raw,
}


def resolve_route(profile: ConnectionProfile) -> Route:
    transport, device = profile.transport, profile.device

    if transport is TransportKind.SIGNALK:
        return Route(RouteKind.SIGNALK)
    if transport is TransportKind.FILE:
        return Route(RouteKind.BROADCAST_ONLY, reason="file replay has no outbound channel")
    if transport is TransportKind.SOCKETCAN:
        return Route(RouteKind.STRUCTURED)
    if transport is TransportKind.SERIAL and device in SERIAL_STREAM_DEVICES:
        return Route(RouteKind.STRUCTURED)
    if device in TEXT_ENCODERS:
        return Route(RouteKind.ENCODED, formatter=TEXT_ENCODERS[device])
    return Route(
        RouteKind.UNROUTABLE,
        reason=f"No wire encoding for device type {profile.device_type!r} on {transport.value}")


class OutboundFormatRouter:
    """Formats outbound messages for one activated profile and hands them to its adapter."""

    def __init__(self, profile: ConnectionProfile, adapter: Any,
                 encoder: Optional[PgnEncoder] = None):
        self.profile = profile
        self.adapter = adapter
        self.encoder = encoder
        self.route_info = resolve_route(profile)
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def for_profile(cls, profile: ConnectionProfile, adapter: Any,
                    encoder: Optional[PgnEncoder] = None) -> "OutboundFormatRouter":
        router = cls(profile, adapter, encoder)
        router.logger.debug(f"Outbound route for {profile.id}: {router.route_info.kind.value}")
        return router

    async def route(self, message: OutboundMessage) -> SendResult:
        message.validate()
        kind = self.route_info.kind

        if kind is RouteKind.UNROUTABLE:
            raise RoutingError(self.route_info.reason)
        if kind is RouteKind.BROADCAST_ONLY:
            return SendResult(message.pgn, transmitted=False, detail="broadcast only")
        if kind is RouteKind.SIGNALK:
            await self.adapter.send_json(self.signalk_envelope(message))
            return SendResult(message.pgn, transmitted=True)

        payload = self.payload_for(message)
        if kind is RouteKind.STRUCTURED:
            await self.adapter.send_message(message.with_data(payload))
        else:
            await self.adapter.send(self.encode_lines(message, payload))
        return SendResult(message.pgn, transmitted=True)

    def encode_lines(self, message: OutboundMessage, payload: bytes) -> bytes:
        lines = self.route_info.formatter(message, payload)
        return "".join(line + LINE_TERMINATOR for line in lines).encode("ascii")

    def signalk_envelope(self, message: OutboundMessage) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"context": "*"}
        envelope.update(message.to_json_dict())
        token = getattr(getattr(self.adapter, "auth", None), "token", None)
        if token:
            envelope["token"] = token
        return envelope

    def payload_for(self, message: OutboundMessage) -> bytes:
        """Payload bytes from the message itself, or from the field encoder."""
        if message.data is not None:
            return message.data
        if self.encoder is None:
            raise RoutingError(
                f"PGN {message.pgn} has no payload bytes and no field encoder is configured")
        payload = bytes(self.encoder.encode(message))
        message.with_data(payload).validate()
        return payload
