"""Outbound wire formats and per-profile format dispatch."""

from .router import OutboundFormatRouter, PgnEncoder, Route, RouteKind, resolve_route

__all__ = [
    'OutboundFormatRouter',
    'PgnEncoder',
    'Route',
    'RouteKind',
    'resolve_route',
]
