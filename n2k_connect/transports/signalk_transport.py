"""SignalK server stream (WebSocket) carrying canboatjs raw output."""

import json
import ssl
from typing import Any, Dict

import websockets

from n2k_connect.core.exceptions import AuthenticationError, TransmitError, TransportError
from n2k_connect.core.patterns.observer import EventKind
from n2k_connect.outbound.wire_formats import synthetic_line
from n2k_connect.session.auth_session import AuthenticationSession
from n2k_connect.transports.base_transport import BaseTransport

STREAM_PATH = "/signalk/v1/stream?subscribe=none&events=canboatjs:rawoutput"
RAW_OUTPUT_EVENT = "canboatjs:rawoutput"


def stream_url(base_url: str) -> str:
    """``http(s)://host:port`` -> ``ws(s)://host:port/signalk/v1/stream?...``."""
    url = base_url.rstrip("/")
    if url.startswith("http"):
        url = "ws" + url[len("http"):]
    return url + STREAM_PATH


def _unverified_context() -> ssl.SSLContext:
    # SignalK servers on boats run with self-signed certificates
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class SignalKTransport(BaseTransport):
    """
    WebSocket session to a SignalK server.

    Incoming messages are routed by shape: ``auth-*`` and ``logout-*`` responses go to
    the AuthenticationSession, ``canboatjs:rawoutput`` events become raw lines, and
    deltas whose source names a PGN become synthetic lines. When credentials are
    configured, login runs in the background after ``connected``; a failed login
    leaves the session open but unauthenticated.
    """

    def __init__(self, profile, events, connector=None):
        super().__init__(profile, events)
        self._connector = connector or websockets.connect
        self._ws = None
        self.auth = AuthenticationSession(self._send_json)

    @property
    def url(self) -> str:
        return stream_url(self.profile.signalk_url)

    async def _open(self) -> None:
        kwargs = {}
        if self.url.startswith("wss://"):
            kwargs["ssl"] = _unverified_context()
        self._ws = await self._connector(self.url, **kwargs)
        self._spawn(self._read_loop(), "reader")

    def _on_connected(self) -> None:
        if self.profile.has_credentials:
            self._spawn(self._authenticate(), "auth")

    async def _authenticate(self) -> None:
        accepted = await self.auth.authenticate(self.profile.username, self.profile.password)
        if not accepted and self._connected:
            self._emit(EventKind.ERROR, AuthenticationError(
                f"SignalK login as {self.profile.username} failed ({self.auth.state.value}); "
                "continuing without a token"))

    # ------------------------------------------------------------------ #
    #  Inbound
    # ------------------------------------------------------------------ #
    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                self._handle_message(raw)
        except websockets.ConnectionClosed as e:
            self.auth.session_closed()
            await self._fail(TransportError(f"SignalK stream closed: {e}"))
            return
        except OSError as e:
            self.auth.session_closed()
            await self._fail(e)
            return
        self.logger.info("SignalK stream closed by server")
        self.auth.session_closed()
        await self.disconnect()

    def _handle_message(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            self.logger.debug(f"Dropping non-JSON SignalK message: {raw!r}")
            return
        if not isinstance(message, dict):
            return

        request_id = message.get("requestId")
        if isinstance(request_id, str):
            if request_id.startswith("auth-"):
                self.auth.handle_login_response(message)
                return
            if request_id.startswith("logout-"):
                self.auth.handle_logout_response(message)
                return

        if message.get("event") == RAW_OUTPUT_EVENT:
            data = message.get("data")
            if isinstance(data, str) and data.strip():
                self._emit_line(data.strip())
            return

        for update in message.get("updates") or []:
            if not isinstance(update, dict):
                continue
            pgn = (update.get("source") or {}).get("pgn")
            try:
                pgn = int(pgn)
            except (TypeError, ValueError):
                continue
            self._emit(EventKind.SYNTHETIC_MESSAGE, synthetic_line(pgn))

    # ------------------------------------------------------------------ #
    #  Outbound
    # ------------------------------------------------------------------ #
    async def send_json(self, payload: Dict[str, Any]) -> None:
        if not self._connected:
            raise TransmitError(f"No open channel on {self.profile.describe()}")
        await self._send_json(payload)

    async def _send_json(self, payload: Dict[str, Any]) -> None:
        if self._ws is None:
            raise TransmitError("SignalK WebSocket not connected")
        try:
            await self._ws.send(json.dumps(payload))
        except websockets.ConnectionClosed as e:
            raise TransmitError(f"SignalK WebSocket closed: {e}") from e

    # ------------------------------------------------------------------ #
    #  Teardown
    # ------------------------------------------------------------------ #
    async def _before_release(self) -> None:
        await self.auth.logout()

    async def _release(self) -> None:
        self.auth.session_closed()
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
