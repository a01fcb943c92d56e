"""
SignalK login/logout handshake.

Requests are correlated by ``requestId`` only; a response whose id does not match
the outstanding request (late, duplicated or from an earlier attempt) is ignored.
The bearer token lives here and nowhere else.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from config.app_config import settings
from n2k_connect.core.exceptions import N2KConnectError


class AuthState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    REQUESTED = "requested"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthenticationSession:

    def __init__(self, send: Callable[[Dict[str, Any]], Awaitable[None]],
                 timeout: Optional[float] = None):
        self._send = send
        self.timeout = settings.AUTH_TIMEOUT if timeout is None else timeout
        self.logger = logging.getLogger(self.__class__.__name__)
        self._state = AuthState.UNAUTHENTICATED
        self._token: Optional[str] = None
        self._pending: Optional[Tuple[str, asyncio.Future]] = None
        self._pending_logout: Optional[str] = None
        self.username: Optional[str] = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.AUTHENTICATED and self._token is not None

    # ------------------------------------------------------------------ #
    #  Login
    # ------------------------------------------------------------------ #
    async def authenticate(self, username: str, password: str) -> bool:
        """Resolve True only once the server has confirmed the login with a token."""
        if self._pending is not None:
            self._settle(self._pending[0], False)

        request_id = f"auth-{uuid.uuid4()}"
        future = asyncio.get_running_loop().create_future()
        self._pending = (request_id, future)
        self._state = AuthState.REQUESTED
        self.username = username

        try:
            await self._send({
                "requestId": request_id,
                "login": {"username": username, "password": password},
            })
        except (N2KConnectError, OSError) as e:
            self.logger.warning(f"Could not send login request: {e}")
            self._settle(request_id, False)
            self._state = AuthState.FAILED
            return False

        try:
            return await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            if self._pending is not None and self._pending[0] == request_id:
                self._pending = None
                self._state = AuthState.FAILED
            self.logger.warning(f"No login response within {self.timeout:g}s")
            return False

    def handle_login_response(self, message: Dict[str, Any]) -> Optional[bool]:
        """Apply a login response. Returns None when it does not answer the outstanding request."""
        request_id = message.get("requestId")
        if self._pending is None or self._pending[0] != request_id:
            self.logger.debug(f"Ignoring uncorrelated login response {request_id}")
            return None
        if message.get("state") == "PENDING":
            return None

        token = (message.get("login") or {}).get("token")
        accepted = message.get("statusCode") == 200 and bool(token)
        if accepted:
            self._token = token
            self._state = AuthState.AUTHENTICATED
            self.logger.info(f"Authenticated with SignalK as {self.username}")
        else:
            self._token = None
            self._state = AuthState.FAILED
            self.logger.warning(
                f"SignalK login rejected (status {message.get('statusCode')}): {message.get('message', '')}")
        self._settle(request_id, accepted)
        return accepted

    def _settle(self, request_id: str, result: bool) -> None:
        if self._pending is None or self._pending[0] != request_id:
            return
        _, future = self._pending
        self._pending = None
        if not future.done():
            future.set_result(result)

    # ------------------------------------------------------------------ #
    #  Logout / close
    # ------------------------------------------------------------------ #
    async def logout(self) -> None:
        """Clear the token, then tell the server. The server's answer changes nothing locally."""
        token, self._token = self._token, None
        self._state = AuthState.UNAUTHENTICATED
        if token is None:
            return
        request_id = f"logout-{uuid.uuid4()}"
        self._pending_logout = request_id
        try:
            await self._send({"requestId": request_id, "logout": {"token": token}})
        except (N2KConnectError, OSError) as e:
            self.logger.debug(f"Logout request not delivered: {e}")

    def handle_logout_response(self, message: Dict[str, Any]) -> None:
        # the token was already dropped by logout()
        if message.get("requestId") != self._pending_logout:
            self.logger.debug(f"Ignoring uncorrelated logout response {message.get('requestId')}")
            return
        self._pending_logout = None
        self.logger.debug(f"Logout response: status {message.get('statusCode')}")

    def session_closed(self) -> None:
        """The socket is gone: fail any outstanding login and drop the token."""
        if self._pending is not None:
            self._settle(self._pending[0], False)
        self._pending_logout = None
        self._token = None
        self._state = AuthState.UNAUTHENTICATED

    def status(self) -> Dict[str, Any]:
        return {
            "isAuthenticated": self.is_authenticated,
            "hasToken": self._token is not None,
            "state": self._state.value,
            "username": self.username,
        }
