import asyncio

import pytest

from n2k_connect.core.exceptions import TransmitError
from n2k_connect.session.auth_session import AuthenticationSession, AuthState


class _Wire:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send(self, message):
        if self.fail:
            raise TransmitError("socket closed")
        self.sent.append(message)


def _accept(request_id, token="tok-1"):
    return {"requestId": request_id, "state": "COMPLETED", "statusCode": 200, "login": {"token": token}}


async def _login_sent(wire, count=1):
    while len(wire.sent) < count:
        await asyncio.sleep(0)
    return wire.sent[count - 1]["requestId"]


@pytest.mark.asyncio
async def test_login_succeeds_on_correlated_response():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=2)
    pending = asyncio.create_task(session.authenticate("admin", "secret"))
    request_id = await _login_sent(wire)

    assert request_id.startswith("auth-")
    assert wire.sent[0]["login"] == {"username": "admin", "password": "secret"}
    assert session.state is AuthState.REQUESTED

    assert session.handle_login_response(_accept("auth-other")) is None
    assert session.state is AuthState.REQUESTED

    assert session.handle_login_response(_accept(request_id)) is True
    assert await pending is True
    assert session.is_authenticated
    assert session.token == "tok-1"
    assert session.status()["hasToken"] is True


@pytest.mark.asyncio
async def test_pending_state_keeps_waiting():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=2)
    pending = asyncio.create_task(session.authenticate("admin", "secret"))
    request_id = await _login_sent(wire)

    assert session.handle_login_response({"requestId": request_id, "state": "PENDING"}) is None
    session.handle_login_response(_accept(request_id))
    assert await pending is True


@pytest.mark.asyncio
async def test_rejected_login_fails():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=2)
    pending = asyncio.create_task(session.authenticate("admin", "wrong"))
    request_id = await _login_sent(wire)

    session.handle_login_response({"requestId": request_id, "statusCode": 401, "message": "bad"})
    assert await pending is False
    assert session.state is AuthState.FAILED
    assert session.token is None


@pytest.mark.asyncio
async def test_timeout_resolves_false_and_late_response_is_ignored():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=0.05)

    assert await session.authenticate("admin", "secret") is False
    assert session.state is AuthState.FAILED

    late = wire.sent[0]["requestId"]
    assert session.handle_login_response(_accept(late)) is None
    assert session.token is None
    assert not session.is_authenticated


@pytest.mark.asyncio
async def test_stale_response_never_matches_newer_request():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=0.05)
    await session.authenticate("admin", "secret")
    stale = wire.sent[0]["requestId"]

    session.timeout = 2
    pending = asyncio.create_task(session.authenticate("admin", "secret"))
    current = await _login_sent(wire, 2)
    assert current != stale

    assert session.handle_login_response(_accept(stale, "old")) is None
    session.handle_login_response(_accept(current, "new"))
    assert await pending is True
    assert session.token == "new"


@pytest.mark.asyncio
async def test_session_close_resolves_pending_login_immediately():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=30)
    pending = asyncio.create_task(session.authenticate("admin", "secret"))
    await _login_sent(wire)

    session.session_closed()
    assert await asyncio.wait_for(pending, 1) is False
    assert session.state is AuthState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_send_failure_fails_login():
    session = AuthenticationSession(_Wire(fail=True).send, timeout=2)
    assert await session.authenticate("admin", "secret") is False
    assert session.state is AuthState.FAILED


@pytest.mark.asyncio
async def test_logout_clears_token_whatever_the_server_says():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=2)
    pending = asyncio.create_task(session.authenticate("admin", "secret"))
    session.handle_login_response(_accept(await _login_sent(wire)))
    await pending

    await session.logout()
    assert session.token is None
    assert session.state is AuthState.UNAUTHENTICATED
    logout = wire.sent[-1]
    assert logout["requestId"].startswith("logout-")
    assert logout["logout"] == {"token": "tok-1"}

    session.handle_logout_response({"requestId": logout["requestId"], "statusCode": 500})
    assert session.token is None


@pytest.mark.asyncio
async def test_logout_clears_token_when_send_fails():
    wire = _Wire()
    session = AuthenticationSession(wire.send, timeout=2)
    pending = asyncio.create_task(session.authenticate("admin", "secret"))
    session.handle_login_response(_accept(await _login_sent(wire)))
    await pending

    wire.fail = True
    await session.logout()
    assert session.token is None
