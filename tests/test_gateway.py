from __future__ import annotations

import threading

import pytest

from attendance_client.config.settings import ATTENDANCE_PATH, TOKEN_REFRESH_PATH
from attendance_client.errors import (
    AuthExpiredError,
    NetworkError,
    NoSessionError,
    RequestFailedError,
)
from attendance_client.services import AuthenticatedGateway, SessionManager, TokenStore
from attendance_client.services.transport import RequestSpec, Response

from conftest import FakeTransport


def _build(storage, handler):
    transport = FakeTransport(handler)
    sessions = SessionManager(TokenStore(storage), transport)
    return AuthenticatedGateway(sessions, transport), sessions, transport


def _backend(refresh_status=200, retry_status=200):
    """Old token is rejected; refresh yields ``new-access``."""

    def handler(spec, token):
        if spec.path == TOKEN_REFRESH_PATH:
            if refresh_status != 200:
                return Response(refresh_status, {"detail": "Token is invalid or expired"})
            return Response(200, {"access": "new-access"})
        if token == "old-access":
            return Response(401, {"detail": "Given token not valid for any token type"})
        return Response(retry_status, [] if retry_status == 200 else {"detail": "nope"})

    return handler


def test_attaches_current_access_token(seeded_storage):
    gateway, _, transport = _build(seeded_storage, lambda spec, token: Response(200, []))

    response = gateway.get(ATTENDANCE_PATH)

    assert response.ok
    assert transport.calls == [(RequestSpec("GET", ATTENDANCE_PATH), "old-access")]


def test_expired_token_is_refreshed_and_request_retried_once(seeded_storage):
    gateway, sessions, transport = _build(seeded_storage, _backend())

    response = gateway.get(ATTENDANCE_PATH)

    assert response.status_code == 200
    assert [(spec.path, token) for spec, token in transport.calls] == [
        (ATTENDANCE_PATH, "old-access"),
        (TOKEN_REFRESH_PATH, None),
        (ATTENDANCE_PATH, "new-access"),
    ]
    assert sessions.get_access_token() == "new-access"
    assert seeded_storage.get("accessToken") == "new-access"


def test_failed_refresh_clears_session_and_stops_further_refreshes(seeded_storage):
    gateway, sessions, transport = _build(seeded_storage, _backend(refresh_status=401))
    reasons = []
    sessions.add_termination_listener(reasons.append)

    with pytest.raises(AuthExpiredError):
        gateway.get(ATTENDANCE_PATH)

    assert sessions.session is None
    assert seeded_storage.get("refreshToken") is None

    calls_before = len(transport.calls)
    with pytest.raises(NoSessionError):
        gateway.get(ATTENDANCE_PATH)
    assert len(transport.calls) == calls_before
    assert len(transport.calls_to(TOKEN_REFRESH_PATH)) == 1
    assert len(reasons) == 1


def test_unauthorized_retry_ends_session(seeded_storage):
    gateway, sessions, transport = _build(seeded_storage, _backend(retry_status=401))

    with pytest.raises(AuthExpiredError):
        gateway.get(ATTENDANCE_PATH)

    assert sessions.session is None
    assert len(transport.calls_to(TOKEN_REFRESH_PATH)) == 1
    assert len(transport.calls_to(ATTENDANCE_PATH)) == 2


def test_other_failures_surface_status_and_short_message(seeded_storage):
    gateway, sessions, _ = _build(
        seeded_storage, lambda spec, token: Response(400, {"detail": "QR code has expired."})
    )

    with pytest.raises(RequestFailedError) as excinfo:
        gateway.post(ATTENDANCE_PATH, {"token": "abc"})

    assert excinfo.value.status == 400
    assert excinfo.value.body == {"detail": "QR code has expired."}
    assert excinfo.value.user_message == "QR code has expired."
    assert sessions.session is not None


def test_raw_html_error_body_is_not_shown(seeded_storage):
    gateway, _, _ = _build(seeded_storage, lambda spec, token: Response(502, "<html>Bad gateway</html>"))

    with pytest.raises(RequestFailedError) as excinfo:
        gateway.get(ATTENDANCE_PATH)

    assert "<html>" not in excinfo.value.user_message


def test_network_error_leaves_session_alone(seeded_storage):
    def handler(spec, token):
        raise NetworkError()

    gateway, sessions, _ = _build(seeded_storage, handler)

    with pytest.raises(NetworkError):
        gateway.get(ATTENDANCE_PATH)
    assert sessions.session is not None


def test_concurrent_unauthorized_calls_share_one_refresh(seeded_storage):
    callers = 6
    all_rejected = threading.Barrier(callers)
    refresh_calls = []

    def handler(spec, token):
        if spec.path == TOKEN_REFRESH_PATH:
            refresh_calls.append(spec)
            return Response(200, {"access": "new-access"})
        if token == "old-access":
            all_rejected.wait(timeout=5)
            return Response(401, {"detail": "Token expired"})
        return Response(200, [])

    gateway, _, transport = _build(seeded_storage, handler)
    failures = []

    def worker():
        try:
            gateway.get(ATTENDANCE_PATH)
        except Exception as exc:  # pragma: no cover - reported below
            failures.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(callers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert failures == []
    assert len(refresh_calls) == 1
    retries = [token for spec, token in transport.calls_to(ATTENDANCE_PATH) if token != "old-access"]
    assert retries == ["new-access"] * callers
