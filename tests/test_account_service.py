from __future__ import annotations

import pytest

from attendance_client.config.settings import (
    PASSWORD_CHANGE_PATH,
    PASSWORD_RESET_PATH,
    REGISTRATION_PATH,
    USER_UPDATE_PATH,
)
from attendance_client.errors import PasswordMismatchError, RequestFailedError
from attendance_client.services import AccountService, AuthenticatedGateway, SessionManager, TokenStore
from attendance_client.services.transport import Response

from conftest import FakeTransport


def _service(storage, handler):
    transport = FakeTransport(handler)
    sessions = SessionManager(TokenStore(storage), transport)
    return AccountService(sessions, AuthenticatedGateway(sessions, transport), transport), sessions, transport


def test_change_password_checks_confirmation_before_any_request(seeded_storage):
    service, _, transport = _service(seeded_storage, lambda spec, token: Response(200, {}))

    with pytest.raises(PasswordMismatchError):
        service.change_password("old", "new-1", "new-2")
    assert transport.calls == []


def test_change_password_is_authenticated(seeded_storage):
    service, _, transport = _service(seeded_storage, lambda spec, token: Response(200, {}))

    service.change_password("old", "new", "new")

    spec, token = transport.calls[0]
    assert spec.path == PASSWORD_CHANGE_PATH
    assert spec.json == {"old_password": "old", "new_password1": "new", "new_password2": "new"}
    assert token == "old-access"


def test_password_reset_needs_no_session(storage):
    service, _, transport = _service(storage, lambda spec, token: Response(200, {"detail": "sent"}))

    message = service.request_password_reset(" student@example.com ")

    spec, token = transport.calls[0]
    assert spec.path == PASSWORD_RESET_PATH
    assert spec.json == {"email": "student@example.com"}
    assert token is None
    assert "sent to your email" in message


def test_registration_reports_first_field_error(storage):
    service, _, _ = _service(
        storage, lambda spec, token: Response(400, {"email": ["A user is already registered with this e-mail address."]})
    )

    with pytest.raises(RequestFailedError) as excinfo:
        service.register("student@example.com", "pw", "pw")

    assert excinfo.value.user_message == "A user is already registered with this e-mail address."


def test_registration_posts_both_passwords(storage):
    service, _, transport = _service(storage, lambda spec, token: Response(201, {}))

    service.register("student@example.com", "pw", "pw")

    spec, _ = transport.calls[0]
    assert spec.path == REGISTRATION_PATH
    assert spec.json == {"email": "student@example.com", "password1": "pw", "password2": "pw"}


def test_update_profile_stores_returned_user(seeded_storage):
    def handler(spec, token):
        assert spec.path == USER_UPDATE_PATH
        return Response(200, {"name": spec.json["name"], "email": spec.json["email"], "phone": spec.json["phone"]})

    service, sessions, transport = _service(seeded_storage, handler)

    updated = service.update_profile(name="Sam S", email="sam@example.com", phone="555-0100")

    assert updated.id == "42"
    assert sessions.user.phone == "555-0100"
    assert "password" not in transport.calls[0][0].json
    assert '"555-0100"' in seeded_storage.get("user")


def test_logout_clears_stored_tokens(seeded_storage):
    service, sessions, _ = _service(seeded_storage, lambda spec, token: Response(200, {}))

    service.logout()

    assert sessions.session is None
    assert seeded_storage.get("accessToken") is None
