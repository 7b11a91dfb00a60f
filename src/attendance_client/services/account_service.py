from __future__ import annotations

import logging
from typing import Optional

from attendance_client.config.settings import (
    PASSWORD_CHANGE_PATH,
    PASSWORD_RESET_PATH,
    REGISTRATION_PATH,
    USER_UPDATE_PATH,
)
from attendance_client.errors import PasswordMismatchError, RequestFailedError
from attendance_client.models import Session, UserProfile
from attendance_client.services.gateway import AuthenticatedGateway
from attendance_client.services.session_manager import SessionManager
from attendance_client.services.transport import RequestSpec, Transport

logger = logging.getLogger(__name__)

PASSWORD_MISMATCH_MESSAGE = "Passwords do not match"
RESET_SENT_MESSAGE = "Password reset instructions have been sent to your email."


class AccountService:
    """Account operations that are a single request each."""

    def __init__(self, sessions: SessionManager, gateway: AuthenticatedGateway, transport: Transport) -> None:
        self._sessions = sessions
        self._gateway = gateway
        self._transport = transport

    def login(self, email: str, password: str) -> Session:
        return self._sessions.login(email.strip(), password)

    def logout(self) -> None:
        self._sessions.clear()

    def register(self, email: str, password1: str, password2: str) -> None:
        if password1 != password2:
            raise PasswordMismatchError(PASSWORD_MISMATCH_MESSAGE)

        response = self._transport.send(
            RequestSpec(
                "POST",
                REGISTRATION_PATH,
                json={"email": email.strip(), "password1": password1, "password2": password2},
            )
        )
        if not response.ok:
            raise RequestFailedError(
                response.status_code, response.body, fallback="Registration failed. Please try again."
            )
        logger.info("Registered a new account")

    def request_password_reset(self, email: str) -> str:
        response = self._transport.send(RequestSpec("POST", PASSWORD_RESET_PATH, json={"email": email.strip()}))
        if not response.ok:
            raise RequestFailedError(
                response.status_code, response.body, fallback="An error occurred. Please try again."
            )
        return RESET_SENT_MESSAGE

    def change_password(self, old_password: str, new_password1: str, new_password2: str) -> None:
        if new_password1 != new_password2:
            raise PasswordMismatchError(PASSWORD_MISMATCH_MESSAGE)

        self._gateway.post(
            PASSWORD_CHANGE_PATH,
            {
                "old_password": old_password,
                "new_password1": new_password1,
                "new_password2": new_password2,
            },
        )
        logger.info("Password changed")

    def update_profile(
        self,
        *,
        name: str,
        email: str,
        phone: str,
        password: Optional[str] = None,
        confirm_password: Optional[str] = None,
    ) -> UserProfile:
        if (password or confirm_password) and password != confirm_password:
            raise PasswordMismatchError(PASSWORD_MISMATCH_MESSAGE)

        payload = {"name": name, "email": email, "phone": phone}
        if password:
            payload["password"] = password

        response = self._gateway.put(USER_UPDATE_PATH, payload)
        current = self._sessions.user
        if isinstance(response.body, dict) and response.body:
            updated = UserProfile.from_api({"id": current.id if current else "", **response.body})
        else:
            updated = UserProfile(id=current.id if current else "", email=email, name=name, phone=phone)
        self._sessions.update_user(updated)
        return updated
