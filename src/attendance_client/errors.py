from __future__ import annotations

from typing import Any

GENERIC_REQUEST_MESSAGE = "Request failed. Please try again."
MAX_SERVER_MESSAGE_LENGTH = 200


class AttendanceClientError(RuntimeError):
    """Base class for failures surfaced by the attendance client."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class SessionError(AttendanceClientError):
    """A failure that terminates the current session."""


class NoSessionError(SessionError):
    user_message = "Authentication error. Please log in."


class RefreshFailedError(SessionError):
    user_message = "Unable to refresh token. Please log in again."


class AuthExpiredError(SessionError):
    user_message = "Your session has expired. Please log in again."


class NetworkError(AttendanceClientError):
    user_message = "Network error. Please try again."


class AlreadySubmittingError(AttendanceClientError):
    """Raised when a scan arrives while a previous attempt has not settled."""

    user_message = "A submission is already in progress."


class PermissionDeniedError(AttendanceClientError):
    user_message = "Camera access denied. Please enable it in your device settings."


class ScannerUnavailableError(AttendanceClientError):
    user_message = "Missing QR scanner dependencies. Install OpenCV and zxing-cpp to enable scanning."


class FaceCaptureError(AttendanceClientError):
    user_message = "Failed to capture or upload photo."


class InvalidScanPayloadError(AttendanceClientError):
    user_message = "No token found in QR code."


class RequestFailedError(AttendanceClientError):
    """The backend answered with a non-success status."""

    def __init__(self, status: int, body: Any = None, *, fallback: str = GENERIC_REQUEST_MESSAGE) -> None:
        self.status = status
        self.body = body
        super().__init__(extract_server_message(body) or fallback)

    def __repr__(self) -> str:
        return f"RequestFailedError(status={self.status})"


class PasswordMismatchError(ValueError):
    pass


def extract_server_message(body: Any) -> str | None:
    """Pull a short human readable message out of an error body, if it has one."""

    if isinstance(body, str):
        candidate = body.strip()
        # HTML error pages and other raw payloads are not shown to users
        if candidate.startswith("<") or candidate.startswith("{"):
            return None
        return candidate[:MAX_SERVER_MESSAGE_LENGTH] or None

    if not isinstance(body, dict):
        return None

    for key in ("detail", "message", "email", "password1", "password2", "old_password",
                "new_password1", "new_password2", "non_field_errors", "token"):
        value = body.get(key)
        if isinstance(value, list) and value:
            value = value[0]
        if isinstance(value, str) and value.strip():
            return value.strip()[:MAX_SERVER_MESSAGE_LENGTH]
    return None
