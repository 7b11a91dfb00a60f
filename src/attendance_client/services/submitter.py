from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Optional

from attendance_client.config.settings import ATTENDANCE_PATH
from attendance_client.errors import (
    AlreadySubmittingError,
    AttendanceClientError,
    AuthExpiredError,
    InvalidScanPayloadError,
    NetworkError,
    NoSessionError,
    PermissionDeniedError,
    RequestFailedError,
)
from attendance_client.models import (
    SubmissionAttempt,
    SubmissionOutcome,
    SubmissionResult,
    SubmissionState,
)
from attendance_client.services.gateway import AuthenticatedGateway
from attendance_client.services.transport import RequestSpec
from attendance_client.ui.notifications import Notifier, NullNotifier

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 3.0
SUCCESS_MESSAGE = "Attendance marked successfully."
INVALID_QR_MESSAGE = "Invalid QR code. Please try again."
LOCATION_FAILED_MESSAGE = "Unable to get location. Proceeding without it."

LocationProvider = Callable[[], tuple[float, float]]

SubmissionListener = Callable[[SubmissionResult], None]


def parse_scan_payload(scan_payload: str) -> tuple[str, bool]:
    """Return ``(token, location_enabled)`` for a decoded QR payload.

    JSON payloads carry ``token`` and ``locationEnabled``; anything else is
    the token itself.
    """

    text = (scan_payload or "").strip()
    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if isinstance(data, dict):
        token = data.get("token")
        return (str(token).strip() if token else ""), bool(data.get("locationEnabled", False))
    return text, False


class AttendanceSubmitter:
    """Turn decoded scans into attendance submissions, one at a time.

    State machine: Idle -> Submitting -> Succeeded | Failed -> Idle. The
    terminal state is held for ``settle_delay`` seconds before a new scan is
    accepted.
    """

    def __init__(
        self,
        gateway: AuthenticatedGateway,
        *,
        notifier: Optional[Notifier] = None,
        settle_delay: float = DEFAULT_SETTLE_SECONDS,
        location_provider: Optional[LocationProvider] = None,
        on_result: Optional[SubmissionListener] = None,
    ) -> None:
        self._gateway = gateway
        self._notifier = notifier or NullNotifier()
        self._settle_delay = settle_delay
        self._location_provider = location_provider
        self._on_result = on_result
        self._lock = threading.Lock()
        self._attempt: Optional[SubmissionAttempt] = None
        self._settle_timer: Optional[threading.Timer] = None
        self._alive = True

    @property
    def state(self) -> SubmissionState:
        with self._lock:
            return self._attempt.state if self._attempt else SubmissionState.IDLE

    @property
    def is_alive(self) -> bool:
        return self._alive

    def submit(self, scan_payload: str) -> SubmissionResult:
        attempt = self._begin(scan_payload)
        return self._run(attempt)

    def handle_decode(self, text: str) -> bool:
        """Decoder callback. Returns ``True`` when the scan was accepted."""

        if not self._alive:
            return False
        try:
            attempt = self._begin(text)
        except AlreadySubmittingError:
            return False

        threading.Thread(target=self._run, args=(attempt,), daemon=True).start()
        return True

    def handle_scan_error(self, error: Exception) -> None:
        if not self._alive:
            return
        if isinstance(error, AttendanceClientError):
            message = error.user_message
        else:
            message = "Unable to access camera. Check permissions."
        logger.warning("Scanner reported an error: %s", error)
        self._notifier.error(message)

    def close(self) -> None:
        """Detach from the owning view; later decodes and outcomes are dropped."""

        with self._lock:
            self._alive = False
            timer = self._settle_timer
        if timer is not None:
            timer.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _begin(self, scan_payload: str) -> SubmissionAttempt:
        with self._lock:
            if self._attempt is not None:
                raise AlreadySubmittingError()
            attempt = SubmissionAttempt(scan_payload=scan_payload)
            self._attempt = attempt
            return attempt

    def _run(self, attempt: SubmissionAttempt) -> SubmissionResult:
        try:
            result = self._send(attempt.scan_payload)
        except Exception:
            logger.exception("Unexpected failure while submitting attendance")
            result = SubmissionResult(SubmissionOutcome.REQUEST_FAILED, AttendanceClientError.user_message)

        with self._lock:
            attempt.state = SubmissionState.SUCCEEDED if result.succeeded else SubmissionState.FAILED
            alive = self._alive

        try:
            if alive:
                self._announce(result)
            else:
                logger.debug("Dropping submission outcome after the scanner was closed")
        finally:
            self._settle(attempt)
        return result

    def _send(self, scan_payload: str) -> SubmissionResult:
        token, location_enabled = parse_scan_payload(scan_payload)
        if not token:
            return SubmissionResult(SubmissionOutcome.INVALID_PAYLOAD, InvalidScanPayloadError.user_message)

        body: dict[str, Any] = {"token": token}
        if location_enabled:
            body.update(self._locate())

        try:
            response = self._gateway.call(RequestSpec("POST", ATTENDANCE_PATH, json=body))
        except RequestFailedError as exc:
            logger.info("Attendance rejected with status %s", exc.status)
            return SubmissionResult(SubmissionOutcome.REQUEST_FAILED, f"Scan error: {exc.user_message}")
        except NetworkError as exc:
            return SubmissionResult(SubmissionOutcome.NETWORK_ERROR, exc.user_message)
        except AuthExpiredError as exc:
            return SubmissionResult(SubmissionOutcome.AUTH_EXPIRED, exc.user_message)
        except NoSessionError as exc:
            return SubmissionResult(SubmissionOutcome.NO_SESSION, exc.user_message)

        data = response.body if isinstance(response.body, dict) else {}
        record_id = data.get("id")
        if not isinstance(record_id, int) or record_id < 0:
            return SubmissionResult(SubmissionOutcome.REQUEST_FAILED, INVALID_QR_MESSAGE)

        session_info = data.get("session_id") if isinstance(data.get("session_id"), dict) else {}
        upload_url = data.get("face_image_upload_url") if session_info.get("face_recognition_enabled") else None
        return SubmissionResult(
            SubmissionOutcome.SUCCEEDED,
            SUCCESS_MESSAGE,
            record_id=record_id,
            face_image_upload_url=upload_url,
        )

    def _locate(self) -> dict[str, float]:
        if self._location_provider is None:
            logger.info("Location requested but no provider is configured")
            self._notifier.warning(LOCATION_FAILED_MESSAGE)
            return {}
        try:
            latitude, longitude = self._location_provider()
        except (PermissionDeniedError, OSError, ValueError) as exc:
            logger.info("Location unavailable: %s", exc)
            self._notifier.warning(LOCATION_FAILED_MESSAGE)
            return {}
        return {"latitude": latitude, "longitude": longitude}

    def _announce(self, result: SubmissionResult) -> None:
        if result.succeeded:
            self._notifier.success(result.message)
        elif result.outcome is SubmissionOutcome.AUTH_EXPIRED:
            # surfaced once by the session termination listener
            pass
        else:
            self._notifier.error(result.message)

        if self._on_result is not None:
            try:
                self._on_result(result)
            except Exception:
                logger.exception("Submission listener failed")

    def _settle(self, attempt: SubmissionAttempt) -> None:
        if self._settle_delay <= 0:
            self._reset(attempt)
            return

        timer = threading.Timer(self._settle_delay, self._reset, args=(attempt,))
        timer.daemon = True
        with self._lock:
            self._settle_timer = timer
        timer.start()

    def _reset(self, attempt: SubmissionAttempt) -> None:
        with self._lock:
            if self._attempt is attempt:
                attempt.state = SubmissionState.IDLE
                self._attempt = None
                self._settle_timer = None
