from __future__ import annotations

import argparse
import getpass
import logging
import threading
from typing import Callable, Optional, Sequence

from attendance_client.config.client_storage import THEME_KEY, ClientStorage
from attendance_client.config.settings import Settings, settings as default_settings
from attendance_client.errors import AttendanceClientError, FaceCaptureError, PasswordMismatchError, SessionError
from attendance_client.models import SubmissionResult
from attendance_client.services import (
    AccountService,
    AttendanceService,
    AttendanceSubmitter,
    AuthenticatedGateway,
    QRScanner,
    RequestsTransport,
    SessionManager,
    TokenStore,
    Transport,
    format_percentage,
    grade_percentage,
    overall_percentage,
)
from attendance_client.ui.notifications import BaseNotifier, ConsoleNotifier
from attendance_client.utils import format_relative_time

logger = logging.getLogger(__name__)

PasswordPrompt = Callable[[str], str]
Coordinates = tuple[float, float]


class AttendanceApp:
    """Console front end wiring one session manager through every service."""

    def __init__(
        self,
        app_settings: Settings | None = None,
        *,
        transport: Transport | None = None,
        storage: ClientStorage | None = None,
        notifier: BaseNotifier | None = None,
        prompt_password: PasswordPrompt = getpass.getpass,
        scanner: QRScanner | None = None,
    ) -> None:
        self._settings = app_settings or default_settings
        self._notifier = notifier or ConsoleNotifier()
        self._prompt_password = prompt_password
        self._termination_announced = False
        self._storage = storage or ClientStorage(self._settings.storage_path)
        self._transport = transport or RequestsTransport(
            self._settings.api_base_url,
            timeout=self._settings.request_timeout_seconds,
        )

        self._sessions = SessionManager(TokenStore(self._storage), self._transport)
        self._sessions.add_termination_listener(self._handle_session_terminated)
        self._gateway = AuthenticatedGateway(self._sessions, self._transport)
        self._attendance_service = AttendanceService(self._gateway, self._transport)
        self._account_service = AccountService(self._sessions, self._gateway, self._transport)
        self._scanner = scanner or QRScanner(camera_index=self._settings.qr_camera_index, storage=self._storage)

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        parser = build_parser()
        args = parser.parse_args(argv)
        handler = getattr(self, f"_cmd_{args.command.replace('-', '_')}")

        self._termination_announced = False
        try:
            return handler(args)
        except PasswordMismatchError as exc:
            self._notifier.error(str(exc))
        except SessionError as exc:
            # a terminated session was already announced by the listener
            if not self._termination_announced:
                self._notifier.error(exc.user_message)
        except AttendanceClientError as exc:
            logger.debug("Command %s failed: %r", args.command, exc)
            self._notifier.error(exc.user_message)
        return 1

    def new_submitter(self, on_result=None, location: Optional[Coordinates] = None) -> AttendanceSubmitter:
        return AttendanceSubmitter(
            self._gateway,
            notifier=self._notifier,
            settle_delay=self._settings.submit_settle_seconds,
            location_provider=(lambda: location) if location else None,
            on_result=on_result,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def _cmd_login(self, args: argparse.Namespace) -> int:
        password = args.password or self._prompt_password("Password: ")
        self._account_service.login(args.email, password)
        user = self._sessions.user
        self._notifier.success(f"Welcome, {user.display_name if user else args.email}.")
        return 0

    def _cmd_logout(self, _args: argparse.Namespace) -> int:
        self._account_service.logout()
        self._notifier.info("Logged out.")
        return 0

    def _cmd_status(self, _args: argparse.Namespace) -> int:
        session = self._sessions.session
        if session is None:
            self._notifier.info("Not logged in.")
            return 1

        user = self._sessions.user
        expiry = session.expires_approx.isoformat() if session.expires_approx else "unknown"
        state = "expired" if session.is_expired() else "active"
        self._notifier.info(f"Logged in as {user.display_name if user else session.user_id} ({state}, expires {expiry}).")
        return 0

    def _cmd_submit(self, args: argparse.Namespace) -> int:
        result = self.new_submitter(location=args.location).submit(args.payload)
        return 0 if result.succeeded and self._complete_face_capture(result) else 1

    def _cmd_scan(self, args: argparse.Namespace) -> int:
        done = threading.Event()
        outcome: list[SubmissionResult] = []

        def _on_result(result: SubmissionResult) -> None:
            if result.succeeded and not self._complete_face_capture(result):
                return
            outcome.append(result)
            if args.once and result.succeeded:
                done.set()

        submitter = self.new_submitter(on_result=_on_result, location=args.location)
        scanner = self._scanner
        if scanner.camera_previously_denied:
            self._notifier.warning("Camera access was denied last time. Check permissions if scanning fails.")

        def _on_error(error: Exception) -> None:
            submitter.handle_scan_error(error)
            done.set()

        if not scanner.start(submitter.handle_decode, on_error=_on_error):
            return 1

        self._notifier.info("Scanner active. Press Ctrl+C to stop.")
        try:
            done.wait()
        except KeyboardInterrupt:
            pass
        finally:
            submitter.close()
            scanner.stop()

        return 0 if any(result.succeeded for result in outcome) else 1

    def _cmd_history(self, _args: argparse.Namespace) -> int:
        entries = self._attendance_service.history()
        if not entries:
            self._notifier.info("No attendance records yet.")
            return 0

        for entry in entries:
            print(f"{entry.date} {entry.time}  {entry.course_name:<30} {entry.status.value:<10} "
                  f"({format_relative_time(entry.created_at)})")
        return 0

    def _cmd_courses(self, _args: argparse.Namespace) -> int:
        summaries = self._attendance_service.course_summaries()
        if not summaries:
            self._notifier.info("No courses found.")
            return 0

        for summary in summaries:
            grade = format_percentage(grade_percentage(summary.records))
            print(f"{summary.course_name:<30} {len(summary.records):>3} sessions  {grade}")
        print(f"Overall attendance: {format_percentage(overall_percentage(summaries))}")
        return 0

    def _cmd_register(self, args: argparse.Namespace) -> int:
        password1 = args.password or self._prompt_password("Password: ")
        password2 = args.password or self._prompt_password("Confirm password: ")
        self._account_service.register(args.email, password1, password2)
        self._notifier.success("Account created. You can log in now.")
        return 0

    def _cmd_reset_password(self, args: argparse.Namespace) -> int:
        self._notifier.success(self._account_service.request_password_reset(args.email))
        return 0

    def _cmd_change_password(self, _args: argparse.Namespace) -> int:
        old_password = self._prompt_password("Current password: ")
        new_password1 = self._prompt_password("New password: ")
        new_password2 = self._prompt_password("Confirm new password: ")
        self._account_service.change_password(old_password, new_password1, new_password2)
        self._notifier.success("Password successfully changed!")
        return 0

    def _cmd_update_profile(self, args: argparse.Namespace) -> int:
        current = self._sessions.user
        password = confirm = None
        if args.change_password:
            password = self._prompt_password("New password: ")
            confirm = self._prompt_password("Confirm new password: ")

        self._account_service.update_profile(
            name=args.name if args.name is not None else (current.name if current else "") or "",
            email=args.email if args.email is not None else (current.email if current else "") or "",
            phone=args.phone if args.phone is not None else (current.phone if current else "") or "",
            password=password,
            confirm_password=confirm,
        )
        self._notifier.success("Profile updated successfully!")
        return 0

    def _cmd_theme(self, args: argparse.Namespace) -> int:
        if args.mode:
            self._storage.set(THEME_KEY, args.mode)
        self._notifier.info(f"Theme: {self._storage.get(THEME_KEY)}")
        return 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _complete_face_capture(self, result: SubmissionResult) -> bool:
        if not result.requires_face_capture:
            return True

        self._notifier.info("Face verification required. Look at the camera.")
        try:
            image = self._scanner.capture_jpeg()
            self._attendance_service.upload_face_image(result.face_image_upload_url, image)
        except AttendanceClientError as exc:
            logger.warning("Face capture for record %s failed: %r", result.record_id, exc)
            self._notifier.error(FaceCaptureError.user_message)
            return False

        self._notifier.success("Face image uploaded successfully.")
        return True

    def _handle_session_terminated(self, reason: Exception | None) -> None:
        if isinstance(reason, AttendanceClientError):
            self._termination_announced = True
            self._notifier.error(reason.user_message)


def parse_coordinates(value: str) -> Coordinates:
    try:
        latitude, longitude = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError("expected LAT,LON") from None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise argparse.ArgumentTypeError("coordinates out of range")
    return latitude, longitude


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="attendance-client", description="Mark and review class attendance.")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in with email and password.")
    login.add_argument("email")
    login.add_argument("--password", help="Read from a prompt when omitted.")

    commands.add_parser("logout", help="Forget the stored session.")
    commands.add_parser("status", help="Show the current session.")

    submit = commands.add_parser("submit", help="Submit a scanned attendance token.")
    submit.add_argument("payload", help="Decoded QR text or a plain token.")
    submit.add_argument("--location", type=parse_coordinates, metavar="LAT,LON", help="Sent when the QR asks for location.")

    scan = commands.add_parser("scan", help="Scan a QR code with the camera.")
    scan.add_argument("--once", action="store_true", help="Stop after the first successful submission.")
    scan.add_argument("--location", type=parse_coordinates, metavar="LAT,LON", help="Sent when the QR asks for location.")

    commands.add_parser("history", help="List attendance records, newest first.")
    commands.add_parser("courses", help="Show per-course attendance grades.")

    register = commands.add_parser("register", help="Create an account.")
    register.add_argument("email")
    register.add_argument("--password")

    reset = commands.add_parser("reset-password", help="Email password reset instructions.")
    reset.add_argument("email")

    commands.add_parser("change-password", help="Change the account password.")

    profile = commands.add_parser("update-profile", help="Update name, email or phone.")
    profile.add_argument("--name")
    profile.add_argument("--email")
    profile.add_argument("--phone")
    profile.add_argument("--change-password", action="store_true")

    theme = commands.add_parser("theme", help="Show or set the appearance flag.")
    theme.add_argument("mode", nargs="?", choices=("light", "dark"))

    return parser
