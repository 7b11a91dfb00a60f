from __future__ import annotations

import argparse
import json
from dataclasses import replace

import pytest

from attendance_client.config.settings import ATTENDANCE_PATH, LOGIN_PATH, TOKEN_REFRESH_PATH, settings
from attendance_client.errors import PermissionDeniedError
from attendance_client.services.transport import Response
from attendance_client.ui.app import AttendanceApp, parse_coordinates
from attendance_client.ui.notifications import RecordingNotifier, Tone

from conftest import FakeTransport

RECORDS = [
    {
        "id": 1,
        "created_at": "2025-03-10T09:00:00Z",
        "is_present": True,
        "face_recognition_status": "CONFIRMED",
        "session_id": {"course_id": {"id": 1, "name": "CS1"}},
    },
    {
        "id": 2,
        "created_at": "2025-03-11T09:00:00Z",
        "is_present": False,
        "face_recognition_status": "REJECTED",
        "session_id": {"course_id": {"id": 1, "name": "CS1"}},
    },
]


class _StillCamera:
    camera_previously_denied = False

    def __init__(self, image=b"jpeg-bytes", error=None):
        self.image = image
        self.error = error

    def capture_jpeg(self):
        if self.error is not None:
            raise self.error
        return self.image


def _app(storage, handler, scanner=None):
    notifier = RecordingNotifier()
    app = AttendanceApp(
        replace(settings, submit_settle_seconds=0),
        transport=FakeTransport(handler),
        storage=storage,
        notifier=notifier,
        prompt_password=lambda prompt: "pw",
        scanner=scanner or _StillCamera(),
    )
    return app, notifier


def test_login_then_courses(storage, capsys):
    def handler(spec, token):
        if spec.path == LOGIN_PATH:
            return Response(200, {"access": "a1", "refresh": "r1", "user": {"id": 5, "name": "Sam"}})
        return Response(200, RECORDS)

    app, notifier = _app(storage, handler)

    assert app.run(["login", "sam@example.com"]) == 0
    assert app.run(["courses"]) == 0

    output = capsys.readouterr().out
    assert "CS1" in output
    assert "50%" in output
    assert notifier.messages(Tone.SUCCESS) == ["Welcome, Sam."]


def test_expired_session_is_announced_once(seeded_storage):
    def handler(spec, token):
        if spec.path == TOKEN_REFRESH_PATH:
            return Response(401, {"detail": "Token is invalid or expired"})
        return Response(401, {"detail": "expired"})

    app, notifier = _app(seeded_storage, handler)

    assert app.run(["history"]) == 1
    assert app.run(["history"]) == 1

    assert notifier.messages(Tone.ERROR) == [
        "Unable to refresh token. Please log in again.",
        "Authentication error. Please log in.",
    ]
    assert app.sessions.session is None


def test_submit_command(seeded_storage):
    app, notifier = _app(seeded_storage, lambda spec, token: Response(201, {"id": 3}))

    assert app.run(["submit", "class-token"]) == 0
    assert notifier.messages(Tone.SUCCESS) == ["Attendance marked successfully."]


def test_theme_flag_is_stored(storage):
    app, notifier = _app(storage, lambda spec, token: Response(200, {}))

    app.run(["theme", "dark"])

    assert storage.get("theme") == "dark"
    assert notifier.messages(Tone.INFO) == ["Theme: dark"]


UPLOAD_URL = "https://uploads.example.com/put/abc"


def _face_session_handler(upload_status=200):
    def handler(spec, token):
        if spec.path == UPLOAD_URL:
            return Response(upload_status, None)
        return Response(201, {
            "id": 8,
            "session_id": {"face_recognition_enabled": True},
            "face_image_upload_url": UPLOAD_URL,
        })

    return handler


def test_submit_uploads_face_image_when_session_requires_it(seeded_storage):
    app, notifier = _app(seeded_storage, _face_session_handler())

    assert app.run(["submit", "class-token"]) == 0

    spec, token = app._transport.calls_to(UPLOAD_URL)[0]
    assert spec.method == "PUT"
    assert spec.data == b"jpeg-bytes"
    assert spec.headers["Content-Type"] == "image/jpeg"
    assert token is None
    assert notifier.messages(Tone.SUCCESS) == [
        "Attendance marked successfully.",
        "Face image uploaded successfully.",
    ]


def test_failed_face_upload_is_reported(seeded_storage):
    app, notifier = _app(seeded_storage, _face_session_handler(upload_status=403))

    assert app.run(["submit", "class-token"]) == 1
    assert notifier.messages(Tone.ERROR) == ["Failed to capture or upload photo."]


def test_face_capture_without_camera_is_reported(seeded_storage):
    app, notifier = _app(
        seeded_storage, _face_session_handler(), scanner=_StillCamera(error=PermissionDeniedError())
    )

    assert app.run(["submit", "class-token"]) == 1
    assert app._transport.calls_to(UPLOAD_URL) == []
    assert notifier.messages(Tone.ERROR) == ["Failed to capture or upload photo."]


def test_submit_sends_location_from_the_command_line(seeded_storage):
    app, notifier = _app(seeded_storage, lambda spec, token: Response(201, {"id": 3}))
    payload = json.dumps({"token": "abc", "locationEnabled": True})

    assert app.run(["submit", payload, "--location", "61.05,28.19"]) == 0

    spec, _ = app._transport.calls_to(ATTENDANCE_PATH)[0]
    assert spec.json == {"token": "abc", "latitude": 61.05, "longitude": 28.19}
    assert notifier.messages(Tone.WARNING) == []


def test_parse_coordinates_rejects_bad_input():
    assert parse_coordinates("61.05, 28.19") == (61.05, 28.19)
    for value in ("61.05", "north,east", "95,10", "1,2,3"):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_coordinates(value)


class _DeniedCamera(_StillCamera):
    camera_previously_denied = True

    def start(self, on_payload, *, on_error=None):
        on_error(PermissionDeniedError())
        return False

    def stop(self):
        pass


def test_scan_warns_when_camera_was_denied_before(seeded_storage):
    app, notifier = _app(seeded_storage, lambda spec, token: Response(201, {"id": 1}), scanner=_DeniedCamera())

    assert app.run(["scan", "--once"]) == 1
    assert notifier.messages(Tone.WARNING) == [
        "Camera access was denied last time. Check permissions if scanning fails."
    ]
    assert notifier.messages(Tone.ERROR) == ["Camera access denied. Please enable it in your device settings."]
