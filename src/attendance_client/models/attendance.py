from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from attendance_client.utils.time import coerce_datetime, format_date, format_time


class FaceRecognitionStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    NONE = "NONE"

    @classmethod
    def parse(cls, value: Any) -> "FaceRecognitionStatus":
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.NONE


class EntryStatus(str, Enum):
    SUCCESS = "Success"
    PROCESSING = "Processing"
    FAILED = "Failed"


@dataclass(slots=True, frozen=True)
class AttendanceRecord:
    id: Any
    course_id: Any
    course_name: str
    created_at: datetime
    is_present: bool
    face_recognition_status: FaceRecognitionStatus = FaceRecognitionStatus.NONE

    @property
    def status(self) -> EntryStatus:
        if self.is_present:
            return EntryStatus.SUCCESS
        if self.face_recognition_status is FaceRecognitionStatus.PENDING:
            return EntryStatus.PROCESSING
        return EntryStatus.FAILED

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "AttendanceRecord":
        """Build a record from the nested shape returned by ``GET /attendance``."""

        session = payload.get("session_id")
        course = session.get("course_id") if isinstance(session, dict) else None
        course = course if isinstance(course, dict) else {}
        return cls(
            id=payload.get("id"),
            course_id=course.get("id"),
            course_name=str(course.get("name") or ""),
            created_at=coerce_datetime(payload["created_at"]),
            is_present=payload.get("is_present") is True,
            face_recognition_status=FaceRecognitionStatus.parse(payload.get("face_recognition_status")),
        )


@dataclass(slots=True, frozen=True)
class AttendanceEntry:
    date: str
    time: str
    status: EntryStatus
    created_at: datetime

    @classmethod
    def from_record(cls, record: AttendanceRecord) -> "AttendanceEntry":
        return cls(
            date=format_date(record.created_at),
            time=format_time(record.created_at),
            status=record.status,
            created_at=record.created_at,
        )

    @property
    def score(self) -> Optional[int]:
        """Presentational grade of one entry; ``None`` while still processing."""

        if self.status is EntryStatus.PROCESSING:
            return None
        return 100 if self.status is EntryStatus.SUCCESS else 0


@dataclass(slots=True)
class CourseSummary:
    course_id: Any
    course_name: str
    records: list[AttendanceEntry] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    course_name: str
    date: str
    time: str
    status: EntryStatus
    created_at: datetime


class SubmissionState(str, Enum):
    IDLE = "Idle"
    SUBMITTING = "Submitting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(slots=True)
class SubmissionAttempt:
    scan_payload: str
    state: SubmissionState = SubmissionState.SUBMITTING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SubmissionOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    REQUEST_FAILED = "request_failed"
    NETWORK_ERROR = "network_error"
    AUTH_EXPIRED = "auth_expired"
    NO_SESSION = "no_session"
    INVALID_PAYLOAD = "invalid_payload"


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    outcome: SubmissionOutcome
    message: str
    record_id: Any = None
    face_image_upload_url: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is SubmissionOutcome.SUCCEEDED

    @property
    def requires_face_capture(self) -> bool:
        return self.face_image_upload_url is not None
