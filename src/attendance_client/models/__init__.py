from .attendance import (
	AttendanceEntry,
	AttendanceRecord,
	CourseSummary,
	EntryStatus,
	FaceRecognitionStatus,
	HistoryEntry,
	SubmissionAttempt,
	SubmissionOutcome,
	SubmissionResult,
	SubmissionState,
)
from .session import Session, UserProfile, token_expiry

__all__ = [
	"AttendanceEntry",
	"AttendanceRecord",
	"CourseSummary",
	"EntryStatus",
	"FaceRecognitionStatus",
	"HistoryEntry",
	"Session",
	"SubmissionAttempt",
	"SubmissionOutcome",
	"SubmissionResult",
	"SubmissionState",
	"UserProfile",
	"token_expiry",
]
