"""Derive per-course views from the raw attendance record stream.

Grades here are presentational: every settled entry scores 100 when the
student was marked present and 0 otherwise, entries still waiting on face
recognition are left out, and the percentage is the plain mean of those
scores. It is not a statistical attendance rate.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from attendance_client.models import AttendanceEntry, AttendanceRecord, CourseSummary, HistoryEntry

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


def aggregate(records: Iterable[AttendanceRecord]) -> list[CourseSummary]:
    """Group records by course id, keeping courses in first-seen order."""

    summaries: dict[object, CourseSummary] = {}
    for record in records:
        summary = summaries.get(record.course_id)
        if summary is None:
            summary = CourseSummary(course_id=record.course_id, course_name=record.course_name)
            summaries[record.course_id] = summary
        elif record.course_name != summary.course_name:
            logger.warning(
                "Course %r reported as %r, keeping first-seen name %r",
                record.course_id,
                record.course_name,
                summary.course_name,
            )
        summary.records.append(AttendanceEntry.from_record(record))

    for summary in summaries.values():
        summary.records.sort(key=lambda entry: entry.created_at)
    return list(summaries.values())


def grade_percentage(entries: Iterable[AttendanceEntry]) -> Optional[float]:
    scores = [entry.score for entry in entries if entry.score is not None]
    if not scores:
        return None
    return sum(scores) / len(scores)


def overall_percentage(summaries: Sequence[CourseSummary]) -> Optional[float]:
    return grade_percentage(entry for summary in summaries for entry in summary.records)


def format_percentage(value: Optional[float]) -> str:
    if value is None:
        return NOT_AVAILABLE
    if float(value).is_integer():
        return f"{int(value)}%"
    return f"{value:.2f}%"


def history(records: Iterable[AttendanceRecord]) -> list[HistoryEntry]:
    """Flatten records into a newest-first history list."""

    entries = [
        HistoryEntry(
            course_name=record.course_name,
            date=entry.date,
            time=entry.time,
            status=entry.status,
            created_at=entry.created_at,
        )
        for record in records
        for entry in (AttendanceEntry.from_record(record),)
    ]
    entries.sort(key=lambda item: item.created_at, reverse=True)
    return entries
