from __future__ import annotations

from datetime import datetime, timezone

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"


def coerce_datetime(value: datetime | str) -> datetime:
    """Parse backend timestamps (ISO 8601, optionally ``Z``-suffixed) into aware datetimes."""

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        candidate = value.strip().replace(" ", "T", 1)
        if candidate.endswith(("Z", "z")):
            candidate = candidate[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(candidate)
        except ValueError:
            for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f"):
                try:
                    moment = datetime.strptime(value.strip(), fmt)
                    break
                except ValueError:
                    continue
            else:
                raise ValueError(f"Unsupported datetime value: {value!r}") from None
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def format_date(value: datetime) -> str:
    """Calendar date in the local timezone."""

    return value.astimezone().strftime(DATE_FORMAT)


def format_time(value: datetime) -> str:
    return value.astimezone().strftime(TIME_FORMAT)


def format_relative_time(value: datetime | str, *, now: datetime | None = None) -> str:
    reference = coerce_datetime(now) if now is not None else datetime.now(timezone.utc)
    moment = coerce_datetime(value)

    delta = reference - moment
    total_seconds = int(delta.total_seconds())

    if total_seconds < 60:
        return "just now"

    minutes = total_seconds // 60
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"

    weeks = days // 7
    if weeks == 1:
        return "1 week ago"
    if weeks < 5:
        return f"{weeks} weeks ago"

    months = days // 30
    if months == 1:
        return "1 month ago"
    if months < 12:
        return f"{months} months ago"

    years = days // 365
    if years == 1:
        return "1 year ago"
    return f"{years} years ago"
