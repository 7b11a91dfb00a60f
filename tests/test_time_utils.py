from datetime import datetime, timedelta, timezone

import pytest

from attendance_client.utils import coerce_datetime, format_date, format_relative_time, format_time


def test_format_relative_time_minutes():
    now = datetime(2025, 10, 2, 12, 0, 0)
    timestamp = now - timedelta(minutes=30)
    assert format_relative_time(timestamp, now=now) == "30 minutes ago"


def test_format_relative_time_just_now():
    now = datetime(2025, 10, 2, 12, 0, 0)
    timestamp = now - timedelta(seconds=10)
    assert format_relative_time(timestamp, now=now) == "just now"


def test_coerce_datetime_reads_zulu_timestamps():
    assert coerce_datetime("2025-03-10T09:15:00.123Z") == datetime(2025, 3, 10, 9, 15, 0, 123000, tzinfo=timezone.utc)


def test_coerce_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        coerce_datetime("next tuesday")


def test_dates_and_times_are_shown_in_local_time(local_timezone):
    local_timezone("Europe/Helsinki")
    moment = coerce_datetime("2025-03-09T22:30:00Z")

    assert format_date(moment) == "2025-03-10"
    assert format_time(moment) == "00:30:00"
