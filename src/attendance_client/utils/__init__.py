from .time import coerce_datetime, format_date, format_relative_time, format_time

__all__ = ["coerce_datetime", "format_date", "format_time", "format_relative_time"]
