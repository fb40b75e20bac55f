"""
Human readable rendering of epoch timestamps and durations.
"""
from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(
    timestamp: int,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
    timezone: str = "UTC",
) -> str:
    """
    Render an epoch timestamp in the given timezone.

    Examples:
        >>> format_timestamp(0)
        '1970-01-01 00:00:00'
        >>> format_timestamp(0, "%H:%M", "Europe/Moscow")
        '03:00'
    """
    moment = datetime.fromtimestamp(timestamp, tz=dt_timezone.utc)
    return moment.astimezone(ZoneInfo(timezone)).strftime(timestamp_format)


def format_duration(seconds: int) -> str:
    """
    Format a duration as ``<d>d<h>h<m>m``, dropping the day part when it is zero.

    Negative durations keep their sign in front of the magnitude.

    Examples:
        >>> format_duration(90061)
        '1d1h1m'
        >>> format_duration(3720)
        '1h2m'
        >>> format_duration(59)
        '0h0m'
        >>> format_duration(-3720)
        '-1h2m'
    """
    sign = "-" if seconds < 0 else ""
    days, rest = divmod(abs(seconds), 24 * 60 * 60)
    hours, rest = divmod(rest, 60 * 60)
    minutes = rest // 60

    if days > 0:
        return f"{sign}{days}d{hours}h{minutes}m"
    return f"{sign}{hours}h{minutes}m"
