"""
"Time ago" formatting.

format_time_ago() is a pure function of (timestamp, now). Views that show
relative times recompute it on the cadence returned by refresh_interval()
instead of running their own timers.
"""

from datetime import datetime, timezone
from typing import Optional, Union

from mintchat.core.constants import (
    DEFAULT_REFRESH_SECONDS,
    RECENT_REFRESH_SECONDS,
    RECENT_THRESHOLD_MINUTES,
)

Timestamp = Union[str, datetime]


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse an ISO-8601 string (Z suffix allowed) or pass a datetime through, as UTC-aware."""
    if isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _plural(amount: int, unit: str, plural_unit: Optional[str] = None) -> str:
    if amount == 1:
        return f"1 {unit} ago"
    return f"{amount} {plural_unit or unit + 's'} ago"


def format_time_ago(value: Timestamp, now: Optional[datetime] = None) -> str:
    """
    Human-readable age of a timestamp.

    "now" under 10s, then "42s ago", "1 min ago" / "5 min ago",
    "1 hour ago", "3 days ago", "2 weeks ago", "4 months ago", "1 year ago".
    Future timestamps (clock skew) read as "now".
    """
    moment = parse_timestamp(value)
    current = now or datetime.now(timezone.utc)
    seconds = int((current - moment).total_seconds())

    if seconds < 10:
        return "now"
    if seconds < 60:
        return f"{seconds}s ago"

    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "min", "min")

    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")

    days = hours // 24
    if days < 7:
        return _plural(days, "day")

    weeks = days // 7
    if weeks < 4:
        return _plural(weeks, "week")

    months = days // 30
    if months < 12:
        return _plural(max(months, 1), "month")

    return _plural(max(days // 365, 1), "year")


def refresh_interval(value: Timestamp, now: Optional[datetime] = None) -> int:
    """Seconds until a relative timestamp should be re-rendered."""
    moment = parse_timestamp(value)
    current = now or datetime.now(timezone.utc)
    age_minutes = (current - moment).total_seconds() / 60
    if age_minutes < RECENT_THRESHOLD_MINUTES:
        return RECENT_REFRESH_SECONDS
    return DEFAULT_REFRESH_SECONDS
