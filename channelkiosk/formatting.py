"""Human-readable durations, counts and ages for the dashboard and API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

WARNING_SECONDS_LEFT = 60 * 60
DANGER_SECONDS_LEFT = 30 * 60

_AGE_UNITS = (
    ("year", 31536000),
    ("month", 2592000),
    ("week", 604800),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
)


def format_duration(seconds: int) -> str:
    """H:MM:SS, or M:SS under an hour."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_view_count(count: Optional[int]) -> str:
    """1234 -> 1.2K, 3000000 -> 3M. Empty when unknown."""
    if count is None:
        return ""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}".replace(".0", "") + "M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}".replace(".0", "") + "K"
    return str(count)


def time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    seconds = int((now - when).total_seconds())
    for unit, unit_seconds in _AGE_UNITS:
        n = seconds // unit_seconds
        if n >= 1:
            return f"{n} {unit}{'' if n == 1 else 's'} ago"
    return "just now"


def time_left_level(seconds_left: int) -> str:
    """CSS level for the time-left display: danger, warning or empty."""
    if seconds_left <= DANGER_SECONDS_LEFT:
        return "danger"
    if seconds_left <= WARNING_SECONDS_LEFT:
        return "warning"
    return ""
