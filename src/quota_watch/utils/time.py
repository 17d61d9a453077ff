"""Time formatting and parsing utilities.

Provides functions for handling ISO timestamps and formatting
durations, reset countdowns and "last updated" displays.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

# Fractional seconds of any length, normalized to microseconds before parsing
_FRACTION_PATTERN = re.compile(r"\.(\d+)")


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat(dt: datetime) -> str:
    """Format a datetime as an ISO 8601 UTC string with a trailing Z."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso8601(iso_str: str) -> datetime:
    """Parse an ISO 8601 timestamp string to datetime.

    Accepts a trailing Z or an explicit offset, with or without fractional
    seconds. Naive timestamps are assumed to be UTC.

    Args:
        iso_str: ISO 8601 timestamp string (e.g., "2024-01-15T10:30:00Z").

    Returns:
        Timezone-aware datetime object.

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    if not isinstance(iso_str, str) or not iso_str:
        raise ValueError(f"Invalid timestamp: {iso_str!r}")
    iso_str = iso_str.strip().replace("Z", "+00:00").replace("z", "+00:00")
    iso_str = _FRACTION_PATTERN.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), iso_str, count=1)
    dt = datetime.fromisoformat(iso_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_time_remaining(reset_at: datetime | None, now: datetime | None = None) -> str:
    """Format the time left until a quota window resets.

    Args:
        reset_at: Reset time, or None if unknown.
        now: Reference time (defaults to current time).

    Returns:
        String like "Resets in 2 hr 30 min" or "Resets Mon 9:30 AM".
    """
    if reset_at is None:
        return "Unknown"
    now = now or utcnow()
    interval = (reset_at - now).total_seconds()
    if interval <= 0:
        return "Resetting..."

    hours = int(interval) // 3600
    minutes = (int(interval) % 3600) // 60

    if hours >= 24:
        local_dt = reset_at.astimezone()
        formatted = local_dt.strftime("%a %I:%M %p")
        # Remove leading zero from hour (e.g., "Mon 09:30 AM" -> "Mon 9:30 AM")
        parts = formatted.split(" ")
        if len(parts) >= 2 and parts[1].startswith("0"):
            parts[1] = parts[1][1:]
        return "Resets " + " ".join(parts)
    if hours > 0:
        return f"Resets in {hours} hr {minutes} min"
    if minutes > 0:
        return f"Resets in {minutes} min"
    return "Resets in <1 min"


def format_relative_time(then: datetime | None, now: datetime | None = None) -> str:
    """Format how long ago something happened.

    Args:
        then: Past time, or None if it never happened.
        now: Reference time (defaults to current time).

    Returns:
        String like "Just now", "5 min ago", "2 hr ago" or "3 days ago".
    """
    if then is None:
        return "Never"
    now = now or utcnow()
    interval = (now - then).total_seconds()

    minutes = int(interval) // 60
    if interval < 0 or minutes < 1:
        return "Just now"
    if minutes < 60:
        return "1 min ago" if minutes == 1 else f"{minutes} min ago"

    hours = minutes // 60
    if hours < 24:
        return "1 hr ago" if hours == 1 else f"{hours} hr ago"

    days = hours // 24
    return "1 day ago" if days == 1 else f"{days} days ago"


__all__ = [
    "utcnow",
    "isoformat",
    "parse_iso8601",
    "format_time_remaining",
    "format_relative_time",
]
