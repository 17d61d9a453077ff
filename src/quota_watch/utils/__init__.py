"""Utility functions.

Modules:
    time: Timestamp parsing and relative time formatting
    files: Atomic JSON writes
"""

from quota_watch.utils.files import write_json_atomic
from quota_watch.utils.time import (
    format_relative_time,
    format_time_remaining,
    isoformat,
    parse_iso8601,
    utcnow,
)

__all__ = [
    "write_json_atomic",
    "utcnow",
    "isoformat",
    "parse_iso8601",
    "format_time_remaining",
    "format_relative_time",
]
