"""Durable single-slot snapshot cache.

Keeps the last successfully fetched snapshot on disk so it can be shown
while offline. Each save atomically replaces the previous one.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from quota_watch.config.settings import DATA_DIR
from quota_watch.errors import CacheReadError, CacheWriteError
from quota_watch.models import CachedSnapshot, UsageSnapshot
from quota_watch.utils.files import write_json_atomic
from quota_watch.utils.time import isoformat, parse_iso8601, utcnow

log = logging.getLogger(__name__)

# Cache file location
CACHE_FILE = DATA_DIR / "usage_cache.json"

# Staleness thresholds in seconds
STALE_AFTER = 3600  # 1 hour
VERY_STALE_AFTER = 86400  # 24 hours


class Staleness(Enum):
    """Age-based quality of cached data."""

    FRESH = "fresh"
    STALE = "stale"
    VERY_STALE = "very_stale"


def classify_age(age: float | None) -> Staleness:
    """Classify a cache age in seconds.

    Args:
        age: Seconds since capture, or None if nothing is cached.

    Returns:
        FRESH below 1 hour, STALE from 1 hour, VERY_STALE from 24 hours
        or when there is no data.
    """
    if age is None or age >= VERY_STALE_AFTER:
        return Staleness.VERY_STALE
    if age >= STALE_AFTER:
        return Staleness.STALE
    return Staleness.FRESH


class SnapshotCache:
    """Single-slot store of the last successful snapshot.

    Args:
        path: Cache file location.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(self, path: Path = CACHE_FILE, clock: Callable[[], Any] = utcnow):
        self.path = path
        self.clock = clock

    def save(self, snapshot: UsageSnapshot | None) -> None:
        """Save a snapshot, replacing any previous one.

        Args:
            snapshot: Snapshot to store. None is ignored.

        Raises:
            CacheWriteError: If the file cannot be written.
        """
        if snapshot is None:
            return
        document = {
            "data": snapshot.to_dict(),
            "timestamp": isoformat(self.clock()),
        }
        try:
            write_json_atomic(self.path, document)
        except OSError as e:
            raise CacheWriteError(f"Failed to cache usage data: {e}", details=str(self.path)) from e

    def read(self) -> CachedSnapshot | None:
        """Read the cached snapshot.

        Returns:
            CachedSnapshot, or None if nothing is cached.

        Raises:
            CacheReadError: If the file exists but is unreadable or corrupt.
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
            return CachedSnapshot(
                snapshot=UsageSnapshot.from_dict(document["data"]),
                captured_at=parse_iso8601(document["timestamp"]),
            )
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CacheReadError(f"Failed to read usage cache: {e}", details=str(self.path)) from e

    def load(self) -> CachedSnapshot | None:
        """Load the cached snapshot, treating a corrupt cache as empty.

        Returns:
            CachedSnapshot, or None if missing or unreadable.
        """
        try:
            return self.read()
        except CacheReadError as e:
            log.debug("Ignoring unreadable cache: %s", e.message)
            return None

    def age(self) -> float | None:
        """Seconds since the cached snapshot was captured, or None."""
        cached = self.load()
        if cached is None:
            return None
        return (self.clock() - cached.captured_at).total_seconds()

    def clear(self) -> None:
        """Remove the cached snapshot."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("Failed to clear cache %s: %s", self.path, e)


__all__ = [
    "CACHE_FILE",
    "STALE_AFTER",
    "VERY_STALE_AFTER",
    "Staleness",
    "classify_age",
    "SnapshotCache",
]
