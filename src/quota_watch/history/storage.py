"""Usage trend storage.

Keeps a bounded, pruned series of utilization points per category covering
the last 8 hours, persisted as a JSON array.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from quota_watch.config.settings import DATA_DIR
from quota_watch.errors import HistoryReadError, HistoryWriteError
from quota_watch.forecast.forecaster import (
    calculate_hourly_rate,
    format_time_to_limit,
    predict_time_to_limit,
)
from quota_watch.models import TREND_CATEGORIES, TrendPoint, UsageSnapshot
from quota_watch.utils.files import write_json_atomic
from quota_watch.utils.time import isoformat, parse_iso8601, utcnow

log = logging.getLogger(__name__)

# History file location
HISTORY_FILE = DATA_DIR / "usage_history.json"

# Rolling window kept on disk
HISTORY_WINDOW = timedelta(hours=8)

# Points per category (~8 hours at 5 minute intervals)
DEFAULT_MAX_POINTS = 100


def point_to_dict(point: TrendPoint) -> dict:
    return {
        "timestamp": isoformat(point.timestamp),
        "utilization": point.utilization,
        "category": point.category,
    }


def point_from_dict(entry: dict) -> TrendPoint:
    """Parse one history entry.

    Raises:
        ValueError: If the entry is malformed.
    """
    if not isinstance(entry, dict):
        raise ValueError("history entry is not an object")
    utilization = entry.get("utilization")
    category = entry.get("category")
    if (
        isinstance(utilization, bool)
        or not isinstance(utilization, (int, float))
        or not math.isfinite(utilization)
    ):
        raise ValueError(f"invalid utilization: {utilization!r}")
    if not isinstance(category, str):
        raise ValueError(f"invalid category: {category!r}")
    return TrendPoint(
        timestamp=parse_iso8601(entry.get("timestamp")),
        utilization=float(utilization),
        category=category,
    )


def read_points(path: Path) -> list[TrendPoint]:
    """Read trend points from file.

    Returns:
        List of points; empty if the file does not exist.

    Raises:
        HistoryReadError: If the file is unreadable or corrupt.
    """
    if not path.exists():
        return []
    try:
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)
        if not isinstance(entries, list):
            raise ValueError("history document is not an array")
        return [point_from_dict(entry) for entry in entries]
    except (OSError, json.JSONDecodeError, ValueError) as e:
        raise HistoryReadError(f"Failed to read usage history: {e}", details=str(path)) from e


def load_points(path: Path) -> list[TrendPoint]:
    """Load trend points from file.

    Returns:
        List of points, or empty list if the file is missing or corrupt.
    """
    try:
        return read_points(path)
    except HistoryReadError as e:
        log.debug("Ignoring unreadable history: %s", e.message)
        return []


class UsageHistory:
    """Bounded per-category utilization time series.

    Args:
        path: History file location.
        max_points: Capacity per category.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        path: Path = HISTORY_FILE,
        max_points: int = DEFAULT_MAX_POINTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.path = path
        self.max_points = max_points
        self.clock = clock
        self._points: list[TrendPoint] = load_points(path)
        self.prune()

    @property
    def capacity(self) -> int:
        return self.max_points * len(TREND_CATEGORIES)

    def __len__(self) -> int:
        return len(self._points)

    def points(self, category: Optional[str] = None) -> list[TrendPoint]:
        """Time-ordered copy of the series within the last 8 hours.

        Optionally restricted to one category.
        """
        cutoff = self.clock() - HISTORY_WINDOW
        selected = [
            p
            for p in self._points
            if p.timestamp > cutoff and (category is None or p.category == category)
        ]
        return sorted(selected, key=lambda p: p.timestamp)

    def add(self, snapshot: UsageSnapshot) -> None:
        """Record one point per tracked category present in the snapshot.

        Prunes and persists afterwards.

        Raises:
            HistoryWriteError: If the file cannot be written. The in-memory
                series is updated regardless.
        """
        now = self.clock()
        for category in snapshot.categories():
            self._points.append(
                TrendPoint(
                    timestamp=now,
                    utilization=snapshot.limit_for(category).utilization,
                    category=category,
                )
            )
        self.prune()
        self.save()

    def prune(self) -> None:
        """Drop points older than 8 hours, then cap total size.

        When over capacity, the most recent points are kept.
        """
        cutoff = self.clock() - HISTORY_WINDOW
        self._points = [p for p in self._points if p.timestamp > cutoff]

        if len(self._points) > self.capacity:
            newest_first = sorted(self._points, key=lambda p: p.timestamp, reverse=True)
            self._points = newest_first[: self.capacity]

    def save(self) -> None:
        """Persist the series.

        Raises:
            HistoryWriteError: If the file cannot be written.
        """
        try:
            write_json_atomic(self.path, [point_to_dict(p) for p in self.points()])
        except OSError as e:
            raise HistoryWriteError(
                f"Failed to save usage history: {e}", details=str(self.path)
            ) from e

    def predict(self, category: str) -> Optional[float]:
        """Seconds until the category reaches 100%, or None."""
        return predict_time_to_limit(self.points(category))

    def format_prediction(self, category: str) -> Optional[str]:
        return format_time_to_limit(self.predict(category))

    def current_rate(self, category: str) -> Optional[float]:
        """Utilization change in percentage points per hour, or None."""
        return calculate_hourly_rate(self.points(category))

    def clear(self) -> None:
        self._points = []
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("Failed to clear history %s: %s", self.path, e)


__all__ = [
    "HISTORY_FILE",
    "HISTORY_WINDOW",
    "DEFAULT_MAX_POINTS",
    "point_to_dict",
    "point_from_dict",
    "read_points",
    "load_points",
    "UsageHistory",
]
