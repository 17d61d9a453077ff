"""Time-to-limit projections from recent utilization trend points."""

from __future__ import annotations

from typing import Optional, Sequence

from quota_watch.models import TrendPoint

# Number of most recent points used for a rate estimate
RECENT_POINTS = 10

# Minimum time span between first and last point, in seconds
MIN_ELAPSED_SECONDS = 60

# Predictions beyond this are reported as "more than 24 hours"
MAX_PREDICTION_SECONDS = 24 * 60 * 60


def _recent_window(points: Sequence[TrendPoint]) -> Optional[tuple[TrendPoint, TrendPoint]]:
    """First and last of the most recent points, if there are at least two."""
    if len(points) < 2:
        return None
    ordered = sorted(points, key=lambda p: p.timestamp)
    recent = ordered[-RECENT_POINTS:]
    return recent[0], recent[-1]


def predict_time_to_limit(points: Sequence[TrendPoint]) -> Optional[float]:
    """Project seconds until utilization reaches 100% at the current rate.

    Uses a linear rate between the first and last of the 10 most recent
    points of a single category.

    Args:
        points: Trend points of one category, in any order.

    Returns:
        Seconds until the limit, or None if the trend is too short
        (60 seconds or less), flat or falling, or already at the limit.
    """
    window = _recent_window(points)
    if window is None:
        return None
    first, last = window

    time_delta = (last.timestamp - first.timestamp).total_seconds()
    usage_delta = last.utilization - first.utilization
    if time_delta <= MIN_ELAPSED_SECONDS or usage_delta <= 0:
        return None

    rate_per_second = usage_delta / time_delta
    remaining = 100.0 - last.utilization
    if remaining <= 0:
        return None

    return remaining / rate_per_second


def calculate_hourly_rate(points: Sequence[TrendPoint]) -> Optional[float]:
    """Calculate usage rate in percentage points per hour.

    Args:
        points: Trend points of one category, in any order.

    Returns:
        Rate per hour (may be negative or zero), or None if fewer than two
        points or they span 60 seconds or less.
    """
    window = _recent_window(points)
    if window is None:
        return None
    first, last = window

    time_delta = (last.timestamp - first.timestamp).total_seconds()
    if time_delta <= MIN_ELAPSED_SECONDS:
        return None

    usage_delta = last.utilization - first.utilization
    return usage_delta / time_delta * 3600


def format_time_to_limit(seconds: Optional[float]) -> Optional[str]:
    """Format a time-to-limit prediction for display.

    Args:
        seconds: Prediction from predict_time_to_limit.

    Returns:
        "More than 24 hours", "Limit in H hr M min", "Limit in M min",
        "Limit imminent", or None when there is no prediction.
    """
    if seconds is None:
        return None
    if seconds > MAX_PREDICTION_SECONDS:
        return "More than 24 hours"

    hours = int(seconds) // 3600
    minutes = (int(seconds) % 3600) // 60

    if hours > 0:
        return f"Limit in {hours} hr {minutes} min"
    if minutes > 0:
        return f"Limit in {minutes} min"
    return "Limit imminent"


__all__ = [
    "RECENT_POINTS",
    "MIN_ELAPSED_SECONDS",
    "MAX_PREDICTION_SECONDS",
    "predict_time_to_limit",
    "calculate_hourly_rate",
    "format_time_to_limit",
]
