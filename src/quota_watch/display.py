"""Terminal rendering of controller state.

Produces the one-line status summary printed by the CLI on every state
change, and the JSON document for --json.
"""

from __future__ import annotations

import os
import platform
import sys
from datetime import datetime
from typing import Callable, Optional

from quota_watch.controller import ControllerState
from quota_watch.errors import QuotaWatchError
from quota_watch.models import CATEGORY_LABELS, TREND_CATEGORIES
from quota_watch.utils.time import format_relative_time, format_time_remaining, isoformat


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"


def supports_color() -> bool:
    """Check if stdout is a terminal that renders ANSI colors."""
    if os.environ.get("QUOTA_WATCH_NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    if platform.system() == "Windows":
        return bool(os.environ.get("TERM") or os.environ.get("WT_SESSION"))
    return True


def disable_colors() -> None:
    for attr in dir(Colors):
        if not attr.startswith("_"):
            setattr(Colors, attr, "")


def get_usage_color(percentage: float, threshold: float) -> str:
    """Red at the limit, yellow from the warning threshold, green below."""
    if percentage >= 100:
        return Colors.RED
    if percentage >= threshold:
        return Colors.YELLOW
    return Colors.GREEN


def format_summary(
    state: ControllerState,
    threshold: float,
    predict: Optional[Callable[[str], Optional[str]]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render controller state as one status line.

    Args:
        state: Controller state to render.
        threshold: Warning threshold, used for coloring.
        predict: Returns the formatted prediction for a category, if any.
        now: Reference time for relative timestamps.

    Returns:
        Line like "Current Session 42% (Resets in 2 hr 5 min) | Weekly ...".
    """
    if state.current is None:
        if state.loading:
            return f"{Colors.DIM}Loading usage...{Colors.RESET}"
        if state.last_error is not None:
            return f"{Colors.RED}Error: {state.last_error.message}{Colors.RESET}"
        return f"{Colors.DIM}No usage data yet{Colors.RESET}"

    parts = []
    for category in TREND_CATEGORIES:
        limit = state.current.limit_for(category)
        if limit is None:
            continue
        color = get_usage_color(limit.utilization, threshold)
        part = f"{CATEGORY_LABELS[category]} {color}{limit.display_percent}%{Colors.RESET}"
        details = [format_time_remaining(limit.resets_at_datetime, now)]
        prediction = predict(category) if predict else None
        if prediction:
            details.append(prediction)
        part += f" {Colors.DIM}({', '.join(details)}){Colors.RESET}"
        parts.append(part)

    line = " | ".join(parts) if parts else "No limits reported"

    if state.offline:
        updated = format_relative_time(state.last_refresh, now)
        line += f" {Colors.YELLOW}[offline, updated {updated}]{Colors.RESET}"
    if state.last_error is not None:
        line += f" {Colors.RED}{state.last_error.message}{Colors.RESET}"
    return line


def state_to_dict(
    state: ControllerState,
    predict: Optional[Callable[[str], Optional[float]]] = None,
) -> dict:
    """Build the --json document for a controller state."""
    error = state.last_error
    return {
        "usage": state.current.to_dict() if state.current else None,
        "last_refresh": isoformat(state.last_refresh) if state.last_refresh else None,
        "offline": state.offline,
        "error": (
            {
                "type": type(error).__name__,
                "message": error.message,
                "retryable": bool(error.retryable),
            }
            if isinstance(error, QuotaWatchError)
            else None
        ),
        "predictions": {
            category: predict(category) for category in TREND_CATEGORIES
        }
        if predict
        else {},
    }


__all__ = [
    "Colors",
    "supports_color",
    "disable_colors",
    "get_usage_color",
    "format_summary",
    "state_to_dict",
]
