"""Usage trend storage and retrieval.

Modules:
    storage: Bounded per-category trend series and its persistence
"""

from quota_watch.history.storage import (
    DEFAULT_MAX_POINTS,
    HISTORY_FILE,
    HISTORY_WINDOW,
    UsageHistory,
)

__all__ = [
    "HISTORY_FILE",
    "HISTORY_WINDOW",
    "DEFAULT_MAX_POINTS",
    "UsageHistory",
]
