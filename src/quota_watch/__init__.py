"""quota-watch - background monitor for Claude subscription quota usage.

Polls the OAuth usage endpoint, keeps a durable snapshot cache and a short
utilization history, predicts time-to-limit and raises deduplicated alerts
on threshold crossings and quota resets.
"""

from quota_watch._version import __version__
from quota_watch.controller import ControllerState, UsageController

__all__ = [
    "__version__",
    "ControllerState",
    "UsageController",
]
