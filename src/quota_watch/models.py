"""Usage snapshot data model.

Immutable value types for one fetched set of quota limits, the cached copy
on disk, trend points and alert events.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from quota_watch.utils.time import parse_iso8601

# Wire keys of the usage endpoint, in display order
SNAPSHOT_KEYS = (
    "five_hour",
    "seven_day",
    "seven_day_oauth_apps",
    "seven_day_opus",
    "seven_day_sonnet",
)

# Categories that are trended and alerted on: category -> snapshot slot
CATEGORY_SLOTS = {
    "session": "five_hour",
    "weekly": "seven_day",
    "sonnet": "seven_day_sonnet",
}

CATEGORY_LABELS = {
    "session": "Current Session",
    "weekly": "Weekly (All Models)",
    "sonnet": "Sonnet Only",
}

TREND_CATEGORIES = tuple(CATEGORY_SLOTS)


@dataclass(frozen=True)
class UsageLimit:
    """Utilization of one quota window.

    Attributes:
        utilization: Percentage consumed. Never clamped; may exceed 100.
        resets_at: ISO 8601 reset time as received, or None.
    """

    utilization: float
    resets_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageLimit:
        """Build a limit from its wire representation.

        Raises:
            ValueError: If utilization is missing or not a finite number.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected object, got {type(data).__name__}")
        utilization = data.get("utilization")
        if isinstance(utilization, bool) or not isinstance(utilization, (int, float)):
            raise ValueError(f"invalid utilization: {utilization!r}")
        if not math.isfinite(utilization):
            raise ValueError(f"invalid utilization: {utilization!r}")
        resets_at = data.get("resets_at")
        if resets_at is not None and not isinstance(resets_at, str):
            raise ValueError(f"invalid resets_at: {resets_at!r}")
        return cls(utilization=float(utilization), resets_at=resets_at)

    def to_dict(self) -> dict[str, Any]:
        return {"utilization": self.utilization, "resets_at": self.resets_at}

    @property
    def resets_at_datetime(self) -> datetime | None:
        """Parsed reset time, or None if absent or unparseable."""
        if not self.resets_at:
            return None
        try:
            return parse_iso8601(self.resets_at)
        except ValueError:
            return None

    @property
    def display_percent(self) -> int:
        """Utilization clamped to 0-100 for display."""
        return int(min(max(self.utilization, 0.0), 100.0))


@dataclass(frozen=True)
class UsageSnapshot:
    """One fetched set of per-category usage limits."""

    five_hour: UsageLimit | None = None
    seven_day: UsageLimit | None = None
    seven_day_oauth_apps: UsageLimit | None = None
    seven_day_opus: UsageLimit | None = None
    seven_day_sonnet: UsageLimit | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageSnapshot:
        """Build a snapshot from the usage endpoint's JSON object.

        Unknown keys (e.g. extra_usage) are ignored; null or missing slots
        become None.

        Raises:
            ValueError: If the payload is not an object or a slot is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected object, got {type(data).__name__}")
        slots = {}
        for key in SNAPSHOT_KEYS:
            value = data.get(key)
            try:
                slots[key] = UsageLimit.from_dict(value) if value is not None else None
            except ValueError as e:
                raise ValueError(f"{key}: {e}") from e
        return cls(**slots)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key in SNAPSHOT_KEYS:
            limit = getattr(self, key)
            result[key] = limit.to_dict() if limit is not None else None
        return result

    def limit_for(self, category: str) -> UsageLimit | None:
        """Get the limit for a tracked category (session, weekly, sonnet)."""
        slot = CATEGORY_SLOTS.get(category)
        return getattr(self, slot) if slot else None

    def categories(self) -> list[str]:
        """Tracked categories present in this snapshot."""
        return [c for c in TREND_CATEGORIES if self.limit_for(c) is not None]


@dataclass(frozen=True)
class CachedSnapshot:
    """The last successful snapshot and when it was captured."""

    snapshot: UsageSnapshot
    captured_at: datetime


@dataclass(frozen=True)
class TrendPoint:
    timestamp: datetime
    utilization: float
    category: str


@dataclass(frozen=True)
class AlertEvent:
    """A notification the alert engine decided to raise.

    Attributes:
        kind: One of "warning", "limit_reached", "reset", "token_error".
        identifier: Dispatcher identifier used for deduplication.
        title: Notification title.
        body: Notification body.
        categories: Categories the event concerns.
    """

    kind: str
    identifier: str
    title: str
    body: str
    categories: tuple[str, ...] = field(default_factory=tuple)


__all__ = [
    "SNAPSHOT_KEYS",
    "CATEGORY_SLOTS",
    "CATEGORY_LABELS",
    "TREND_CATEGORIES",
    "UsageLimit",
    "UsageSnapshot",
    "CachedSnapshot",
    "TrendPoint",
    "AlertEvent",
]
