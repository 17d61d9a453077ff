"""Threshold and reset alerting.

The alert engine remembers the last utilization it saw per category so a
warning fires once per upward crossing, detects quota resets from sudden
drops, and keeps track of reset notifications scheduled for the future.

It is only ever called from the controller's serialized refresh flow, so
its state needs no locking.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Union

from quota_watch.config.settings import SettingsStore
from quota_watch.models import CATEGORY_LABELS, TREND_CATEGORIES, AlertEvent, UsageSnapshot
from quota_watch.notify.notifier import NotificationDispatcher
from quota_watch.utils.time import parse_iso8601, utcnow

log = logging.getLogger(__name__)

# A drop counts as a reset only if it is larger than this many points...
RESET_DROP = 10.0
# ...and the previous value was above this
RESET_MIN_PREVIOUS = 20.0

LIMIT_PERCENT = 100.0


def is_reset(previous: float, current: float) -> bool:
    """Check whether a utilization drop indicates a quota reset."""
    return current < previous - RESET_DROP and previous > RESET_MIN_PREVIOUS


class AlertEngine:
    """Stateful detector for threshold crossings and quota resets.

    Args:
        dispatcher: Delivers notifications.
        settings: Read for the show_notifications and alert_on_reset toggles.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        settings: SettingsStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.dispatcher = dispatcher
        self.settings = settings
        self.clock = clock
        self._last_seen: dict[str, float] = {}
        self._pending: set[str] = set()
        self._token_error_notified = False

    def last_seen(self, category: str) -> float:
        return self._last_seen.get(category, 0.0)

    @property
    def pending(self) -> frozenset[str]:
        """Identifiers of scheduled reset notifications."""
        return frozenset(self._pending)

    def _dispatch(self, event: AlertEvent, toggle: str) -> None:
        if not self.settings.read(toggle):
            log.debug("Alert %s suppressed (%s off)", event.identifier, toggle)
            return
        log.info("Alert: %s - %s", event.title, event.body)
        try:
            self.dispatcher.send_now(event.identifier, event.title, event.body)
        except Exception as e:  # Delivery is best effort
            log.warning("Failed to send notification %s: %s", event.identifier, e)

    # Threshold Notifications

    def check_thresholds(self, snapshot: UsageSnapshot, threshold: float) -> list[AlertEvent]:
        """Fire warnings for upward threshold crossings and limit hits.

        A warning fires when a category reaches the threshold having last
        been seen below it; a separate one-shot event fires on reaching
        100%. The last seen value is updated either way.

        Args:
            snapshot: Newly fetched snapshot.
            threshold: Warning threshold in percent.

        Returns:
            Events fired, in category order.
        """
        threshold = float(threshold)
        events = []

        for category in TREND_CATEGORIES:
            limit = snapshot.limit_for(category)
            if limit is None:
                continue
            current = limit.utilization
            last = self.last_seen(category)
            name = CATEGORY_LABELS[category]

            if current >= threshold and last < threshold:
                events.append(
                    AlertEvent(
                        kind="warning",
                        identifier=f"threshold-{category}",
                        title="Claude Usage Warning",
                        body=f"{name} usage at {int(current)}%",
                        categories=(category,),
                    )
                )

            if current >= LIMIT_PERCENT and last < LIMIT_PERCENT:
                events.append(
                    AlertEvent(
                        kind="limit_reached",
                        identifier=f"limit-{category}",
                        title="Claude Limit Reached",
                        body=f"{name} has reached 100%. Usage will reset soon.",
                        categories=(category,),
                    )
                )

            self._last_seen[category] = current

        for event in events:
            self._dispatch(event, "show_notifications")
        return events

    # Reset Notifications

    def check_for_reset(
        self,
        previous: Optional[UsageSnapshot],
        current: UsageSnapshot,
    ) -> Optional[AlertEvent]:
        """Detect quota resets between two consecutive snapshots.

        All categories that reset at once are bundled into one event. Each
        resetting category's last seen value is lowered to the new value so
        threshold detection re-arms.

        Args:
            previous: Snapshot shown before this refresh, if any.
            current: Newly fetched snapshot.

        Returns:
            The bundled reset event, or None.
        """
        if previous is None:
            return None

        reset_categories = []
        for category in TREND_CATEGORIES:
            prev_limit = previous.limit_for(category)
            curr_limit = current.limit_for(category)
            if prev_limit is None or curr_limit is None:
                continue
            if is_reset(prev_limit.utilization, curr_limit.utilization):
                reset_categories.append(category)
                self._last_seen[category] = curr_limit.utilization
                # The window that notification was scheduled for is over
                self._pending.discard(self.scheduled_identifier(category))

        if not reset_categories:
            return None

        category_list = ", ".join(CATEGORY_LABELS[c] for c in reset_categories)
        event = AlertEvent(
            kind="reset",
            identifier=f"reset-{self.clock().timestamp():.0f}",
            title="Claude Limits Reset",
            body=f"{category_list} has reset. You have fresh quota!",
            categories=tuple(reset_categories),
        )
        self._dispatch(event, "alert_on_reset")
        return event

    @staticmethod
    def scheduled_identifier(category: str) -> str:
        return f"scheduled-reset-{category}"

    def schedule_reset_notification(
        self,
        category: str,
        resets_at: Union[str, datetime, None],
    ) -> bool:
        """Schedule a notification for when a category's quota resets.

        Skipped when reset alerts are off, the time is unknown or already
        past, or a notification for the category is already pending.

        Args:
            category: Tracked category name.
            resets_at: Reset time, as ISO 8601 text or datetime.

        Returns:
            True if a new notification was registered.
        """
        if not self.settings.read("alert_on_reset") or resets_at is None:
            return False

        if isinstance(resets_at, str):
            try:
                reset_time = parse_iso8601(resets_at)
            except ValueError:
                log.debug("Unparseable reset time for %s: %r", category, resets_at)
                return False
        else:
            reset_time = resets_at

        if reset_time <= self.clock():
            return False

        identifier = self.scheduled_identifier(category)
        if identifier in self._pending:
            return False

        name = CATEGORY_LABELS.get(category, category)
        try:
            registered = self.dispatcher.schedule_at(
                identifier,
                reset_time,
                "Claude Limit Reset",
                f"{name} has reset. You have fresh quota!",
            )
        except Exception as e:  # Delivery is best effort
            log.warning("Failed to schedule notification %s: %s", identifier, e)
            return False

        if registered:
            self._pending.add(identifier)
            log.debug("Scheduled reset notification for %s at %s", category, reset_time)
        return bool(registered)

    def cancel_scheduled(self) -> None:
        """Cancel all scheduled notifications."""
        self.dispatcher.cancel_all()
        self._pending.clear()

    # Token Error Notification

    def notify_token_error(self) -> Optional[AlertEvent]:
        """Tell the user once that authentication needs attention.

        Repeats only after clear_token_error() (called on a successful fetch).
        """
        if self._token_error_notified:
            return None
        self._token_error_notified = True
        event = AlertEvent(
            kind="token_error",
            identifier="token-error",
            title="Claude Usage - Authentication Required",
            body="Please check your Claude Code login or enter a token manually.",
        )
        self._dispatch(event, "show_notifications")
        return event

    def clear_token_error(self) -> None:
        self._token_error_notified = False


__all__ = [
    "RESET_DROP",
    "RESET_MIN_PREVIOUS",
    "is_reset",
    "AlertEngine",
]
