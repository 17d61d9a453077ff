"""Polling controller.

Owns the current and previous snapshots, runs the poll loop and sequences
each refresh: fetch with retry, reset and threshold alerts, state commit,
then cache and history persistence. The presentation layer reads state
through properties or a subscribed callback and drives the controller
through refresh_now(), start_polling() and stop_polling().
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from quota_watch.api.cache import SnapshotCache, Staleness, classify_age
from quota_watch.api.client import UsageClient
from quota_watch.api.retry import with_retry
from quota_watch.config.settings import SettingsStore
from quota_watch.errors import (
    AuthError,
    PersistenceError,
    QuotaWatchError,
    RetryAborted,
)
from quota_watch.history.storage import UsageHistory
from quota_watch.models import UsageSnapshot
from quota_watch.notify.alerts import AlertEngine
from quota_watch.utils.time import utcnow

log = logging.getLogger(__name__)

# How often a poll loop waiting for a running refresh checks its stop flag
LOCK_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class ControllerState:
    """Read-only view of the controller for the presentation layer."""

    current: Optional[UsageSnapshot]
    loading: bool
    offline: bool
    last_error: Optional[QuotaWatchError]
    last_refresh: Optional[datetime]


class UsageController:
    """Top-level orchestrator of the polling pipeline.

    Args:
        client: Usage endpoint client.
        cache: Snapshot cache; seeds the initial state.
        history: Trend store used for predictions.
        alerts: Alert engine.
        settings: Read for warning_threshold, refresh_interval and alert_on_reset.
        retry: Retry wrapper with the with_retry signature.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        client: UsageClient,
        cache: SnapshotCache,
        history: UsageHistory,
        alerts: AlertEngine,
        settings: SettingsStore,
        retry: Callable = with_retry,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.cache = cache
        self.history = history
        self.alerts = alerts
        self.settings = settings
        self.retry = retry
        self.clock = clock

        self.current: Optional[UsageSnapshot] = None
        self.previous: Optional[UsageSnapshot] = None
        self.loading = False
        self.offline = False
        self.last_error: Optional[QuotaWatchError] = None
        self.last_refresh: Optional[datetime] = None

        self._refresh_lock = threading.Lock()
        self._poll_thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._poll_lock = threading.Lock()
        self._subscribers: list[Callable[[ControllerState], None]] = []

        self._load_cached()

    def _load_cached(self) -> None:
        cached = self.cache.load()
        if cached is None:
            return
        self.current = cached.snapshot
        self.previous = cached.snapshot
        self.last_refresh = cached.captured_at
        age = (self.clock() - cached.captured_at).total_seconds()
        self.offline = classify_age(age) is not Staleness.FRESH
        log.debug("Loaded cached snapshot (%.0fs old, offline=%s)", age, self.offline)

    # Observable state

    def state(self) -> ControllerState:
        return ControllerState(
            current=self.current,
            loading=self.loading,
            offline=self.offline,
            last_error=self.last_error,
            last_refresh=self.last_refresh,
        )

    def subscribe(self, callback: Callable[[ControllerState], None]) -> Callable[[], None]:
        """Register a callback invoked with the new state after every change.

        Returns:
            Function that removes the callback.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        state = self.state()
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                log.exception("State subscriber failed")

    # Refresh

    def refresh(self, stop_event: Optional[threading.Event] = None, wait: bool = False) -> bool:
        """Fetch a new snapshot and run the update sequence.

        Returns immediately if a refresh is already running, unless wait
        is set.

        Args:
            stop_event: Cancellation flag of the poll loop. Retry waits end
                early when it is set.
            wait: Block until a running refresh finishes, then refresh.
                Gives up if stop_event is set meanwhile.

        Returns:
            False if skipped because another refresh was in flight.
        """
        if not self._acquire_refresh(stop_event, wait):
            log.debug("Refresh already in progress, skipping")
            return False
        try:
            self.loading = True
            self.last_error = None
            self._publish()

            sleep = (stop_event or threading.Event()).wait
            try:
                snapshot = self.retry(self.client.fetch_snapshot, sleep=sleep)
            except RetryAborted as e:
                log.info("Refresh cancelled while waiting to retry: %s", e.last_error)
            except QuotaWatchError as e:
                self._record_failure(e)
            else:
                self._apply(snapshot)
        finally:
            self.loading = False
            self._refresh_lock.release()
            self._publish()
        return True

    def _acquire_refresh(self, stop_event: Optional[threading.Event], wait: bool) -> bool:
        if not wait:
            return self._refresh_lock.acquire(blocking=False)
        while not self._refresh_lock.acquire(timeout=LOCK_POLL_INTERVAL):
            if stop_event is not None and stop_event.is_set():
                return False
        return True

    def refresh_now(self) -> bool:
        """Refresh immediately, outside the poll loop's schedule."""
        return self.refresh()

    def _record_failure(self, error: QuotaWatchError) -> None:
        log.warning("Refresh failed: %s", error.message)
        self.offline = True
        self.last_error = error
        if isinstance(error, AuthError):
            self.alerts.notify_token_error()

    def _apply(self, snapshot: UsageSnapshot) -> None:
        # Reset detection first (against what was shown), then thresholds
        # against the new values using the debounce state it may have lowered.
        self.alerts.check_for_reset(self.current, snapshot)
        self.alerts.check_thresholds(snapshot, self.settings.read("warning_threshold"))
        self.alerts.clear_token_error()

        self.previous = self.current
        self.current = snapshot
        self.last_refresh = self.clock()
        self.offline = False

        for category in snapshot.categories():
            limit = snapshot.limit_for(category)
            if limit.resets_at:
                self.alerts.schedule_reset_notification(category, limit.resets_at)

        try:
            self.cache.save(snapshot)
        except PersistenceError as e:
            log.warning("%s", e.message)
        try:
            self.history.add(snapshot)
        except PersistenceError as e:
            log.warning("%s", e.message)

        log.info(
            "Usage refreshed: %s",
            ", ".join(
                f"{c}={snapshot.limit_for(c).utilization:.1f}%" for c in snapshot.categories()
            )
            or "no limits reported",
        )

    # Polling

    @property
    def is_polling(self) -> bool:
        return self._poll_thread is not None and self._poll_thread.is_alive()

    def start_polling(self, interval: Optional[float] = None) -> None:
        """Start (or restart) the poll loop.

        Refreshes immediately, then every interval seconds until stopped.
        Calling again with a new interval restarts the loop.

        Args:
            interval: Seconds between refreshes. Defaults to the
                refresh_interval setting.
        """
        if interval is None:
            interval = float(self.settings.read("refresh_interval"))
        if interval <= 0:
            raise ValueError("interval must be positive")

        with self._poll_lock:
            self._cancel_loop()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._poll_loop,
                args=(interval, stop_event),
                name="quota-watch-poll",
                daemon=True,
            )
            self._stop_event = stop_event
            self._poll_thread = thread
            thread.start()
        log.info("Polling started (every %.0fs)", interval)

    def stop_polling(self, timeout: Optional[float] = None) -> None:
        """Stop the poll loop. Safe to call when not polling.

        A request already in flight is allowed to finish.

        Args:
            timeout: Seconds to wait for the loop thread to exit. None
                returns without waiting.
        """
        with self._poll_lock:
            thread = self._poll_thread
            was_running = self._cancel_loop()
        if thread is not None and timeout is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if was_running:
            log.info("Polling stopped")

    def _cancel_loop(self) -> bool:
        running = self._stop_event is not None and not self._stop_event.is_set()
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._poll_thread = None
        return running

    def _poll_loop(self, interval: float, stop_event: threading.Event) -> None:
        # A replaced loop may still be finishing its refresh; the first
        # cycle of the new loop waits for it instead of being skipped.
        first = True
        while not stop_event.is_set():
            try:
                self.refresh(stop_event, wait=first)
            except Exception:
                log.exception("Unexpected error during refresh")
            first = False
            if stop_event.is_set():
                break
            if stop_event.wait(interval):
                break

    # Predictions

    def predict(self, category: str) -> Optional[float]:
        """Seconds until the category reaches its limit, or None."""
        return self.history.predict(category)

    def format_prediction(self, category: str) -> Optional[str]:
        return self.history.format_prediction(category)

    def current_rate(self, category: str) -> Optional[float]:
        """Usage rate in percentage points per hour, or None."""
        return self.history.current_rate(category)

    def cache_age(self) -> Optional[float]:
        """Seconds since the displayed snapshot was captured."""
        if self.last_refresh is None:
            return None
        return (self.clock() - self.last_refresh).total_seconds()


__all__ = ["ControllerState", "UsageController"]
