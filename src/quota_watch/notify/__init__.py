"""Alerting and desktop notifications for quota-watch."""

from quota_watch.notify.alerts import AlertEngine, is_reset
from quota_watch.notify.notifier import DesktopNotifier, NotificationDispatcher, send_notification

__all__ = [
    "AlertEngine",
    "is_reset",
    "DesktopNotifier",
    "NotificationDispatcher",
    "send_notification",
]
