"""Desktop notifications with cross-platform support.

Implements the notification dispatcher used by the alert engine:
immediate delivery through the platform's notification command and
in-process timers for notifications scheduled in the future.
"""

from __future__ import annotations

import logging
import platform
import subprocess
import threading
from datetime import datetime
from typing import Callable, Protocol

from quota_watch.utils.time import utcnow

log = logging.getLogger(__name__)

APP_NAME = "quota-watch"


class NotificationDispatcher(Protocol):
    """Delivers notifications. Identifiers deduplicate: a second request
    with the same identifier replaces the first."""

    def send_now(self, identifier: str, title: str, body: str) -> bool: ...

    def schedule_at(self, identifier: str, when: datetime, title: str, body: str) -> bool: ...

    def cancel_all(self) -> None: ...


def send_notification_linux(title: str, message: str, urgency: str = "normal") -> bool:
    """Send notification on Linux using notify-send."""
    try:
        subprocess.run(
            ["notify-send", "-u", urgency, "-a", APP_NAME, title, message],
            check=True,
            capture_output=True,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def send_notification_macos(title: str, message: str, urgency: str = "normal") -> bool:
    """Send notification on macOS using osascript."""
    title_escaped = title.replace("\\", "\\\\").replace('"', '\\"')
    message_escaped = message.replace("\\", "\\\\").replace('"', '\\"')

    script = (
        f'display notification "{message_escaped}" with title "{title_escaped}" '
        'sound name "default"'
    )
    try:
        subprocess.run(["osascript", "-e", script], check=True, capture_output=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def send_notification_windows(title: str, message: str, urgency: str = "normal") -> bool:
    """Send notification on Windows using a PowerShell toast."""
    title_escaped = title.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    message_escaped = message.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    script = f'''
    [Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType = WindowsRuntime] | Out-Null
    [Windows.Data.Xml.Dom.XmlDocument, Windows.Data.Xml.Dom.XmlDocument, ContentType = WindowsRuntime] | Out-Null

    $template = @"
    <toast>
        <visual>
            <binding template="ToastText02">
                <text id="1">{title_escaped}</text>
                <text id="2">{message_escaped}</text>
            </binding>
        </visual>
    </toast>
"@

    $xml = New-Object Windows.Data.Xml.Dom.XmlDocument
    $xml.LoadXml($template)
    $toast = [Windows.UI.Notifications.ToastNotification]::new($xml)
    [Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier("{APP_NAME}").Show($toast)
    '''
    try:
        subprocess.run(["powershell", "-Command", script], check=True, capture_output=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def send_notification(title: str, message: str, urgency: str = "normal") -> bool:
    """Send a desktop notification using the appropriate method for the platform.

    Args:
        title: Notification title.
        message: Notification body.
        urgency: Notification urgency (low, normal, critical).

    Returns:
        True if notification was sent successfully.
    """
    system = platform.system()
    if system == "Linux":
        return send_notification_linux(title, message, urgency)
    elif system == "Darwin":
        return send_notification_macos(title, message, urgency)
    elif system == "Windows":
        return send_notification_windows(title, message, urgency)
    return False


class DesktopNotifier:
    """Notification dispatcher for the local desktop.

    Scheduled notifications live in daemon timers, so they are lost when
    the process exits.

    Args:
        send: Delivery function (title, body, urgency) -> success.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        send: Callable[[str, str, str], bool] = send_notification,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._send = send
        self._clock = clock
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def send_now(self, identifier: str, title: str, body: str) -> bool:
        urgency = "critical" if identifier.startswith("limit-") else "normal"
        success = self._send(title, body, urgency)
        if success:
            log.info("Notification sent [%s]: %s", identifier, title)
        else:
            log.warning("Failed to send notification [%s] (notifier not available?)", identifier)
        return success

    def schedule_at(self, identifier: str, when: datetime, title: str, body: str) -> bool:
        delay = (when - self._clock()).total_seconds()
        if delay <= 0:
            return False

        def fire() -> None:
            with self._lock:
                self._timers.pop(identifier, None)
            self.send_now(identifier, title, body)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(identifier, None)
            if previous is not None:
                previous.cancel()
            self._timers[identifier] = timer
        timer.start()
        log.debug("Scheduled notification [%s] in %.0fs", identifier, delay)
        return True

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    @property
    def pending(self) -> set[str]:
        with self._lock:
            return set(self._timers)


__all__ = [
    "NotificationDispatcher",
    "send_notification",
    "DesktopNotifier",
]
