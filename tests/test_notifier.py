"""
Tests for desktop notification delivery.
"""

import subprocess
import time
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from quota_watch.notify.notifier import DesktopNotifier, send_notification


@pytest.fixture
def send():
    return MagicMock(return_value=True)


@pytest.fixture
def notifier(send, clock):
    n = DesktopNotifier(send=send, clock=clock)
    yield n
    n.cancel_all()


class TestSendNotification:
    """Tests for platform dispatch."""

    @pytest.mark.parametrize(
        "system,target",
        [
            ("Linux", "send_notification_linux"),
            ("Darwin", "send_notification_macos"),
            ("Windows", "send_notification_windows"),
        ],
    )
    def test_dispatches_by_platform(self, system, target):
        with patch("quota_watch.notify.notifier.platform.system", return_value=system):
            with patch(f"quota_watch.notify.notifier.{target}", return_value=True) as sender:
                assert send_notification("Title", "Body", "critical")

        sender.assert_called_once_with("Title", "Body", "critical")

    def test_unknown_platform(self):
        with patch("quota_watch.notify.notifier.platform.system", return_value="Plan9"):
            assert not send_notification("Title", "Body")

    def test_linux_missing_notify_send(self):
        with patch("quota_watch.notify.notifier.platform.system", return_value="Linux"):
            with patch(
                "quota_watch.notify.notifier.subprocess.run", side_effect=FileNotFoundError()
            ):
                assert not send_notification("Title", "Body")

    def test_linux_command(self):
        with patch("quota_watch.notify.notifier.platform.system", return_value="Linux"):
            with patch("quota_watch.notify.notifier.subprocess.run") as run:
                assert send_notification("Title", "Body", "critical")

        args = run.call_args[0][0]
        assert args[0] == "notify-send"
        assert args[-2:] == ["Title", "Body"]
        assert "critical" in args

    def test_macos_escapes_quotes(self):
        with patch("quota_watch.notify.notifier.platform.system", return_value="Darwin"):
            with patch("quota_watch.notify.notifier.subprocess.run") as run:
                send_notification('Say "hi"', "Body")

        script = run.call_args[0][0][2]
        assert 'with title "Say \\"hi\\""' in script

    def test_command_failure(self):
        error = subprocess.CalledProcessError(1, "notify-send")
        with patch("quota_watch.notify.notifier.platform.system", return_value="Linux"):
            with patch("quota_watch.notify.notifier.subprocess.run", side_effect=error):
                assert not send_notification("Title", "Body")


class TestDesktopNotifier:
    """Tests for DesktopNotifier."""

    def test_send_now(self, notifier, send):
        assert notifier.send_now("threshold-session", "Title", "Body")
        send.assert_called_once_with("Title", "Body", "normal")

    def test_limit_is_critical(self, notifier, send):
        notifier.send_now("limit-session", "Title", "Body")
        send.assert_called_once_with("Title", "Body", "critical")

    def test_send_failure_reported(self, notifier, send):
        send.return_value = False
        assert not notifier.send_now("threshold-session", "Title", "Body")

    def test_schedule_past_time_rejected(self, notifier, fixed_now):
        assert not notifier.schedule_at("id", fixed_now - timedelta(seconds=1), "T", "B")
        assert notifier.pending == set()

    def test_schedule_registers_timer(self, notifier, fixed_now):
        assert notifier.schedule_at("scheduled-reset-session", fixed_now + timedelta(hours=1), "T", "B")
        assert notifier.pending == {"scheduled-reset-session"}

    def test_same_identifier_replaces(self, notifier, fixed_now):
        notifier.schedule_at("scheduled-reset-session", fixed_now + timedelta(hours=1), "T", "B")
        notifier.schedule_at("scheduled-reset-session", fixed_now + timedelta(hours=2), "T", "B")
        assert notifier.pending == {"scheduled-reset-session"}

    def test_cancel_all(self, notifier, fixed_now):
        notifier.schedule_at("a", fixed_now + timedelta(hours=1), "T", "B")
        notifier.schedule_at("b", fixed_now + timedelta(hours=1), "T", "B")

        notifier.cancel_all()

        assert notifier.pending == set()

    def test_scheduled_notification_fires(self, notifier, send, fixed_now):
        notifier.schedule_at("scheduled-reset-session", fixed_now + timedelta(seconds=0.05), "T", "B")

        deadline = time.monotonic() + 5
        while not send.called and time.monotonic() < deadline:
            time.sleep(0.01)

        assert notifier.pending == set()
        send.assert_called_once_with("T", "B", "normal")
