"""
Pytest fixtures for quota-watch tests.

Test imports use the src/quota_watch/ package (pythonpath configured in
pyproject.toml). Every fixture that touches disk works under tmp_path.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from quota_watch.models import UsageLimit, UsageSnapshot

# ═══════════════════════════════════════════════════════════════════════════════
# Path Constants
# ═══════════════════════════════════════════════════════════════════════════════

PROJECT_ROOT = Path(__file__).parent.parent
SRC_DIR = PROJECT_ROOT / "src"

# Load fixtures data
FIXTURES_DIR = Path(__file__).parent / "fixtures"
with open(FIXTURES_DIR / "api_responses.json") as f:
    FIXTURES = json.load(f)


# ═══════════════════════════════════════════════════════════════════════════════
# Test Doubles
# ═══════════════════════════════════════════════════════════════════════════════


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeSettings:
    """In-memory settings store."""

    def __init__(self, **values):
        self.values = {
            "warning_threshold": 65,
            "refresh_interval": 300,
            "show_notifications": True,
            "alert_on_reset": True,
        }
        self.values.update(values)

    def read(self, key):
        return self.values[key]


class RecordingDispatcher:
    """Notification dispatcher that records instead of delivering."""

    def __init__(self):
        self.sent = []
        self.scheduled = {}
        self.cancel_calls = 0
        self.schedule_result = True

    def send_now(self, identifier, title, body):
        self.sent.append((identifier, title, body))
        return True

    def schedule_at(self, identifier, when, title, body):
        if self.schedule_result:
            self.scheduled[identifier] = (when, title, body)
        return self.schedule_result

    def cancel_all(self):
        self.cancel_calls += 1
        self.scheduled.clear()

    @property
    def sent_ids(self):
        return [identifier for identifier, _, _ in self.sent]


class FakeTokenProvider:
    def __init__(self, token="sk-ant-REDACTED"):
        self.token = token

    def get_token(self):
        return self.token


# ═══════════════════════════════════════════════════════════════════════════════
# API Response Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def usage_normal():
    """Normal usage response (34.5% session, 12.3% weekly, 8% sonnet)."""
    return json.loads(json.dumps(FIXTURES["usage_normal"]))


@pytest.fixture
def usage_high():
    """High usage response (85.2% session, 67.8% weekly)."""
    return json.loads(json.dumps(FIXTURES["usage_high"]))


@pytest.fixture
def usage_critical():
    """Critical usage response (100% session, 95.1% weekly)."""
    return json.loads(json.dumps(FIXTURES["usage_critical"]))


@pytest.fixture
def usage_empty():
    """Empty usage response (0% usage, no reset times)."""
    return json.loads(json.dumps(FIXTURES["usage_empty"]))


@pytest.fixture
def usage_with_extras():
    """Response with only two slots plus an unknown extra_usage key."""
    return json.loads(json.dumps(FIXTURES["usage_with_extras"]))


# ═══════════════════════════════════════════════════════════════════════════════
# Credentials and Config Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def credentials_valid():
    """Valid credentials with access token."""
    return json.loads(json.dumps(FIXTURES["credentials_valid"]))


@pytest.fixture
def credentials_missing_token():
    """Credentials without access token."""
    return json.loads(json.dumps(FIXTURES["credentials_missing_token"]))


@pytest.fixture
def config_default():
    """Current-version configuration with default values."""
    return dict(FIXTURES["config_default"])


@pytest.fixture
def config_v1():
    """Version 1 configuration (no alert_on_reset)."""
    return dict(FIXTURES["config_v1"])


@pytest.fixture
def tmp_config_file(tmp_path, config_default):
    """Create temporary config file."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(config_default))
    return config_file


@pytest.fixture
def tmp_credentials_file(tmp_path, credentials_valid):
    """Create temporary credentials file."""
    creds_file = tmp_path / ".credentials.json"
    creds_file.write_text(json.dumps(credentials_valid))
    return creds_file


# ═══════════════════════════════════════════════════════════════════════════════
# Time Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def fixed_now():
    """Fixed datetime for reproducible tests."""
    return datetime(2024, 12, 19, 14, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    """Manually advanced clock starting at fixed_now."""
    return FakeClock(fixed_now)


# ═══════════════════════════════════════════════════════════════════════════════
# Collaborator Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def settings():
    """In-memory settings with default values."""
    return FakeSettings()


@pytest.fixture
def dispatcher():
    """Recording notification dispatcher."""
    return RecordingDispatcher()


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def make_snapshot():
    """Factory for snapshots from session/weekly/sonnet percentages."""

    def factory(session=None, weekly=None, sonnet=None, resets_at=None):
        def limit(value):
            return UsageLimit(float(value), resets_at) if value is not None else None

        return UsageSnapshot(
            five_hour=limit(session),
            seven_day=limit(weekly),
            seven_day_sonnet=limit(sonnet),
        )

    return factory


# ═══════════════════════════════════════════════════════════════════════════════
# Mock Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def make_response():
    """Factory for mock urlopen responses usable as context managers."""

    def factory(payload, status=200):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        response = MagicMock()
        response.status = status
        response.read.return_value = body
        response.__enter__ = MagicMock(return_value=response)
        response.__exit__ = MagicMock(return_value=False)
        return response

    return factory


@pytest.fixture
def mock_urlopen():
    """Mock urlopen for API testing."""
    with patch("quota_watch.api.client.urlopen") as mock:
        yield mock
