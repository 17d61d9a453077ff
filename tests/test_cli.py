"""
Tests for CLI argument parsing and command execution.

Tests cover:
- --help / --version output
- Token and cache maintenance flags
- --once / --json exit codes
- Override validation
"""

import io
import json
import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch
from urllib.error import HTTPError

import pytest

from quota_watch.api.client import API_URL
from quota_watch.cli import build_controller, create_parser, main, run_once, run_watch
from quota_watch.errors import ExitCode

SRC_DIR = Path(__file__).parent.parent / "src"

VALID_TOKEN = "sk-ant-REDACTED"


@pytest.fixture(autouse=True)
def keep_colors():
    with patch("quota_watch.cli.disable_colors"):
        yield


@pytest.fixture
def controller(tmp_path, token_provider, dispatcher):
    c = build_controller(tmp_path, token_provider=token_provider, dispatcher=dispatcher)
    yield c
    c.stop_polling(timeout=5)


def run_cli(*args):
    env = {**os.environ, "PYTHONPATH": str(SRC_DIR)}
    return subprocess.run(
        [sys.executable, "-m", "quota_watch", *args],
        capture_output=True,
        text=True,
        env=env,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Help and Parsing
# ═══════════════════════════════════════════════════════════════════════════════


class TestCLIHelp:
    """Tests for --help argument."""

    def test_help_exits_zero(self):
        result = run_cli("--help")
        assert result.returncode == 0
        assert "quota-watch" in result.stdout
        assert "Examples:" in result.stdout

    def test_help_shows_all_arguments(self):
        result = run_cli("--help")
        for arg in ["--once", "--json", "--interval", "--threshold", "--set-token", "--data-dir"]:
            assert arg in result.stdout, f"Missing argument {arg} in help output"


class TestCLIArgumentParsing:
    """Tests for argument parsing without execution."""

    def test_defaults(self):
        args = create_parser().parse_args([])
        assert not args.once
        assert not args.json
        assert args.interval is None
        assert args.threshold is None
        assert args.data_dir is None

    def test_short_flags(self):
        args = create_parser().parse_args(["-1", "-j", "-i", "60", "-t", "80", "-v"])
        assert args.once
        assert args.json
        assert args.interval == 60
        assert args.threshold == 80
        assert args.verbose

    def test_data_dir_is_path(self):
        args = create_parser().parse_args(["--data-dir", "/tmp/qw"])
        assert args.data_dir == Path("/tmp/qw")

    def test_interval_must_be_int(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--interval", "soon"])


class TestVersion:
    def test_version(self, capsys):
        main(["--version"])
        out = capsys.readouterr().out
        assert out.startswith("quota-watch 1.0.0 (Python ")


# ═══════════════════════════════════════════════════════════════════════════════
# Maintenance Commands
# ═══════════════════════════════════════════════════════════════════════════════


class TestMaintenance:
    def test_set_token(self, tmp_path, capsys):
        main(["--data-dir", str(tmp_path), "--set-token", VALID_TOKEN])

        assert capsys.readouterr().out.strip() == "Token saved."
        assert (tmp_path / "token").read_text() == VALID_TOKEN

    def test_set_invalid_token(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--data-dir", str(tmp_path), "--set-token", "bad"])

        assert exc_info.value.code == ExitCode.USAGE_ERROR
        assert "Invalid token format" in capsys.readouterr().err
        assert not (tmp_path / "token").exists()

    def test_clear_token(self, tmp_path, capsys):
        (tmp_path / "token").write_text(VALID_TOKEN)

        main(["--data-dir", str(tmp_path), "--clear-token"])

        assert not (tmp_path / "token").exists()
        assert "removed" in capsys.readouterr().out

    def test_clear_cache(self, tmp_path, capsys):
        (tmp_path / "usage_cache.json").write_text("{}")
        (tmp_path / "usage_history.json").write_text("[]")

        main(["--data-dir", str(tmp_path), "--clear-cache"])

        assert not (tmp_path / "usage_cache.json").exists()
        assert not (tmp_path / "usage_history.json").exists()
        assert capsys.readouterr().out.strip() == "Cache and history cleared."


class TestOverrideValidation:
    @pytest.mark.parametrize(
        "args",
        [["--interval", "10"], ["--threshold", "0"], ["--threshold", "101"]],
    )
    def test_rejected(self, tmp_path, args):
        with pytest.raises(SystemExit) as exc_info:
            main(["--data-dir", str(tmp_path), "--once", *args])
        assert exc_info.value.code == 2

    def test_overrides_passed_to_controller(self, tmp_path, controller):
        with patch("quota_watch.cli.build_controller", return_value=controller) as build:
            with patch("quota_watch.cli.run_once", return_value=ExitCode.SUCCESS):
                with pytest.raises(SystemExit) as exc_info:
                    main(
                        [
                            "--data-dir",
                            str(tmp_path),
                            "--once",
                            "--interval",
                            "60",
                            "--threshold",
                            "80",
                        ]
                    )

        assert exc_info.value.code == 0
        build.assert_called_once_with(
            tmp_path, overrides={"refresh_interval": 60, "warning_threshold": 80}
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Single Refresh
# ═══════════════════════════════════════════════════════════════════════════════


class TestRunOnce:
    """Tests for run_once()."""

    def test_success_summary(self, controller, mock_urlopen, make_response, usage_normal, capsys):
        mock_urlopen.return_value = make_response(usage_normal)

        assert run_once(controller) == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert "Current Session" in out
        assert "34%" in out
        assert (controller.cache.path).exists()

    def test_success_json(self, controller, mock_urlopen, make_response, usage_normal, capsys):
        mock_urlopen.return_value = make_response(usage_normal)

        assert run_once(controller, as_json=True) == ExitCode.SUCCESS

        document = json.loads(capsys.readouterr().out)
        assert document["usage"]["five_hour"]["utilization"] == 34.5
        assert document["offline"] is False
        assert document["error"] is None

    def test_auth_failure_exit_code(self, controller, mock_urlopen, dispatcher, capsys):
        mock_urlopen.side_effect = HTTPError(
            API_URL, 401, "Unauthorized", hdrs=None, fp=io.BytesIO(b"")
        )

        assert run_once(controller) == ExitCode.AUTH_EXPIRED

        assert "Authentication expired" in capsys.readouterr().err
        assert dispatcher.sent_ids == ["token-error"]

    def test_failure_json_has_error(self, controller, mock_urlopen, capsys):
        mock_urlopen.side_effect = HTTPError(
            API_URL, 403, "Forbidden", hdrs=None, fp=io.BytesIO(b"")
        )

        assert run_once(controller, as_json=True) == ExitCode.AUTH_PERMISSION

        captured = capsys.readouterr()
        assert json.loads(captured.out)["error"]["type"] == "AccessDeniedError"
        assert captured.err == ""


class TestRunWatch:
    def test_interrupt_stops_polling(self, controller, mock_urlopen, make_response, usage_normal, dispatcher):
        mock_urlopen.return_value = make_response(usage_normal)

        with patch("quota_watch.cli.time.sleep", side_effect=KeyboardInterrupt):
            assert run_watch(controller, interval=3600) == ExitCode.SUCCESS

        assert not controller.is_polling
        assert dispatcher.cancel_calls == 1
