"""Command-line interface for quota-watch.

Wires the default collaborators (Claude Code credentials, JSON settings,
desktop notifications, on-disk cache and history) into a controller and
either refreshes once or polls until interrupted.
"""

import argparse
import json
import logging
import platform
import sys
import time
from pathlib import Path
from typing import Optional

from quota_watch._version import __version__
from quota_watch.api.cache import SnapshotCache
from quota_watch.api.client import UsageClient
from quota_watch.config.credentials import (
    ManualTokenProvider,
    TokenProvider,
    default_token_provider,
)
from quota_watch.config.settings import DATA_DIR, JsonSettingsStore
from quota_watch.controller import ControllerState, UsageController
from quota_watch.display import disable_colors, format_summary, state_to_dict, supports_color
from quota_watch.errors import ExitCode, format_error_for_user, get_exit_code
from quota_watch.history.storage import UsageHistory
from quota_watch.notify.alerts import AlertEngine
from quota_watch.notify.notifier import DesktopNotifier, NotificationDispatcher

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="quota-watch",
        description="Watch Claude subscription quota usage and alert before limits are hit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quota-watch                    Poll every refresh_interval seconds until Ctrl+C
  quota-watch --once             Refresh once and print a summary
  quota-watch --json             Refresh once and print JSON
  quota-watch --interval 60      Poll every minute
  quota-watch --set-token TOKEN  Store an OAuth token manually
""",
    )
    parser.add_argument(
        "--once", "-1", action="store_true", help="Refresh once, print a summary and exit"
    )
    parser.add_argument(
        "--json", "-j", action="store_true", help="Refresh once and print state as JSON"
    )
    parser.add_argument(
        "--interval",
        "-i",
        type=int,
        metavar="SECONDS",
        help="Seconds between refreshes (default: refresh_interval setting)",
    )
    parser.add_argument(
        "--threshold",
        "-t",
        type=int,
        metavar="PERCENT",
        help="Warning threshold in percent (default: warning_threshold setting)",
    )
    parser.add_argument("--set-token", metavar="TOKEN", help="Store an OAuth token manually")
    parser.add_argument(
        "--clear-token", action="store_true", help="Remove the manually stored token"
    )
    parser.add_argument(
        "--clear-cache", action="store_true", help="Remove cached usage and trend history"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        metavar="PATH",
        help=f"Data directory (default: {DATA_DIR})",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and system information"
    )
    return parser


def print_version() -> None:
    """Print version and system information."""
    print(
        f"quota-watch {__version__} "
        f"(Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}, "
        f"{platform.system()} {platform.machine()})"
    )


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


def build_controller(
    data_dir: Path = DATA_DIR,
    overrides: Optional[dict] = None,
    token_provider: Optional[TokenProvider] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> UsageController:
    """Assemble a controller from the default collaborators.

    Args:
        data_dir: Directory holding config, token, cache and history.
        overrides: Settings that take precedence over the config file.
        token_provider: Defaults to Claude Code credentials, then the
            manual token in data_dir.
        dispatcher: Defaults to desktop notifications.

    Returns:
        Controller seeded from the cache.
    """
    settings = JsonSettingsStore(data_dir / "config.json", overrides=overrides)
    if token_provider is None:
        token_provider = default_token_provider(data_dir / "token")
    alerts = AlertEngine(dispatcher or DesktopNotifier(), settings)
    return UsageController(
        client=UsageClient(token_provider),
        cache=SnapshotCache(data_dir / "usage_cache.json"),
        history=UsageHistory(data_dir / "usage_history.json"),
        alerts=alerts,
        settings=settings,
    )


def print_state(controller: UsageController, as_json: bool = False) -> None:
    state = controller.state()
    if as_json:
        print(json.dumps(state_to_dict(state, controller.predict), indent=2))
        return
    threshold = controller.settings.read("warning_threshold")
    print(format_summary(state, threshold, controller.format_prediction))


def run_once(controller: UsageController, as_json: bool = False, verbose: bool = False) -> int:
    """Refresh once and print the result.

    Returns:
        Exit code: 0 on success, the error's code otherwise.
    """
    controller.refresh_now()
    print_state(controller, as_json=as_json)
    error = controller.last_error
    if error is None:
        return ExitCode.SUCCESS
    if not as_json:
        print(format_error_for_user(error, verbose=verbose), file=sys.stderr)
    return get_exit_code(error)


def run_watch(controller: UsageController, interval: Optional[int] = None) -> int:
    """Poll until interrupted, printing a line whenever the summary changes."""
    last_line = None

    def on_change(state: ControllerState) -> None:
        nonlocal last_line
        if state.loading:
            return
        threshold = controller.settings.read("warning_threshold")
        line = format_summary(state, threshold, controller.format_prediction)
        if line != last_line:
            last_line = line
            print(f"[{time.strftime('%H:%M:%S')}] {line}", flush=True)

    unsubscribe = controller.subscribe(on_change)
    controller.start_polling(interval)
    try:
        while controller.is_polling:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print()
    finally:
        controller.stop_polling(timeout=5)
        controller.alerts.cancel_scheduled()
        unsubscribe()
    return ExitCode.SUCCESS


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the quota-watch CLI.

    Parses arguments, handles the token and cache maintenance flags, then
    either refreshes once or polls until Ctrl+C.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print_version()
        return

    configure_logging(args.verbose)
    if args.no_color or not supports_color():
        disable_colors()

    data_dir = args.data_dir or DATA_DIR
    log.debug("Using data directory %s", data_dir)

    if args.set_token is not None:
        try:
            ManualTokenProvider(data_dir / "token").save_token(args.set_token)
        except (ValueError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(ExitCode.USAGE_ERROR)
        print("Token saved.")
        return

    if args.clear_token:
        ManualTokenProvider(data_dir / "token").delete_token()
        print("Manual token removed.")
        return

    if args.clear_cache:
        SnapshotCache(data_dir / "usage_cache.json").clear()
        UsageHistory(data_dir / "usage_history.json").clear()
        print("Cache and history cleared.")
        return

    overrides = {}
    if args.interval is not None:
        if args.interval < 30:
            parser.error("--interval must be at least 30 seconds")
        overrides["refresh_interval"] = args.interval
    if args.threshold is not None:
        if not 1 <= args.threshold <= 100:
            parser.error("--threshold must be between 1 and 100")
        overrides["warning_threshold"] = args.threshold

    controller = build_controller(data_dir, overrides=overrides)

    if args.once or args.json:
        sys.exit(run_once(controller, as_json=args.json, verbose=args.verbose))

    sys.exit(run_watch(controller, args.interval))


if __name__ == "__main__":
    main()
