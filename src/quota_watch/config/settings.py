"""Configuration management for quota-watch.

Provides the settings store the controller and alert engine read their
threshold, polling interval and notification toggles from, backed by a
validated and versioned JSON file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol, Tuple, Union

log = logging.getLogger(__name__)

# Application-private data directory (override with QUOTA_WATCH_HOME)
DATA_DIR = Path(os.environ.get("QUOTA_WATCH_HOME") or Path.home() / ".claude" / "quota-watch")

# File paths
CONFIG_FILE = DATA_DIR / "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    "warning_threshold": 65,
    "refresh_interval": 300,  # 5 minutes
    "show_notifications": True,
    "alert_on_reset": True,
}

# Environment variable overrides: env var -> (config key, converter)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "QUOTA_WATCH_THRESHOLD": ("warning_threshold", int),
    "QUOTA_WATCH_INTERVAL": ("refresh_interval", int),
}

# Config version for migration tracking
# Increment this when adding new config fields or changing schema
CONFIG_VERSION = 2

# Migration history:
# v1: warning_threshold, refresh_interval, show_notifications
# v2: Added alert_on_reset

# Config schema for validation
# Format: key -> (expected_types, required, validator_func or None)
# validator_func takes value and returns (is_valid, error_message)
ValidatorFunc = Callable[[Union[str, int, float, bool, None]], Tuple[bool, str]]

CONFIG_SCHEMA: dict[str, tuple[tuple, bool, Optional[ValidatorFunc]]] = {
    "warning_threshold": (
        (int, float),
        False,
        lambda v: (True, "") if 1 <= v <= 100 else (False, "must be between 1 and 100"),
    ),
    "refresh_interval": (
        (int, float),
        False,
        lambda v: (True, "") if v >= 30 else (False, "must be at least 30 seconds"),
    ),
    "show_notifications": ((bool,), False, None),
    "alert_on_reset": ((bool,), False, None),
    "_config_version": ((int,), False, None),  # Internal version tracking for migrations
}


class SettingsStore(Protocol):
    """Read-only access to user preferences."""

    def read(self, key: str) -> Any: ...


def validate_config(config: dict) -> List[str]:
    """Validate configuration against schema.

    Args:
        config: Configuration dictionary to validate.

    Returns:
        List of validation error messages. Empty list if valid.
    """
    errors = []

    for key in config:
        if key not in CONFIG_SCHEMA:
            errors.append(f"Unknown config key: '{key}'")

    for key, (expected_types, required, validator) in CONFIG_SCHEMA.items():
        if required and key not in config:
            errors.append(f"Missing required key: '{key}'")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; reject it for numeric fields
        if not isinstance(value, expected_types) or (
            isinstance(value, bool) and bool not in expected_types
        ):
            type_names = " or ".join(t.__name__ for t in expected_types)
            errors.append(
                f"'{key}' has invalid type: expected {type_names}, got {type(value).__name__}"
            )
            continue

        if validator and value is not None:
            is_valid, error_msg = validator(value)
            if not is_valid:
                errors.append(f"'{key}' {error_msg}")

    return errors


def migrate_config(config: dict) -> Tuple[dict, bool]:
    """Migrate old config formats to the current schema.

    Args:
        config: Configuration dictionary to migrate.

    Returns:
        Tuple of (migrated_config, was_migrated).
    """
    was_migrated = False
    migrated = config.copy()

    current_version = migrated.get("_config_version", 1)
    # Hand-edited files may carry a string or null version
    if isinstance(current_version, bool) or not isinstance(current_version, int):
        current_version = 1

    # Migration from v1 to v2: Add alert_on_reset
    if current_version < 2:
        if "alert_on_reset" not in migrated:
            migrated["alert_on_reset"] = DEFAULT_CONFIG["alert_on_reset"]
            was_migrated = True
        current_version = 2

    if was_migrated:
        migrated["_config_version"] = CONFIG_VERSION

    return migrated, was_migrated


def load_config(
    validate: bool = True,
    auto_migrate: bool = True,
    config_file: Optional[Path] = None,
) -> dict:
    """Load configuration from file.

    Invalid values are reported and replaced by their defaults.

    Args:
        validate: Whether to validate config and drop invalid values.
        auto_migrate: Whether to automatically migrate old config formats.
        config_file: Optional path to config file. Defaults to CONFIG_FILE.

    Returns:
        Configuration dictionary merged with defaults.
    """
    if config_file is None:
        config_file = CONFIG_FILE

    if not config_file.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(config_file) as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.warning("Ignoring unreadable config %s: %s", config_file, e)
        return DEFAULT_CONFIG.copy()

    if not isinstance(config, dict):
        log.warning("Ignoring config %s: not a JSON object", config_file)
        return DEFAULT_CONFIG.copy()

    if auto_migrate:
        config, was_migrated = migrate_config(config)
        if was_migrated:
            try:
                save_config(config, config_file=config_file)
                log.info("Config migrated to version %d", CONFIG_VERSION)
            except OSError as e:
                log.warning("Could not save migrated config: %s", e)

    if validate:
        for error in validate_config(config):
            log.warning("Config validation error: %s", error)
        config = {
            key: value
            for key, value in config.items()
            if key in CONFIG_SCHEMA and not validate_config({key: value})
        }

    return {**DEFAULT_CONFIG, **config}


def save_config(config: dict, config_file: Optional[Path] = None) -> None:
    """Save configuration to file.

    Args:
        config: Configuration dictionary to save.
        config_file: Optional path to config file. Defaults to CONFIG_FILE.
    """
    if config_file is None:
        config_file = CONFIG_FILE

    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        json.dump(config, f, indent=2)

    os.chmod(config_file, 0o600)


def apply_env_overrides(config: dict, environ: Optional[dict] = None) -> dict:
    """Apply QUOTA_WATCH_* environment variable overrides.

    Args:
        config: Loaded configuration.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        New configuration dictionary with valid overrides applied.
    """
    environ = os.environ if environ is None else environ
    result = dict(config)
    for env_var, (key, convert) in ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError:
            log.warning("Ignoring invalid %s=%r", env_var, raw)
            continue
        if validate_config({key: value}):
            log.warning("Ignoring out-of-range %s=%r", env_var, raw)
            continue
        result[key] = value
    return result


class JsonSettingsStore:
    """Settings backed by the JSON config file.

    The file is re-read when it changes on disk so edits take effect on
    the next refresh cycle.

    Args:
        config_file: Path to config file. Defaults to CONFIG_FILE.
        overrides: Values that take precedence over the file (e.g. CLI flags).
    """

    def __init__(self, config_file: Optional[Path] = None, overrides: Optional[dict] = None):
        self.config_file = config_file or CONFIG_FILE
        self.overrides = dict(overrides or {})
        self._config: Optional[dict] = None
        self._mtime: Optional[float] = None

    def _current_mtime(self) -> Optional[float]:
        try:
            return self.config_file.stat().st_mtime
        except OSError:
            return None

    def _load(self) -> dict:
        mtime = self._current_mtime()
        if self._config is None or mtime != self._mtime:
            self._config = apply_env_overrides(load_config(config_file=self.config_file))
            self._mtime = mtime
        return self._config

    def read(self, key: str) -> Any:
        """Read a setting.

        Args:
            key: Setting name, e.g. "warning_threshold".

        Returns:
            Override, file value or default, in that order.

        Raises:
            KeyError: If the key is not a known setting.
        """
        if key not in DEFAULT_CONFIG:
            raise KeyError(f"Unknown setting: {key}")
        if key in self.overrides:
            return self.overrides[key]
        return self._load().get(key, DEFAULT_CONFIG[key])

    def write(self, key: str, value: Any) -> None:
        """Persist a single setting.

        Raises:
            ValueError: If the value fails validation.
        """
        errors = validate_config({key: value})
        if errors:
            raise ValueError("; ".join(errors))
        config = load_config(validate=False, config_file=self.config_file)
        config[key] = value
        config["_config_version"] = CONFIG_VERSION
        save_config(config, config_file=self.config_file)
        self._config = None


__all__ = [
    "DATA_DIR",
    "CONFIG_FILE",
    "DEFAULT_CONFIG",
    "CONFIG_VERSION",
    "CONFIG_SCHEMA",
    "SettingsStore",
    "validate_config",
    "migrate_config",
    "load_config",
    "save_config",
    "apply_env_overrides",
    "JsonSettingsStore",
]
