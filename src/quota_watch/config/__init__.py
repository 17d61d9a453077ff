"""Configuration management.

Modules:
    settings: Settings store, config loading, validation, and migration
    credentials: Token providers (Claude Code credentials, manual token)
    security: Token validation, masking and file permissions
"""

from quota_watch.config.credentials import (
    ChainedTokenProvider,
    ClaudeCodeTokenProvider,
    ManualTokenProvider,
    TokenProvider,
    TokenSource,
    default_token_provider,
    token_source,
)
from quota_watch.config.settings import (
    CONFIG_FILE,
    DATA_DIR,
    DEFAULT_CONFIG,
    JsonSettingsStore,
    SettingsStore,
    load_config,
    save_config,
    validate_config,
)

__all__ = [
    # Settings
    "DATA_DIR",
    "CONFIG_FILE",
    "DEFAULT_CONFIG",
    "SettingsStore",
    "JsonSettingsStore",
    "load_config",
    "save_config",
    "validate_config",
    # Credentials
    "TokenProvider",
    "TokenSource",
    "ClaudeCodeTokenProvider",
    "ManualTokenProvider",
    "ChainedTokenProvider",
    "default_token_provider",
    "token_source",
]
