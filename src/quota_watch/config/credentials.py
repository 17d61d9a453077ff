"""Token providers for the usage API.

The OAuth token is looked up from Claude Code's own credentials first
(macOS Keychain, then the credentials file), falling back to a token the
user entered manually.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import subprocess
from enum import Enum
from pathlib import Path
from typing import Protocol, Sequence

from quota_watch.config.security import ensure_private, validate_oauth_token
from quota_watch.config.settings import DATA_DIR
from quota_watch.errors import TokenNotFoundError

log = logging.getLogger(__name__)

# Keychain service Claude Code stores its credentials under
KEYCHAIN_SERVICE = "Claude Code-credentials"

# Manually entered token location
MANUAL_TOKEN_FILE = DATA_DIR / "token"


class TokenProvider(Protocol):
    """Source of the bearer token for API calls."""

    def get_token(self) -> str:
        """Return a token or raise TokenNotFoundError."""
        ...


class TokenSource(Enum):
    CLAUDE_CODE = "claude_code"
    MANUAL = "manual"
    NONE = "none"


def get_credentials_path() -> Path:
    """Get the path to Claude Code's credentials file for this platform.

    Returns:
        Path to the credentials file.

    Note:
        - Windows: %APPDATA%/.claude/.credentials.json
        - macOS/Linux: ~/.claude/.credentials.json
    """
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", "~")).expanduser()
    else:
        base = Path.home()
    return base / ".claude" / ".credentials.json"


def get_macos_keychain_credentials() -> dict | None:
    """Retrieve Claude Code credentials from macOS Keychain.

    Returns:
        Credentials dict if found in Keychain, None otherwise.
    """
    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True,
            text=True,
            check=True,
            timeout=5,
        )
        return json.loads(result.stdout.strip())
    except (
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        json.JSONDecodeError,
        FileNotFoundError,
    ):
        return None


def extract_access_token(credentials: dict) -> str | None:
    """Pull the OAuth access token out of a Claude Code credentials document."""
    if not isinstance(credentials, dict):
        return None
    oauth = credentials.get("claudeAiOauth") or {}
    token = oauth.get("accessToken") if isinstance(oauth, dict) else None
    return token if isinstance(token, str) and token else None


class ClaudeCodeTokenProvider:
    """Reads the token Claude Code saved when the user logged in.

    Args:
        credentials_path: Override for the credentials file location.
    """

    def __init__(self, credentials_path: Path | None = None):
        self.credentials_path = credentials_path

    def _load_credentials(self) -> dict | None:
        if platform.system() == "Darwin":
            creds = get_macos_keychain_credentials()
            if creds:
                return creds

        path = self.credentials_path or get_credentials_path()
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.debug("Cannot read credentials %s: %s", path, e)
            return None

    def get_token(self) -> str:
        token = extract_access_token(self._load_credentials() or {})
        if not token:
            raise TokenNotFoundError("Claude Code not installed or not logged in")
        return token


class ManualTokenProvider:
    """Token the user pasted in, stored in a 0600 file.

    Args:
        token_file: Token file location.
    """

    def __init__(self, token_file: Path = MANUAL_TOKEN_FILE):
        self.token_file = token_file

    def get_token(self) -> str:
        if not self.token_file.exists():
            raise TokenNotFoundError("No manually entered token")

        warning = ensure_private(self.token_file)
        if warning:
            log.warning("%s", warning)

        try:
            token = self.token_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise TokenNotFoundError("Manual token could not be read", details=str(e)) from e
        if not token:
            raise TokenNotFoundError("Manual token file is empty")
        return token

    def save_token(self, token: str) -> None:
        """Store a manually entered token.

        Raises:
            ValueError: If the token format is invalid.
        """
        token = token.strip()
        is_valid, error = validate_oauth_token(token)
        if not is_valid:
            raise ValueError(f"Invalid token format: {error}")

        self.token_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.token_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(token)
        ensure_private(self.token_file)

    def delete_token(self) -> None:
        try:
            self.token_file.unlink()
        except FileNotFoundError:
            pass

    def has_token(self) -> bool:
        try:
            self.get_token()
            return True
        except TokenNotFoundError:
            return False


class ChainedTokenProvider:
    """Tries providers in fixed priority order.

    Args:
        providers: Providers, highest priority first.
    """

    def __init__(self, providers: Sequence[TokenProvider]):
        self.providers = list(providers)

    def get_token(self) -> str:
        for provider in self.providers:
            try:
                token = provider.get_token()
                log.debug("Token retrieved from %s", type(provider).__name__)
                return token
            except TokenNotFoundError:
                continue
        raise TokenNotFoundError()


def default_token_provider(token_file: Path = MANUAL_TOKEN_FILE) -> ChainedTokenProvider:
    """Claude Code credentials first, then the manual token."""
    return ChainedTokenProvider([ClaudeCodeTokenProvider(), ManualTokenProvider(token_file)])


def token_source(
    claude_code: TokenProvider | None = None,
    manual: TokenProvider | None = None,
) -> TokenSource:
    """Report which source would currently supply the token."""
    for source, provider in (
        (TokenSource.CLAUDE_CODE, claude_code or ClaudeCodeTokenProvider()),
        (TokenSource.MANUAL, manual or ManualTokenProvider()),
    ):
        try:
            provider.get_token()
            return source
        except TokenNotFoundError:
            continue
    return TokenSource.NONE


__all__ = [
    "KEYCHAIN_SERVICE",
    "MANUAL_TOKEN_FILE",
    "TokenProvider",
    "TokenSource",
    "get_credentials_path",
    "get_macos_keychain_credentials",
    "extract_access_token",
    "ClaudeCodeTokenProvider",
    "ManualTokenProvider",
    "ChainedTokenProvider",
    "default_token_provider",
    "token_source",
]
