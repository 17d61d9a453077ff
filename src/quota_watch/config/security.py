"""Token format checks and owner-only file permissions."""

from __future__ import annotations

import os
import re
import stat
from pathlib import Path

# Claude OAuth access tokens use URL-safe characters only
TOKEN_MIN_LENGTH = 20
TOKEN_ALPHABET = re.compile(r"^[A-Za-z0-9_-]+$")

# Permission bits that must be clear on files holding secrets
GROUP_OTHER_BITS = stat.S_IRWXG | stat.S_IRWXO


def validate_oauth_token(token: str) -> tuple[bool, str | None]:
    """Check that a token looks like a Claude OAuth access token.

    Args:
        token: Candidate token, already stripped.

    Returns:
        Tuple of (is_valid, reason). Reason is None when valid.
    """
    if not token:
        return False, "Token is empty"
    if len(token) < TOKEN_MIN_LENGTH:
        return False, f"Token is too short (minimum {TOKEN_MIN_LENGTH} characters)"
    if not TOKEN_ALPHABET.match(token):
        return False, "Token contains invalid characters"
    return True, None


def mask_token(token: str, head: int = 8, tail: int = 4) -> str:
    """Shorten a token for log output, e.g. "sk-ant-o...6789"."""
    if not token:
        return "<empty>"
    if len(token) <= head + tail:
        return "*" * len(token)
    return f"{token[:head]}...{token[-tail:]}"


def ensure_private(path: Path) -> str | None:
    """Restrict a secret file to its owner (mode 0600).

    Missing files are left alone.

    Args:
        path: File to protect.

    Returns:
        A warning describing what was wrong, or None if the file was
        already private or does not exist.
    """
    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        return None
    except OSError as e:
        return f"Cannot check permissions for {path}: {e}"

    if not mode & GROUP_OTHER_BITS:
        return None

    warning = f"{path} was readable by other users ({stat.filemode(mode)}), restricted to 600"
    try:
        os.chmod(path, 0o600)
    except OSError as e:
        warning = f"{path} is readable by other users and could not be restricted: {e}"
    return warning


__all__ = [
    "TOKEN_MIN_LENGTH",
    "validate_oauth_token",
    "mask_token",
    "ensure_private",
]
