"""Categorized error handling with actionable messages.

Provides structured error types with exit codes, retry classification
and recovery suggestions. Every failure the polling pipeline can surface
to the presentation layer is one of these types.
"""

from __future__ import annotations

from enum import IntEnum
from typing import ClassVar


class ExitCode(IntEnum):
    """Exit codes for scripting integration.

    Standard categories:
    - 0: Success
    - 1-9: Usage/config errors (user can fix)
    - 10-19: Authentication errors
    - 20-29: Network errors
    - 30-39: API errors
    - 40-49: System errors
    """

    SUCCESS = 0

    # Usage/config errors (1-9)
    USAGE_ERROR = 1
    CONFIG_ERROR = 2

    # Authentication errors (10-19)
    AUTH_EXPIRED = 10
    AUTH_MISSING = 12
    AUTH_PERMISSION = 13

    # Network errors (20-29)
    NETWORK_OFFLINE = 20
    NETWORK_TIMEOUT = 21

    # API errors (30-39)
    API_ERROR = 30
    API_RATE_LIMIT = 31
    API_SERVER_ERROR = 32
    API_MALFORMED = 34

    # System errors (40-49)
    FILE_NOT_FOUND = 40
    FILE_PERMISSION = 41
    CACHE_ERROR = 43
    SYSTEM_ERROR = 49


class QuotaWatchError(Exception):
    """Base exception for quota-watch with structured error info.

    Attributes:
        message: Human-readable error message.
        code: Exit code for scripting.
        suggestion: Actionable recovery suggestion.
        details: Optional additional context.
        retryable: Whether a retry may succeed.
    """

    code: ClassVar[ExitCode] = ExitCode.USAGE_ERROR
    suggestion: ClassVar[str] = ""
    retryable: bool = False

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: str | None = None,
    ):
        self.message = message
        self._suggestion = suggestion
        self.details = details
        super().__init__(message)

    def get_suggestion(self) -> str:
        """Get the recovery suggestion."""
        return self._suggestion or self.suggestion

    def format_full(self) -> str:
        """Format the complete error message with suggestion."""
        parts = [f"Error: {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        suggestion = self.get_suggestion()
        if suggestion:
            parts.append(f"Suggestion: {suggestion}")
        return "\n".join(parts)


# Authentication Errors


class AuthError(QuotaWatchError):
    """Credential could not be used to authenticate."""

    code = ExitCode.AUTH_EXPIRED


class TokenNotFoundError(AuthError):
    """No OAuth token available from any source."""

    code = ExitCode.AUTH_MISSING
    suggestion = (
        "Log in to Claude Code, or enter a token manually with 'quota-watch --set-token'."
    )

    def __init__(self, message: str = "OAuth token not found", **kwargs):
        super().__init__(message, **kwargs)


class TokenExpiredError(AuthError):
    """OAuth token was rejected (HTTP 401)."""

    code = ExitCode.AUTH_EXPIRED
    suggestion = "Re-authenticate with Claude Code by running 'claude' and signing in again."

    def __init__(
        self, message: str = "Authentication expired. Please re-login to Claude Code.", **kwargs
    ):
        super().__init__(message, **kwargs)


class AccessDeniedError(AuthError):
    """API access denied (HTTP 403)."""

    code = ExitCode.AUTH_PERMISSION
    suggestion = "Check that your Claude subscription includes usage reporting."

    def __init__(self, message: str = "Access denied. Check your Claude subscription.", **kwargs):
        super().__init__(message, **kwargs)


# Network Errors


class TransportError(QuotaWatchError):
    """Request never produced an HTTP response."""

    code = ExitCode.NETWORK_OFFLINE
    suggestion = "Check your internet connection and try again."
    retryable = True


class NetworkError(TransportError):
    """Connection failed (DNS, refused, reset, proxy)."""


class NetworkTimeoutError(TransportError):
    """Request timed out."""

    code = ExitCode.NETWORK_TIMEOUT
    suggestion = "The request timed out. Try again in a moment."


# API Errors


class ProtocolError(QuotaWatchError):
    """Server answered, but not with a usable snapshot."""

    code = ExitCode.API_ERROR
    suggestion = "Try again later. If the problem persists, check Anthropic's status page."


class UnexpectedStatusError(ProtocolError):
    """HTTP status other than 200/401/403/429.

    Attributes:
        status: HTTP status code.
        body: Response body text, if any.
    """

    def __init__(self, status: int, body: str | None = None, **kwargs):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body or 'Unknown error'}", **kwargs)
        if status >= 500:
            self.code = ExitCode.API_SERVER_ERROR

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status >= 500


class MalformedBodyError(ProtocolError):
    """HTTP 200 with a body that is not a usage snapshot."""

    code = ExitCode.API_MALFORMED

    def __init__(self, reason: str, **kwargs):
        super().__init__(f"Failed to parse response: {reason}", **kwargs)


class RateLimitedError(QuotaWatchError):
    """API rate limit exceeded (HTTP 429).

    Attributes:
        retry_after: Seconds the server asked us to wait, if given.
    """

    code = ExitCode.API_RATE_LIMIT
    suggestion = "You've hit the API rate limit. Wait a few minutes before trying again."
    retryable = True

    def __init__(self, retry_after: float | None = None, **kwargs):
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"Too many requests. Retry in {int(retry_after)} seconds."
        else:
            message = "Too many requests. Please wait before retrying."
        super().__init__(message, **kwargs)


# Persistence Errors (never fatal)


class PersistenceError(QuotaWatchError):
    """Local cache or history file could not be read or written."""

    code = ExitCode.CACHE_ERROR
    suggestion = "Check that the data directory is writable. Cached data will be rebuilt."


class CacheReadError(PersistenceError):
    """Cache file exists but could not be read."""


class CacheWriteError(PersistenceError):
    """Cache file could not be written."""


class HistoryReadError(PersistenceError):
    """History file exists but could not be read."""


class HistoryWriteError(PersistenceError):
    """History file could not be written."""


class RetryAborted(Exception):
    """Retry waiting was interrupted by a stop request.

    Attributes:
        last_error: The error that triggered the interrupted wait.
    """

    def __init__(self, last_error: BaseException):
        self.last_error = last_error
        super().__init__(f"Retry aborted after: {last_error}")


def is_retryable(error: BaseException) -> bool:
    """Check whether an error belongs to a retryable kind.

    Args:
        error: The exception that occurred.

    Returns:
        True for transport failures, rate limiting and 5xx responses.
    """
    return isinstance(error, QuotaWatchError) and bool(error.retryable)


def categorize_http_error(
    status_code: int,
    body: str | None = None,
    retry_after: float | None = None,
) -> QuotaWatchError:
    """Convert a non-200 HTTP status code to the appropriate error type.

    Args:
        status_code: HTTP status code.
        body: Optional response body text.
        retry_after: Parsed Retry-After header, used for 429.

    Returns:
        Appropriate QuotaWatchError subclass instance.
    """
    if status_code == 401:
        return TokenExpiredError()
    if status_code == 403:
        return AccessDeniedError()
    if status_code == 429:
        return RateLimitedError(retry_after)
    return UnexpectedStatusError(status_code, body)


def categorize_network_error(error_reason: str) -> TransportError:
    """Convert a network error reason to the appropriate error type.

    Args:
        error_reason: Error reason string from URLError or OSError.

    Returns:
        NetworkTimeoutError for timeouts, NetworkError otherwise.
    """
    reason_lower = error_reason.lower()

    if "timed out" in reason_lower or "timeout" in reason_lower:
        return NetworkTimeoutError(f"Connection timed out: {error_reason}")
    return NetworkError(f"Network error: {error_reason}")


def format_error_for_user(error: BaseException, verbose: bool = False) -> str:
    """Format any exception for user display.

    Args:
        error: Exception to format.
        verbose: If True, include details and suggestions.

    Returns:
        Formatted error message string.
    """
    if isinstance(error, QuotaWatchError):
        if verbose:
            return error.format_full()
        return f"Error: {error.message}"
    return f"Error: {error}"


def get_exit_code(error: BaseException) -> int:
    """Get the exit code for an exception.

    Args:
        error: Exception to get code for.

    Returns:
        Integer exit code.
    """
    if isinstance(error, QuotaWatchError):
        return error.code
    if isinstance(error, FileNotFoundError):
        return ExitCode.FILE_NOT_FOUND
    if isinstance(error, PermissionError):
        return ExitCode.FILE_PERMISSION
    return ExitCode.SYSTEM_ERROR


__all__ = [
    "ExitCode",
    "QuotaWatchError",
    # Authentication errors
    "AuthError",
    "TokenNotFoundError",
    "TokenExpiredError",
    "AccessDeniedError",
    # Network errors
    "TransportError",
    "NetworkError",
    "NetworkTimeoutError",
    # API errors
    "ProtocolError",
    "UnexpectedStatusError",
    "MalformedBodyError",
    "RateLimitedError",
    # Persistence errors
    "PersistenceError",
    "CacheReadError",
    "CacheWriteError",
    "HistoryReadError",
    "HistoryWriteError",
    "RetryAborted",
    # Utilities
    "is_retryable",
    "categorize_http_error",
    "categorize_network_error",
    "format_error_for_user",
    "get_exit_code",
]
