"""API client for the OAuth usage endpoint.

Issues exactly one authenticated request per call and maps every
transport and HTTP outcome onto the error taxonomy in quota_watch.errors.
Retrying is left to quota_watch.api.retry.
"""

from __future__ import annotations

import json
import logging
import socket
from http.client import HTTPException
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from quota_watch._version import __version__
from quota_watch.config.credentials import TokenProvider
from quota_watch.config.security import mask_token
from quota_watch.errors import (
    MalformedBodyError,
    NetworkError,
    NetworkTimeoutError,
    QuotaWatchError,
    TokenNotFoundError,
    UnexpectedStatusError,
    categorize_http_error,
    categorize_network_error,
)
from quota_watch.models import UsageSnapshot

log = logging.getLogger(__name__)

# API endpoint
API_URL = "https://api.anthropic.com/api/oauth/usage"
API_BETA_HEADER = "oauth-2025-04-20"
USER_AGENT = f"quota-watch/{__version__}"

DEFAULT_TIMEOUT = 30  # seconds

# Error bodies are kept for display; cap their size
MAX_ERROR_BODY = 2048


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds.

    Args:
        value: Raw header value.

    Returns:
        Non-negative number of seconds, or None if absent or not numeric.
    """
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except (TypeError, ValueError):
        return None
    if seconds != seconds or seconds < 0:  # NaN or negative
        return None
    return seconds


def parse_snapshot(raw: bytes) -> UsageSnapshot:
    """Decode a response body into a snapshot.

    Args:
        raw: Response body bytes.

    Returns:
        Parsed UsageSnapshot.

    Raises:
        MalformedBodyError: If the body is not valid usage JSON.
    """
    try:
        payload = json.loads(raw.decode("utf-8"))
        return UsageSnapshot.from_dict(payload)
    except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
        raise MalformedBodyError(str(e)) from e


class UsageClient:
    """Fetches the current usage snapshot.

    Args:
        token_provider: Source of the bearer token.
        url: Usage endpoint URL.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        url: str = API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.token_provider = token_provider
        self.url = url
        self.timeout = timeout

    def build_request(self, token: str) -> Request:
        return Request(
            self.url,
            method="GET",
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
                "anthropic-beta": API_BETA_HEADER,
                "User-Agent": USER_AGENT,
            },
        )

    def _get_token(self) -> str:
        try:
            return self.token_provider.get_token()
        except QuotaWatchError:
            raise
        except (OSError, ValueError) as e:
            raise TokenNotFoundError(details=str(e)) from e

    def fetch_snapshot(self) -> UsageSnapshot:
        """Fetch current usage with a single GET request.

        Returns:
            Parsed UsageSnapshot.

        Raises:
            TokenNotFoundError: If no token is available.
            TokenExpiredError: On HTTP 401.
            AccessDeniedError: On HTTP 403.
            RateLimitedError: On HTTP 429.
            UnexpectedStatusError: On any other non-200 status.
            MalformedBodyError: If a 200 response cannot be parsed.
            NetworkError, NetworkTimeoutError: On transport failure.
        """
        token = self._get_token()
        req = self.build_request(token)
        log.debug("GET %s (token %s)", self.url, mask_token(token))

        try:
            with urlopen(req, timeout=self.timeout) as response:
                status = response.status
                raw = response.read()
        except HTTPError as e:
            raise self._http_error(e) from None
        except URLError as e:
            reason = e.reason
            if isinstance(reason, (socket.timeout, TimeoutError)):
                raise NetworkTimeoutError(f"Connection timed out: {reason}") from e
            raise categorize_network_error(str(reason)) from e
        except (socket.timeout, TimeoutError) as e:
            raise NetworkTimeoutError(f"Connection timed out: {e}") from e
        except (OSError, HTTPException) as e:
            raise NetworkError(f"Network error: {e}") from e

        if status != 200:
            body = raw[:MAX_ERROR_BODY].decode("utf-8", errors="replace") if raw else None
            log.debug("Unexpected status %s from usage endpoint", status)
            raise UnexpectedStatusError(status, body)

        snapshot = parse_snapshot(raw)
        log.debug(
            "Fetched usage: session=%s weekly=%s sonnet=%s",
            *(
                limit.utilization if limit else None
                for limit in (
                    snapshot.five_hour,
                    snapshot.seven_day,
                    snapshot.seven_day_sonnet,
                )
            ),
        )
        return snapshot

    @staticmethod
    def _http_error(error: HTTPError) -> QuotaWatchError:
        retry_after = None
        if error.code == 429 and error.headers is not None:
            retry_after = parse_retry_after(error.headers.get("Retry-After"))

        body = None
        try:
            raw = error.read()
            if raw:
                body = raw[:MAX_ERROR_BODY].decode("utf-8", errors="replace")
        except (OSError, ValueError, AttributeError, KeyError):
            pass  # Body is informational only

        log.debug("Usage endpoint returned HTTP %s", error.code)
        return categorize_http_error(error.code, body or error.reason, retry_after)


__all__ = [
    "API_URL",
    "API_BETA_HEADER",
    "USER_AGENT",
    "DEFAULT_TIMEOUT",
    "parse_retry_after",
    "parse_snapshot",
    "UsageClient",
]
