"""API client, retry and caching.

Modules:
    client: Usage endpoint client
    retry: Bounded retry with backoff
    cache: Durable snapshot cache
"""

from quota_watch.api.cache import (
    CACHE_FILE,
    STALE_AFTER,
    VERY_STALE_AFTER,
    SnapshotCache,
    Staleness,
)
from quota_watch.api.client import API_BETA_HEADER, API_URL, UsageClient
from quota_watch.api.retry import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_ATTEMPTS, with_retry

__all__ = [
    # Cache
    "CACHE_FILE",
    "STALE_AFTER",
    "VERY_STALE_AFTER",
    "SnapshotCache",
    "Staleness",
    # Client
    "API_URL",
    "API_BETA_HEADER",
    "UsageClient",
    # Retry
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_INITIAL_DELAY",
    "with_retry",
]
