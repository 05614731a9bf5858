"""
Fixed-window request limiting per client.

Counters live in a `limits` storage backend: in process memory by default,
or Redis (RATE_LIMIT_STORAGE_URI=redis://host:port) when several workers
must share them. Each client key gets a window that opens on its first
request and resets when it expires.
"""

import logging
import math
import time

from fastapi import Request, Response
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi.util import get_remote_address

from app.config import get_rate_limit_settings

# Setup logging
logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a client goes over its allowance for the current window"""

    def __init__(self, retry_after):
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after


class RateLimiter:
    """Allow up to max_requests per client key in each window.

    Args:
        max_requests: Requests allowed per window (default: 100)
        window_seconds: Window length in seconds (default: 900)
        storage_uri: limits storage URI, e.g. memory:// or redis://localhost:6379
        enabled: When False every request is allowed
    """

    def __init__(self, max_requests=100, window_seconds=15 * 60, storage_uri="memory://", enabled=True):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.limit = RateLimitItemPerSecond(max_requests, window_seconds)

        # Log configuration (without connection details)
        logger.info(
            f"Rate limiter configured: {max_requests} requests per {window_seconds}s, "
            f"storage: {storage_uri.split('://', 1)[0]}, enabled: {enabled}"
        )

    @classmethod
    def from_env(cls):
        return cls(**get_rate_limit_settings())

    def hit(self, key):
        """Record a request for key.

        Returns:
            tuple: (allowed, remaining, retry_after_seconds); retry_after is 0
                   when allowed
        """
        if not self.enabled:
            return True, self.max_requests, 0

        try:
            allowed = self.strategy.hit(self.limit, key)
            reset_time, remaining = self.strategy.get_window_stats(self.limit, key)
        except Exception as e:
            # Let traffic through rather than fail every API call on a storage outage
            logger.error(f"Rate limit storage error, allowing request: {e}")
            return True, self.max_requests, 0

        if allowed:
            return True, remaining, 0
        return False, 0, max(1, math.ceil(reset_time - time.time()))


def enforce_rate_limit(request: Request, response: Response):
    """Router dependency that applies the app's limiter"""
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None:
        return

    key = get_remote_address(request)
    allowed, remaining, retry_after = limiter.hit(key)
    if not allowed:
        logger.warning(f"Rate limit exceeded for {key}, retry after {retry_after}s")
        raise RateLimitExceeded(retry_after)

    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
