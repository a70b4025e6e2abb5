# g2a_integration/resilience/rate_limiter.py
"""
Token bucket rate limiting with a global bucket and per-endpoint overrides.

Refill is computed lazily from clock deltas whenever a bucket is consulted;
there is no background timer refilling tokens.
"""

import asyncio
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Any

from g2a_integration.config import RateLimitSettings
from g2a_integration.exceptions import QuotaExceededError
from g2a_integration.utils.enhanced_logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    retry_after_ms: int = 0
    endpoint: Optional[str] = None


class TokenBucket:
    """Continuous token bucket: ``capacity`` tokens, refilled at ``refill_rate`` per second."""

    def __init__(self, capacity: float, refill_rate: float, clock: Callable[[], float] = time.monotonic):
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self._clock = clock
        self.tokens = float(capacity)
        self.last_refill = clock()

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def try_consume(self, amount: float = 1) -> bool:
        self._refill()
        if self.tokens >= amount:
            self.tokens -= amount
            return True
        return False

    def restore(self, amount: float = 1):
        self.tokens = min(self.capacity, self.tokens + amount)

    def seconds_until_available(self, amount: float = 1) -> float:
        self._refill()
        if self.tokens >= amount:
            return 0.0
        return (amount - self.tokens) / self.refill_rate

    def remaining(self) -> int:
        self._refill()
        return int(math.floor(self.tokens))


class RateLimiter:
    """
    Two-tier admission control: a request must obtain a token from the global
    bucket and, when one is configured, from its endpoint bucket.

    All bucket mutation happens under one lock so a check is atomic with
    respect to concurrent callers of the same client.
    """

    def __init__(self, settings: RateLimitSettings, clock: Callable[[], float] = time.monotonic,
                 metrics=None):
        self.settings = settings
        self.enabled = settings.enabled
        self._clock = clock
        self._lock = threading.Lock()
        self.metrics = metrics
        self.logger = get_logger("rate_limiter")
        self._create_buckets()

    def _create_buckets(self):
        self.global_bucket = TokenBucket(
            self.settings.burst_size, self.settings.requests_per_second, self._clock
        )
        self.endpoint_buckets: Dict[str, TokenBucket] = {
            endpoint: TokenBucket(limit.burst_size, limit.requests_per_second, self._clock)
            for endpoint, limit in self.settings.per_endpoint.items()
        }

    def _endpoint_bucket(self, endpoint: Optional[str]) -> Optional[TokenBucket]:
        """Exact key match first, then the longest configured key that prefixes the path."""
        if not endpoint:
            return None
        if endpoint in self.endpoint_buckets:
            return self.endpoint_buckets[endpoint]
        matches = [key for key in self.endpoint_buckets if endpoint.startswith(key.rstrip("/") + "/")]
        if not matches:
            return None
        return self.endpoint_buckets[max(matches, key=len)]

    def check_limit(self, endpoint: Optional[str] = None) -> bool:
        """Consume a token for ``endpoint`` if both tiers allow it. Never blocks."""
        if not self.enabled:
            return True

        with self._lock:
            if not self.global_bucket.try_consume():
                allowed = False
            else:
                bucket = self._endpoint_bucket(endpoint)
                if bucket is not None and not bucket.try_consume():
                    self.global_bucket.restore()
                    allowed = False
                else:
                    allowed = True

        if not allowed:
            if self.metrics is not None:
                self.metrics.rate_limit_denied.increment()
            self.logger.debug("Rate limit denied", endpoint=endpoint)
        return allowed

    def check(self, endpoint: Optional[str] = None) -> RateLimitResult:
        allowed = self.check_limit(endpoint)
        return RateLimitResult(
            allowed=allowed,
            remaining=self.get_remaining_tokens(endpoint),
            retry_after_ms=0 if allowed else self.get_wait_time_ms(endpoint),
            endpoint=endpoint,
        )

    def get_wait_time_ms(self, endpoint: Optional[str] = None) -> int:
        """Milliseconds until both tiers can hand out a token."""
        if not self.enabled:
            return 0
        with self._lock:
            wait = self.global_bucket.seconds_until_available()
            bucket = self._endpoint_bucket(endpoint)
            if bucket is not None:
                wait = max(wait, bucket.seconds_until_available())
        return int(math.ceil(wait * 1000))

    async def wait_if_needed(self, endpoint: Optional[str] = None):
        """
        Admit a request, sleeping once for the computed refill time if needed.

        Raises:
            QuotaExceededError: if a token is still unavailable after waiting
        """
        if self.check_limit(endpoint):
            return

        wait_ms = self.get_wait_time_ms(endpoint)
        self.logger.info(
            "Rate limit reached, waiting for token",
            endpoint=endpoint,
            wait_ms=wait_ms
        )
        await asyncio.sleep(wait_ms / 1000)

        if not self.check_limit(endpoint):
            raise QuotaExceededError(endpoint or "global", retry_after=self.get_wait_time_ms(endpoint))

    def get_remaining_tokens(self, endpoint: Optional[str] = None) -> int:
        """Whole tokens left in the endpoint bucket, or the global bucket when no endpoint is given."""
        with self._lock:
            if endpoint:
                bucket = self._endpoint_bucket(endpoint)
                if bucket is not None:
                    return bucket.remaining()
            return self.global_bucket.remaining()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "enabled": self.enabled,
                "global": self.global_bucket.remaining(),
                "endpoints": {key: bucket.remaining() for key, bucket in self.endpoint_buckets.items()},
            }

    def reset(self):
        """Refill every bucket to capacity."""
        with self._lock:
            self._create_buckets()
        self.logger.info("Rate limiter reset")
