"""Token bucket rate limiter for per-domain rate limiting."""

import asyncio
import time
from typing import Dict, Optional


class TokenBucket:
    """Token bucket algorithm implementation for rate limiting.

    The bucket starts full and refills at a constant rate. Each request
    consumes one token; when none are left the caller waits for a refill.
    """

    def __init__(self, rate: float, capacity: float):
        """Initialize token bucket.

        Args:
            rate: Tokens per second (e.g., 0.5 = 30 RPM)
            capacity: Maximum tokens in bucket (burst capacity)
        """
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens from the bucket, waiting if necessary."""
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                wait_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(wait_time)


class DomainRateLimiter:
    """Per-domain rate limiter.

    Each retailer domain gets its own bucket, so sources hitting different
    stores run concurrently while no single store is hammered.
    """

    DEFAULT_RPM = 20

    def __init__(self, limits_rpm: Optional[Dict[str, int]] = None):
        self._limits_rpm: Dict[str, int] = dict(limits_rpm or {})
        self._buckets: Dict[str, TokenBucket] = {}

    @staticmethod
    def _make_bucket(rpm: int) -> TokenBucket:
        # Small bursts: 10% of RPM, min 2
        return TokenBucket(rate=rpm / 60.0, capacity=max(2.0, rpm / 10.0))

    def _get_bucket(self, domain: str) -> TokenBucket:
        if domain not in self._buckets:
            rpm = self._limits_rpm.get(domain, self.DEFAULT_RPM)
            self._buckets[domain] = self._make_bucket(rpm)
        return self._buckets[domain]

    async def acquire(self, domain: str, tokens: float = 1.0) -> None:
        """Block until the domain's rate limit allows another request."""
        await self._get_bucket(domain).acquire(tokens)

    def set_custom_limit(self, domain: str, rpm: int) -> None:
        """Set a custom requests-per-minute limit, replacing any bucket."""
        self._limits_rpm[domain] = rpm
        self._buckets[domain] = self._make_bucket(rpm)

    def get_current_rate(self, domain: str) -> float:
        """Current limit for a domain in requests per minute."""
        return self._get_bucket(domain).rate * 60.0
