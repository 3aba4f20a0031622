"""
Per-domain navigation pacing.

Each domain gets an explicit :class:`TokenBucket`; the limiter owns the
buckets and can be injected, disabled or reset, so no pacing state lives at
module level.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlsplit

import structlog

from ..config import RateLimitConfig

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass
class TokenBucket:
    """Classic token bucket: ``rate`` tokens per second, at most ``capacity`` banked."""

    rate: float
    capacity: int
    tokens: float = -1.0  # starts full
    updated_at: Optional[float] = None
    granted: int = 0

    def __post_init__(self) -> None:
        if self.tokens < 0:
            self.tokens = float(self.capacity)

    def refill(self, now: float) -> None:
        if self.updated_at is not None:
            self.tokens = min(float(self.capacity), self.tokens + (now - self.updated_at) * self.rate)
        self.updated_at = now

    def try_acquire(self, now: float) -> float:
        """Take one token; return 0.0, or the wait in seconds before one is available."""
        self.refill(now)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            self.granted += 1
            return 0.0
        return (1.0 - self.tokens) / self.rate


class DomainRateLimiter:
    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[str, TokenBucket] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @staticmethod
    def domain_of(url: str) -> str:
        return (urlsplit(url).hostname or url).lower()

    def _bucket(self, domain: str) -> TokenBucket:
        if domain not in self._buckets:
            self._buckets[domain] = TokenBucket(rate=self.config.requests_per_second, capacity=self.config.burst)
        return self._buckets[domain]

    def _lock(self, domain: str) -> asyncio.Lock:
        if domain not in self._locks:
            self._locks[domain] = asyncio.Lock()
        return self._locks[domain]

    async def acquire(self, url: str) -> float:
        """Block until a navigation to ``url``'s domain is allowed; return the delay applied."""
        if not self.config.enabled:
            return 0.0

        domain = self.domain_of(url)
        waited = 0.0
        async with self._lock(domain):
            bucket = self._bucket(domain)
            while True:
                delay = bucket.try_acquire(self._clock())
                if delay <= 0:
                    break
                logger.debug("Pacing navigation", domain=domain, delay=round(delay, 3))
                await self._sleep(delay)
                waited += delay
        return waited

    def get_domain_stats(self, domain: str) -> Dict[str, Any]:
        bucket = self._buckets.get(domain)
        if bucket is None:
            return {"exists": False}
        bucket.refill(self._clock())
        return {
            "exists": True,
            "requests_per_second": bucket.rate,
            "burst": bucket.capacity,
            "tokens": round(bucket.tokens, 3),
            "granted": bucket.granted,
        }

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        return {domain: self.get_domain_stats(domain) for domain in self._buckets}

    def reset_domain(self, domain: str) -> None:
        self._buckets.pop(domain, None)
        self._locks.pop(domain, None)
        logger.info("Reset rate limiting for domain", domain=domain)
