"""
Cache tier backends.

:class:`LocalTier` is the mandatory in-process tier; :class:`RedisTier` is the
optional distributed one. Tiers raise on failure; deciding what to swallow
is the cache layer's job.
"""

from __future__ import annotations

import json
import time
from collections import OrderedDict
from typing import Any, Callable, List, Optional, Tuple

import redis.asyncio as redis
import structlog

from ..config import RedisConfig

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]

# Returned by tier reads for absent or expired keys; a stored None is a hit.
MISS = object()


def serialize(value: Any) -> str:
    """Encode a value as JSON, refusing anything that would not read back equal.

    Tuples, sets, datetimes, non-string keys and NaN are rejected with
    ValueError instead of being stored in a lossy form.
    """
    try:
        payload = json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cache values must be JSON-compatible: {e}") from e
    if json.loads(payload) != value:
        raise ValueError(f"Cache value does not survive JSON encoding: {type(value).__name__}")
    return payload


class LocalTier:
    """Bounded in-process store with lazy TTL expiry.

    Values are held as serialized JSON so a stored entry cannot be mutated
    through a reference the caller kept, and a re-set replaces it whole.
    """

    name = "local"

    def __init__(self, max_keys: int = 1000, clock: Clock = time.monotonic) -> None:
        self.max_keys = max_keys
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return MISS
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        payload = serialize(value)
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_keys:
            self._purge_expired()
            while len(self._entries) >= self.max_keys:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Local cache full, evicted oldest entry", key=evicted)
        self._entries[key] = (self._clock() + ttl_seconds, payload)
        return True

    async def delete(self, key: str) -> int:
        return 1 if self._entries.pop(key, None) is not None else 0

    async def keys(self, prefix: str = "") -> List[str]:
        self._purge_expired()
        return [key for key in self._entries if key.startswith(prefix)]

    async def clear(self, prefix: str = "") -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def ttl_remaining(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return max(0.0, entry[0] - self._clock())

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]:
            del self._entries[key]


class RedisTier:
    """Distributed tier over ``redis.asyncio``.

    ``initialize`` pings once; if Redis is unreachable the tier marks itself
    unavailable and the layer runs local-only.
    """

    name = "distributed"

    def __init__(self, config: RedisConfig, client: Optional[Any] = None) -> None:
        self.config = config
        self.client = client
        self.available = False
        self.logger = logger.bind(component="redis_tier")

    def _connection_url(self) -> str:
        if self.config.url:
            return self.config.url
        return f"redis://{self.config.host}:{self.config.port}/{self.config.db}"

    async def initialize(self) -> None:
        try:
            if self.client is None:
                self.client = redis.from_url(
                    self._connection_url(),
                    password=self.config.password,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=self.config.socket_timeout,
                    socket_connect_timeout=self.config.connect_timeout,
                )
            await self.client.ping()
            self.available = True
            self.logger.info("Distributed cache tier connected")
        except Exception as e:
            self.available = False
            self.logger.warning("Distributed cache tier unavailable, running local-only", error=str(e))

    async def close(self) -> None:
        if self.client is not None:
            try:
                await self.client.aclose()
            except Exception as e:
                self.logger.warning("Error closing Redis client", error=str(e))
        self.available = False

    async def get(self, key: str) -> Any:
        raw = await self.client.get(key)
        return MISS if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        return bool(await self.client.set(key, serialize(value), ex=ttl_seconds))

    async def delete(self, key: str) -> int:
        return int(await self.client.delete(key))

    async def keys(self, prefix: str = "") -> List[str]:
        return [key async for key in self.client.scan_iter(match=f"{prefix}*")]

    async def clear(self, prefix: str = "") -> int:
        keys = await self.keys(prefix)
        if not keys:
            return 0
        return int(await self.client.delete(*keys))

