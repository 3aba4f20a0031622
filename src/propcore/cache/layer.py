"""
Two-tier memoization cache.

Reads go local first, then distributed; a distributed hit is copied back
into the local tier. Writes always land in the local tier and are mirrored
to the distributed tier best-effort. No distributed-tier error ever reaches
the caller.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import structlog

from ..config import CacheConfig
from ..observability import increment
from ..protocols import CacheTier
from .fingerprint import fingerprint
from .tiers import MISS, LocalTier, RedisTier

logger = structlog.get_logger(__name__)

CATEGORY_PREFIXES: Mapping[str, str] = {
    "claude": "claude:analysis:",
    "scraping": "scraping:property:",
    "search": "search:results:",
    "mortgage": "mortgage:simulation:",
    "pdf": "pdf:report:",
    "session": "session:",
    "ratelimit": "ratelimit:",
}

ALL = "all"


@dataclass(frozen=True)
class CacheLookup:
    """Result of a :meth:`CacheLayer.get`; ``tier`` is ``local``, ``distributed`` or ``none``."""

    hit: bool
    value: Any
    tier: str
    key: str

    @classmethod
    def miss(cls, key: str) -> "CacheLookup":
        return cls(hit=False, value=None, tier="none", key=key)


class CacheLayer:
    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        local: Optional[LocalTier] = None,
        distributed: Optional[RedisTier] = None,
    ) -> None:
        self.config = config if config is not None else CacheConfig()
        self.local = local if local is not None else LocalTier(max_keys=self.config.max_keys)
        self.distributed = distributed
        self.logger = logger.bind(component="cache_layer")
        self._started_at = time.time()
        self._stats: Dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "errors": 0,
            "local_hits": 0,
            "distributed_hits": 0,
            "local_misses": 0,
            "distributed_misses": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        if self.distributed is None and self.config.redis.configured:
            self.distributed = RedisTier(self.config.redis)
        if self.distributed is not None:
            await self.distributed.initialize()
        self.logger.info(
            "Cache layer ready",
            local_max_keys=self.local.max_keys,
            distributed=self.distributed_available,
        )

    async def close(self) -> None:
        if self.distributed is not None:
            await self.distributed.close()

    @property
    def distributed_available(self) -> bool:
        return self.distributed is not None and self.distributed.available

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def prefix_for(category: str) -> str:
        try:
            return CATEGORY_PREFIXES[category]
        except KeyError:
            raise ValueError(f"Unknown cache category: {category}") from None

    def ttl_for(self, category: str) -> int:
        self.prefix_for(category)
        return self.config.ttl_by_category.get(category, self.config.default_ttl_seconds)

    def storage_key(self, category: str, key: str) -> str:
        return f"{self.prefix_for(category)}{key}"

    @staticmethod
    def fingerprint(category: str, **request: Any) -> str:
        return fingerprint(category, **request)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get(self, category: str, key: str) -> CacheLookup:
        full_key = self.storage_key(category, key)
        if not self.config.enabled:
            return CacheLookup.miss(full_key)

        value = await self.local.get(full_key)
        if value is not MISS:
            self._record_hit("local")
            return CacheLookup(hit=True, value=value, tier="local", key=full_key)
        self._record_miss("local")

        if self.distributed_available:
            try:
                value = await self.distributed.get(full_key)
            except Exception as e:
                self._record_error("distributed", "get", e)
                value = MISS
            if value is not MISS:
                await self.local.set(full_key, value, self.ttl_for(category))
                self._record_hit("distributed")
                return CacheLookup(hit=True, value=value, tier="distributed", key=full_key)
            self._record_miss("distributed")

        self._stats["misses"] += 1
        increment("cache_lookups_total", labels={"tier": "none", "result": "miss"})
        self.logger.debug("Cache miss", key=full_key)
        return CacheLookup.miss(full_key)

    async def set(self, category: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-compatible value.

        Raises ValueError for a non-positive ``ttl`` or for a value that would
        not read back equal from JSON (tuples, datetimes, non-string keys).
        """
        full_key = self.storage_key(category, key)
        if ttl is not None and ttl < 1:
            raise ValueError(f"Cache TTL must be at least one second, got {ttl}")
        if not self.config.enabled:
            return False
        ttl_seconds = ttl if ttl is not None else self.ttl_for(category)

        await self.local.set(full_key, value, ttl_seconds)
        self._stats["sets"] += 1

        if self.distributed_available:
            try:
                await self.distributed.set(full_key, value, ttl_seconds)
            except Exception as e:
                self._record_error("distributed", "set", e)

        self.logger.debug("Cache set", key=full_key, ttl=ttl_seconds)
        return True

    async def delete(self, category: str, key: str) -> bool:
        full_key = self.storage_key(category, key)
        deleted = await self.local.delete(full_key)
        if self.distributed_available:
            try:
                deleted += await self.distributed.delete(full_key)
            except Exception as e:
                self._record_error("distributed", "delete", e)
        if deleted:
            self._stats["deletes"] += 1
        return deleted > 0

    async def clear(self, category: str = ALL) -> int:
        """Remove every entry of one category, or of all categories."""
        prefixes = list(CATEGORY_PREFIXES.values()) if category == ALL else [self.prefix_for(category)]
        removed = 0
        for prefix in prefixes:
            removed += await self.local.clear(prefix)
            if self.distributed_available:
                try:
                    removed += await self.distributed.clear(prefix)
                except Exception as e:
                    self._record_error("distributed", "clear", e)
        self.logger.info("Cache cleared", category=category, removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        lookups = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / lookups * 100) if lookups else 0.0
        return {
            **self._stats,
            "hit_rate": round(hit_rate, 2),
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "local_keys": len(self.local),
            "distributed": "connected" if self.distributed_available else "disabled",
        }

    async def health_check(self) -> Dict[str, Any]:
        """Write, read back and delete a throwaway key in each tier."""
        check_key = f"session:healthcheck:{uuid.uuid4().hex}"
        marker = {"healthcheck": check_key}
        health: Dict[str, Any] = {"local": await self._round_trip(self.local, check_key, marker)}

        if self.distributed is None:
            health["distributed"] = {"status": "disabled"}
        elif not self.distributed.available:
            health["distributed"] = {"status": "unavailable"}
        else:
            health["distributed"] = await self._round_trip(self.distributed, check_key, marker)

        health["healthy"] = health["local"]["status"] == "healthy"
        return health

    async def type_info(self, category: str) -> Dict[str, Any]:
        prefix = self.prefix_for(category)
        info: Dict[str, Any] = {
            "category": category,
            "prefix": prefix,
            "ttl_seconds": self.ttl_for(category),
            "local_keys": len(await self.local.keys(prefix)),
        }
        if self.distributed_available:
            try:
                info["distributed_keys"] = len(await self.distributed.keys(prefix))
            except Exception as e:
                self._record_error("distributed", "keys", e)
                info["distributed_keys"] = None
        return info

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _round_trip(self, tier: CacheTier, key: str, value: Dict[str, Any]) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            await tier.set(key, value, 10)
            echoed = await tier.get(key)
            await tier.delete(key)
        except Exception as e:
            self._record_error(tier.name, "health_check", e)
            return {"status": "unhealthy", "error": str(e)}
        status = "healthy" if echoed == value else "degraded"
        return {"status": status, "latency_ms": round((time.perf_counter() - start) * 1000, 2)}

    def _record_hit(self, tier: str) -> None:
        self._stats["hits"] += 1
        self._stats[f"{tier}_hits"] += 1
        increment("cache_lookups_total", labels={"tier": tier, "result": "hit"})

    def _record_miss(self, tier: str) -> None:
        self._stats[f"{tier}_misses"] += 1
        increment("cache_lookups_total", labels={"tier": tier, "result": "miss"})

    def _record_error(self, tier: str, operation: str, error: Exception) -> None:
        self._stats["errors"] += 1
        increment("cache_errors_total", labels={"tier": tier, "operation": operation})
        self.logger.warning("Cache tier error swallowed", tier=tier, operation=operation, error=str(error))
