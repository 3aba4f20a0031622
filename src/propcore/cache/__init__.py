"""Two-tier cache: in-process local tier plus optional Redis."""

from .fingerprint import canonical_json, fingerprint
from .layer import ALL, CATEGORY_PREFIXES, CacheLayer, CacheLookup
from .tiers import MISS, LocalTier, RedisTier, serialize

__all__ = [
    "ALL",
    "CATEGORY_PREFIXES",
    "CacheLayer",
    "CacheLookup",
    "MISS",
    "LocalTier",
    "RedisTier",
    "canonical_json",
    "fingerprint",
    "serialize",
]
