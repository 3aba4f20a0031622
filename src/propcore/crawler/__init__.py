"""
Browser ownership, staged navigation and per-domain pacing.
"""

from .browser_pool import BrowserPool
from .navigation import LoadOutcome, NavigationController, StageReport
from .rate_limiter import DomainRateLimiter, TokenBucket

__all__ = [
    "BrowserPool",
    "DomainRateLimiter",
    "LoadOutcome",
    "NavigationController",
    "StageReport",
    "TokenBucket",
]
