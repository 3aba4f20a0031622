"""Configuration models and the lazily loaded global settings."""

from .config import (
    BrowserConfig,
    CacheConfig,
    Config,
    ExtractionConfig,
    MonitoringConfig,
    NavigationConfig,
    RateLimitConfig,
    RedisConfig,
    SearchConfig,
    settings,
)

__all__ = [
    "BrowserConfig",
    "CacheConfig",
    "Config",
    "ExtractionConfig",
    "MonitoringConfig",
    "NavigationConfig",
    "RateLimitConfig",
    "RedisConfig",
    "SearchConfig",
    "settings",
]
