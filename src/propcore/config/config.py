"""
Configuration management for PropCore using Pydantic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

HOUR = 60 * 60

# --- Nested Configuration Models ---


class BrowserConfig(BaseModel):
    """Browser launch and context configuration."""

    headless: bool = Field(default=True, description="Run Chromium without a visible window.")
    launch_args: List[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-blink-features=AutomationControlled",
            "--disable-web-security",
            "--disable-features=VizDisplayCompositor",
        ],
        description="Extra Chromium command line switches.",
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for every browser context.")
    viewport_width: int = Field(default=1920, gt=0)
    viewport_height: int = Field(default=1080, gt=0)
    accept_language: str = Field(default="es-CL,es;q=0.9,en;q=0.8", description="Accept-Language header.")
    max_concurrent_contexts: int = Field(
        default=3, ge=1, description="Upper bound on browser contexts open at the same time."
    )


class NavigationConfig(BaseModel):
    """Staged wait and retry configuration."""

    goto_timeout_ms: int = Field(default=30_000, description="Hard timeout for the navigation itself.")
    wait_until: str = Field(default="domcontentloaded", description="Playwright wait policy for goto().")
    dom_ready_timeout_ms: int = Field(default=10_000)
    critical_selectors: List[str] = Field(
        default_factory=lambda: [".ui-pdp-title", "h1", ".andes-money-amount", '[class*="price"]'],
        description="Selectors raced after DOM ready; first match wins.",
    )
    critical_selector_timeout_ms: int = Field(default=5_000)
    settle_delay_ms: int = Field(default=3_000, description="Fixed delay for client-side rendering.")
    network_idle_timeout_ms: int = Field(default=8_000)
    max_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=2_000, ge=0)

    @field_validator(
        "goto_timeout_ms",
        "dom_ready_timeout_ms",
        "critical_selector_timeout_ms",
        "network_idle_timeout_ms",
    )
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("timeouts must be positive milliseconds")
        return v

    @field_validator("critical_selectors")
    @classmethod
    def validate_critical_selectors(cls, v: List[str]) -> List[str]:
        """Ensure at least one critical selector is raced."""
        if not v:
            raise ValueError("critical_selectors must contain at least one selector")
        return v


class ExtractionConfig(BaseModel):
    """Field extraction configuration."""

    listing_wait_timeout_ms: int = Field(
        default=3_000, gt=0, description="Timeout per listing-container wait when choosing the extraction mode."
    )
    max_description_length: int = Field(default=5_000, gt=0, description="Description text is truncated to this.")


class RedisConfig(BaseModel):
    """Distributed cache tier. Leave url and host unset to run local-only."""

    enabled: bool = True
    url: Optional[str] = Field(default=None, description="redis:// URL; takes precedence over host/port.")
    host: Optional[str] = None
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    connect_timeout: float = Field(default=2.0, gt=0)
    socket_timeout: float = Field(default=2.0, gt=0)

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.url or self.host)


class CacheConfig(BaseModel):
    """Two-tier cache configuration."""

    enabled: bool = True
    max_keys: int = Field(default=1000, ge=1, description="Capacity of the local in-process tier.")
    default_ttl_seconds: int = Field(default=HOUR, gt=0)
    ttl_by_category: Dict[str, int] = Field(
        default_factory=lambda: {
            "claude": 24 * HOUR,
            "scraping": 24 * HOUR,
            "search": 24 * HOUR,
            "mortgage": 24 * HOUR,
            "pdf": 24 * HOUR,
        }
    )
    redis: RedisConfig = Field(default_factory=RedisConfig)


class SearchConfig(BaseModel):
    """Listing search configuration."""

    home_url: str = "https://www.portalinmobiliario.com/"
    items_per_page: int = Field(default=20, ge=1)
    results_timeout_ms: int = Field(default=5_000, gt=0)
    form_timeout_ms: int = Field(default=10_000, gt=0)
    page_settle_ms: int = Field(default=3_000, ge=0)


class RateLimitConfig(BaseModel):
    """Per-domain navigation pacing."""

    enabled: bool = True
    requests_per_second: float = Field(default=1.0, gt=0)
    burst: int = Field(default=3, ge=1)


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    enabled: bool = True
    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(
        default=None,
        description="Path to log file. If None, logs to console.",
    )
    prometheus_port: int | None = Field(
        default=None,
        description="Port for Prometheus metrics exporter. None to disable.",
    )

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


class DebugConfig(BaseModel):
    test_mode: bool = False


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "PropCore"
    version: str = "0.1.0"
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)

    model_config = SettingsConfigDict(env_prefix="PROPCORE_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "propcore.yaml", current_dir / "propcore.yml", current_dir / "config.yaml"):
        if path.exists():
            return path
    return None


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays its loading and validation
    until an attribute is first accessed, so a broken config file cannot
    crash the application on import.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    def _load_config_with_fallback(self) -> Config:
        """Load configuration from file or fall back to defaults."""
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load or validate configuration from '%s': %s. Falling back to default settings.",
                    config_path,
                    e,
                    exc_info=log.getEffectiveLevel() <= logging.DEBUG,
                )
        else:
            log.info("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


# --- Global Settings Instance ---
settings: "Config" = cast("Config", LazyConfig())
