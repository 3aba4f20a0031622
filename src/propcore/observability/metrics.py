"""
Defines and manages Prometheus metrics for the application.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

import psutil
import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Gauge as _OrigGauge
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

if TYPE_CHECKING:
    from propcore.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Defined before any metric is created so that re-importing this module
# (the test suite does) reuses the registered collectors instead of raising.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Gauge = _duplicate_safe_factory(_OrigGauge)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    """Create every collector used by the acquisition core."""
    return {
        # Pipeline
        "extractions_total": Counter(
            "propcore_extractions_total",
            "Extraction requests by portal and terminal outcome",
            ["portal", "outcome"],
        ),
        "extraction_duration_seconds": Histogram(
            "propcore_extraction_duration_seconds",
            "Wall time of an extraction request, cache hits included",
            ["portal"],
            buckets=[0.01, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0],
        ),
        "searches_total": Counter(
            "propcore_searches_total",
            "Search requests by terminal outcome",
            ["outcome"],
        ),
        "errors_classified_total": Counter(
            "propcore_errors_classified_total",
            "Failures mapped into the error taxonomy",
            ["kind"],
        ),
        # Browser
        "navigation_attempts_total": Counter(
            "propcore_navigation_attempts_total",
            "Staged-wait attempts by outcome",
            ["outcome"],
        ),
        "browser_contexts_in_flight": Gauge(
            "propcore_browser_contexts_in_flight",
            "Browser contexts currently open",
        ),
        # Extraction
        "field_misses_total": Counter(
            "propcore_field_misses_total",
            "Fields that fell back to the unavailable sentinel",
            ["portal", "field"],
        ),
        # Cache
        "cache_lookups_total": Counter(
            "propcore_cache_lookups_total",
            "Cache lookups by tier and result",
            ["tier", "result"],
        ),
        "cache_errors_total": Counter(
            "propcore_cache_errors_total",
            "Swallowed cache tier errors",
            ["tier", "operation"],
        ),
        # Host
        "cpu_usage_percent": Gauge(
            "propcore_cpu_usage_percent",
            "Current CPU utilization of the host",
        ),
        "memory_usage_percent": Gauge(
            "propcore_memory_usage_percent",
            "Current memory utilization of the host",
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


class MetricsManager:
    """Manages the lifecycle of metrics collection and exporting."""

    def __init__(self, config: MonitoringConfig) -> None:
        self.config = config
        self._started = False

    async def initialize(self) -> None:
        self.start()

    def start(self) -> None:
        """Starts the Prometheus exporter when a port is configured."""
        if self._started or not self.config.enabled:
            return
        if self.config.prometheus_port:
            logger.info("Starting Prometheus metrics server", port=self.config.prometheus_port)
            start_http_server(self.config.prometheus_port)
        self._started = True

    def update_system_metrics(self) -> None:
        """Updates CPU and memory gauges; browsers are the heaviest consumers here."""
        try:
            METRICS["cpu_usage_percent"].set(psutil.cpu_percent())
            METRICS["memory_usage_percent"].set(psutil.virtual_memory().percent)
        except (OSError, psutil.Error) as e:
            logger.warning("Error updating system metrics", error=str(e))

    async def close(self) -> None:
        self._started = False
