"""
Shared test configuration for PropCore.

Browser objects are replaced by the in-memory fakes in ``helpers.fakes``;
no test launches Chromium or touches the network.
"""

import asyncio
import os
from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from helpers.fakes import FakeBrowser, FakeElement, FakePage, text

from propcore.cache import CacheLayer
from propcore.config import Config
from propcore.crawler import BrowserPool
from propcore.pipeline import AcquisitionPipeline

os.environ["PROPCORE_TEST_MODE"] = "1"

DETAIL_URL = "https://www.portalinmobiliario.com/venta/casa/las-condes/MLC-1234567890"


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    os.environ["PROPCORE_TEST_MODE"] = "1"
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any task a test left behind so one test cannot hang the next."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_config() -> Config:
    """Fast, offline configuration."""
    config = Config()
    config.navigation.max_attempts = 2
    config.navigation.retry_delay_ms = 0
    config.navigation.settle_delay_ms = 0
    config.search.page_settle_ms = 0
    config.rate_limit.enabled = False
    config.cache.redis.enabled = False
    config.monitoring.enabled = False
    config.debug.test_mode = True
    return config


# ============================================================================
# Page Fixtures
# ============================================================================


@pytest.fixture
def detail_page() -> FakePage:
    """A Portal Inmobiliario property detail page."""
    return FakePage(
        {
            "h1": text("Casa en Las Condes"),
            ".price": text("$150.000.000"),
            ".location": text("Las Condes, Santiago"),
            ".ui-pdp-highlighted-specs-res__icon-label": [
                FakeElement("3 dormitorios"),
                FakeElement("2 baños"),
                FakeElement("180 m² totales"),
            ],
            ".ui-pdp-description__content": text("Amplia casa con jardín y piscina."),
        },
        title="Casa en Las Condes | Portal Inmobiliario",
    )


@pytest.fixture
def not_found_page() -> FakePage:
    return FakePage(title="Página no encontrada", status=404)


@pytest.fixture
def make_pipeline(test_config: Config) -> Callable[..., AcquisitionPipeline]:
    """Build a pipeline whose browser hands out the given page."""

    def _make(page: Optional[FakePage] = None, **kwargs) -> AcquisitionPipeline:
        browser = kwargs.pop("browser", None) or FakeBrowser(page)
        return AcquisitionPipeline(
            test_config,
            browser_pool=BrowserPool(test_config.browser, browser=browser),
            cache=kwargs.pop("cache", None) or CacheLayer(test_config.cache),
            **kwargs,
        )

    return _make
