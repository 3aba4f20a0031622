"""
Shared Chromium process with a bounded number of concurrent contexts.

Every request gets its own browser context so cookies and storage never
leak between requests. A semaphore caps how many contexts may be open at
once; the context is closed on every exit path. A browser that lost its
connection is relaunched on the next request.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import structlog
from playwright.async_api import async_playwright

from ..config import BrowserConfig
from ..observability import gauge

logger = structlog.get_logger(__name__)


class BrowserPool:
    def __init__(self, config: Optional[BrowserConfig] = None, browser: Optional[Any] = None) -> None:
        self.config = config or BrowserConfig()
        self.browser = browser
        self._playwright: Optional[Any] = None
        self._owns_browser = browser is None
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_contexts)
        self.in_flight = 0
        self.contexts_opened = 0
        self.logger = logger.bind(component="browser_pool")

    async def initialize(self) -> None:
        """Launching is lazy; nothing to do until the first page is requested."""

    def _is_live(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    async def _ensure_browser(self) -> Any:
        if not self._is_live():
            async with self._lock:
                if not self._is_live():
                    await self._launch()
        return self.browser

    async def _launch(self) -> None:
        if self.browser is not None:
            self.logger.warning("Browser disconnected, relaunching", contexts_opened=self.contexts_opened)
            self.browser = None
            await self._stop_playwright()
        self._playwright = await async_playwright().start()
        self.browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=list(self.config.launch_args),
        )
        self._owns_browser = True
        self.logger.info(
            "Chromium launched",
            headless=self.config.headless,
            max_concurrent_contexts=self.config.max_concurrent_contexts,
        )

    async def _stop_playwright(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception as e:
            self.logger.warning("Error stopping Playwright", error=str(e))
        self._playwright = None

    def context_options(self) -> Dict[str, Any]:
        return {
            "user_agent": self.config.user_agent,
            "viewport": {"width": self.config.viewport_width, "height": self.config.viewport_height},
            "extra_http_headers": {"Accept-Language": self.config.accept_language},
        }

    @asynccontextmanager
    async def page_session(self) -> AsyncIterator[Any]:
        """Yield a fresh page in its own context; the context is always closed."""
        async with self._semaphore:
            browser = await self._ensure_browser()
            context = await browser.new_context(**self.context_options())
            self.in_flight += 1
            self.contexts_opened += 1
            gauge("browser_contexts_in_flight", self.in_flight)
            try:
                page = await context.new_page()
                yield page
            finally:
                self.in_flight -= 1
                gauge("browser_contexts_in_flight", self.in_flight)
                try:
                    await context.close()
                except Exception as e:
                    self.logger.warning("Error closing browser context", error=str(e))

    async def close(self) -> None:
        if self.browser is not None and self._owns_browser:
            try:
                await self.browser.close()
            except Exception as e:
                self.logger.warning("Error closing browser", error=str(e))
            self.browser = None
        await self._stop_playwright()
        self.logger.info("Browser pool closed", contexts_opened=self.contexts_opened)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "browser_running": self._is_live(),
            "in_flight": self.in_flight,
            "contexts_opened": self.contexts_opened,
            "max_concurrent_contexts": self.config.max_concurrent_contexts,
        }
