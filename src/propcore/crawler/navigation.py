"""
Staged page loading with a bounded retry loop.

Load completeness is advisory: exhausting every attempt returns a
:class:`LoadOutcome` with ``completed=False`` and the caller still extracts.
Whether the page is the right page is decided later by the validators.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from ..config import NavigationConfig
from ..observability import increment
from ..protocols import PageLike

logger = structlog.get_logger(__name__)


@dataclass
class LoadOutcome:
    completed: bool
    attempts: int
    navigated: bool = False
    status: Optional[int] = None
    matched_selector: Optional[str] = None
    last_error: Optional[BaseException] = None


@dataclass
class StageReport:
    """What one pass of the staged wait observed."""

    completed: bool
    matched_selector: Optional[str] = None
    ready_state: Optional[str] = None


class NavigationController:
    def __init__(self, config: Optional[NavigationConfig] = None) -> None:
        self.config = config or NavigationConfig()
        self.logger = logger.bind(component="navigation")

    async def load(
        self,
        page: PageLike,
        url: str,
        critical_selectors: Optional[Sequence[str]] = None,
    ) -> LoadOutcome:
        """Navigate ``page`` to ``url`` and wait until it is stable enough to read.

        Only a failing ``goto`` (or an unexpected error inside the staged
        wait) fails an attempt. Every failed or incomplete attempt counts
        against ``max_attempts`` and is followed by ``retry_delay_ms``.
        """
        selectors = list(critical_selectors or self.config.critical_selectors)
        outcome = LoadOutcome(completed=False, attempts=0)

        for attempt in range(1, self.config.max_attempts + 1):
            outcome.attempts = attempt
            try:
                response = await page.goto(
                    url,
                    timeout=self.config.goto_timeout_ms,
                    wait_until=self.config.wait_until,
                )
                outcome.navigated = True
                outcome.status = response.status if response is not None else None

                report = await self.staged_wait(page, selectors)
                outcome.matched_selector = report.matched_selector
                if report.completed:
                    outcome.completed = True
                    increment("navigation_attempts_total", labels={"outcome": "completed"})
                    self.logger.info("Page loaded", url=url, attempt=attempt, status=outcome.status)
                    return outcome

                increment("navigation_attempts_total", labels={"outcome": "incomplete"})
                self.logger.info("Page still loading", url=url, attempt=attempt, ready_state=report.ready_state)
            except Exception as e:
                outcome.last_error = e
                increment("navigation_attempts_total", labels={"outcome": "failed"})
                self.logger.warning(
                    "Navigation attempt failed",
                    url=url,
                    attempt=attempt,
                    max_attempts=self.config.max_attempts,
                    error_type=type(e).__name__,
                    error=str(e),
                )

            if attempt < self.config.max_attempts:
                await page.wait_for_timeout(self.config.retry_delay_ms)

        self.logger.warning(
            "Retries exhausted, extracting anyway",
            url=url,
            attempts=outcome.attempts,
            navigated=outcome.navigated,
        )
        return outcome

    async def staged_wait(self, page: PageLike, selectors: Sequence[str]) -> StageReport:
        # 1. DOM ready (advisory)
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=self.config.dom_ready_timeout_ms)
        except Exception as e:
            self.logger.debug("DOM ready wait timed out", error=str(e))

        # 2. Critical elements (advisory)
        matched = await self.race_selectors(page, selectors)
        if matched is None:
            self.logger.debug("No critical selector appeared", selectors=list(selectors))

        # 3. Client-side rendering
        await page.wait_for_timeout(self.config.settle_delay_ms)

        # 4. Ready state
        ready_state = await page.evaluate("document.readyState")
        completed = ready_state != "loading"

        # 5. Network idle (best effort)
        if completed:
            try:
                await page.wait_for_load_state("networkidle", timeout=self.config.network_idle_timeout_ms)
            except Exception as e:
                self.logger.debug("Network never went idle", error=str(e))

        return StageReport(completed=completed, matched_selector=matched, ready_state=ready_state)

    async def race_selectors(self, page: PageLike, selectors: Sequence[str]) -> Optional[str]:
        """Wait for all selectors at once; return the first one to appear."""
        if not selectors:
            return None

        timeout = self.config.critical_selector_timeout_ms
        tasks = {
            asyncio.ensure_future(page.wait_for_selector(selector, timeout=timeout)): selector for selector in selectors
        }
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if not task.cancelled() and task.exception() is None:
                        self.logger.debug("Critical selector matched", selector=tasks[task])
                        return tasks[task]
            return None
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
