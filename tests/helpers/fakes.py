"""
In-memory stand-ins for the Playwright objects the acquisition core drives.

A page is described as a mapping of CSS selector to the elements that
selector resolves to; nothing is parsed. Selectors that are not in the
mapping resolve to nothing, and ``wait_for_selector`` on them times out
immediately the way Playwright would after its timeout.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError


class FakeElement:
    def __init__(
        self,
        text: Optional[str] = None,
        attrs: Optional[Dict[str, str]] = None,
        children: Optional[Dict[str, List["FakeElement"]]] = None,
        visible: bool = True,
        enabled: bool = True,
        on_click: Optional[Callable[[], None]] = None,
    ) -> None:
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.visible = visible
        self.enabled = enabled
        self.on_click = on_click
        self.clicks = 0

    async def query_selector(self, selector: str) -> Optional["FakeElement"]:
        matches = self.children.get(selector) or []
        return matches[0] if matches else None

    async def query_selector_all(self, selector: str) -> List["FakeElement"]:
        return list(self.children.get(selector, []))

    async def text_content(self) -> Optional[str]:
        return self.text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    async def is_visible(self) -> bool:
        return self.visible

    async def is_enabled(self) -> bool:
        return self.enabled

    async def click(self) -> None:
        self.clicks += 1
        if self.on_click is not None:
            self.on_click()


def text(value: str) -> List[FakeElement]:
    """Shorthand for a selector that resolves to one text node."""
    return [FakeElement(value)]


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status


class FakePage:
    def __init__(
        self,
        elements: Optional[Dict[str, List[FakeElement]]] = None,
        *,
        title: str = "",
        status: int = 200,
        ready_state: str = "complete",
        final_url: Optional[str] = None,
        goto_errors: Optional[List[BaseException]] = None,
    ) -> None:
        self.elements = elements or {}
        self._title = title
        self.status = status
        self.ready_state = ready_state
        self.final_url = final_url
        self.goto_errors = list(goto_errors or [])
        self._url = "about:blank"

        self.navigations = 0
        self.visited: List[str] = []
        self.waits: List[float] = []
        self.clicked: List[str] = []
        self.filled: List[tuple] = []
        self.pressed: List[tuple] = []

    @property
    def url(self) -> str:
        return self._url

    def _missing(self, selector: str) -> PlaywrightTimeoutError:
        return PlaywrightTimeoutError(f"Timeout exceeded waiting for selector {selector!r}")

    async def goto(self, url: str, *, timeout: float, wait_until: str) -> FakeResponse:
        self.navigations += 1
        self.visited.append(url)
        if self.goto_errors:
            raise self.goto_errors.pop(0)
        self._url = self.final_url or url
        return FakeResponse(self.status)

    async def wait_for_load_state(self, state: str, *, timeout: float) -> None:
        return None

    async def wait_for_selector(self, selector: str, *, timeout: float) -> FakeElement:
        matches = self.elements.get(selector) or []
        if not matches:
            raise self._missing(selector)
        return matches[0]

    async def wait_for_timeout(self, timeout: float) -> None:
        self.waits.append(timeout)

    async def evaluate(self, expression: str) -> Any:
        return self.ready_state

    async def title(self) -> str:
        return self._title

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        matches = self.elements.get(selector) or []
        return matches[0] if matches else None

    async def query_selector_all(self, selector: str) -> List[FakeElement]:
        return list(self.elements.get(selector, []))

    async def click(self, selector: str, *, timeout: float) -> None:
        if not self.elements.get(selector):
            raise self._missing(selector)
        self.clicked.append(selector)
        await self.elements[selector][0].click()

    async def fill(self, selector: str, value: str, *, timeout: float) -> None:
        if not self.elements.get(selector):
            raise self._missing(selector)
        self.filled.append((selector, value))

    async def press(self, selector: str, key: str, *, timeout: float) -> None:
        if not self.elements.get(selector):
            raise self._missing(selector)
        self.pressed.append((selector, key))


class FakeContext:
    def __init__(self, page: FakePage, close_error: Optional[BaseException] = None) -> None:
        self.page = page
        self.close_error = close_error
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeBrowser:
    """Hands out the same page (or a fresh one from ``page_factory``) per context."""

    def __init__(
        self,
        page: Optional[FakePage] = None,
        *,
        page_factory: Optional[Callable[[], FakePage]] = None,
        close_error: Optional[BaseException] = None,
    ) -> None:
        self.page = page
        self.page_factory = page_factory
        self.close_error = close_error
        self.contexts: List[FakeContext] = []
        self.context_options: List[Dict[str, Any]] = []
        self.closed = False
        self.connected = True

    async def new_context(self, **options: Any) -> FakeContext:
        page = self.page_factory() if self.page_factory is not None else (self.page or FakePage())
        context = FakeContext(page, close_error=self.close_error)
        self.contexts.append(context)
        self.context_options.append(options)
        return context

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected


class FakePlaywright:
    """Stands in for ``async_playwright()``; each launch hands out the next browser."""

    def __init__(self, browsers: List[FakeBrowser]) -> None:
        self.browsers = list(browsers)
        self.launches: List[Dict[str, Any]] = []
        self.stops = 0
        self.chromium = self

    async def start(self) -> "FakePlaywright":
        return self

    async def launch(self, **options: Any) -> FakeBrowser:
        self.launches.append(options)
        return self.browsers.pop(0)

    async def stop(self) -> None:
        self.stops += 1


def listing_card(
    title: str = "Casa en Ñuñoa",
    href: str = "/MLC-9",
    price: str = "12.500",
    currency: str = "UF",
    attributes: Optional[List[str]] = None,
) -> FakeElement:
    """A Portal Inmobiliario result card in the current "poly" markup."""
    if attributes is None:
        attributes = ["4 dormitorios", "3 baños", "200 m² útiles"]
    return FakeElement(
        children={
            ".poly-component__title": [FakeElement(title, attrs={"href": href})],
            ".poly-component__location": text("Ñuñoa, Santiago"),
            ".andes-money-amount__currency-symbol": text(currency),
            ".andes-money-amount__fraction": text(price),
            ".poly-attributes_list__item": [FakeElement(a) for a in attributes],
            ".poly-component__picture": [FakeElement(attrs={"src": "https://http2.mlstatic.com/casa.jpg"})],
        }
    )
