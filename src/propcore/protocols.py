"""
Core enums and the browser/storage contracts the acquisition core consumes.

The browser contracts are the subset of Playwright's async ``Page`` and
``ElementHandle`` API that PropCore calls. Playwright objects satisfy them
structurally; tests drive the same code with in-memory fakes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Protocol, runtime_checkable

# ============================================================================
# Enums and Constants
# ============================================================================


class PortalId(Enum):
    """Known listing portals."""

    PORTAL_INMOBILIARIO = "portal_inmobiliario"
    MERCADOLIBRE = "mercadolibre"
    YAPO = "yapo"
    TOCTOC = "toctoc"
    CMF_SIMULADOR = "cmf_simulador"
    UNKNOWN = "unknown"


class ExtractionMode(Enum):
    """Page shapes the field extractor distinguishes."""

    LISTING_FIRST_ITEM = "listing_first_item"
    SINGLE_DETAIL = "single_detail"


# ============================================================================
# Browser Contracts
# ============================================================================


@runtime_checkable
class ResponseLike(Protocol):
    """Transport response returned by a navigation."""

    @property
    def status(self) -> int: ...


@runtime_checkable
class ElementLike(Protocol):
    """A DOM node (or the page itself) that can be queried for descendants."""

    async def query_selector(self, selector: str) -> Optional["ElementLike"]: ...

    async def query_selector_all(self, selector: str) -> List["ElementLike"]: ...

    async def text_content(self) -> Optional[str]: ...

    async def get_attribute(self, name: str) -> Optional[str]: ...


@runtime_checkable
class PageLike(Protocol):
    """A live browser page."""

    @property
    def url(self) -> str: ...

    async def goto(self, url: str, *, timeout: float, wait_until: str) -> Optional[ResponseLike]: ...

    async def wait_for_load_state(self, state: str, *, timeout: float) -> None: ...

    async def wait_for_selector(self, selector: str, *, timeout: float) -> Optional[ElementLike]: ...

    async def wait_for_timeout(self, timeout: float) -> None: ...

    async def evaluate(self, expression: str) -> Any: ...

    async def title(self) -> str: ...

    async def query_selector(self, selector: str) -> Optional[ElementLike]: ...

    async def query_selector_all(self, selector: str) -> List[ElementLike]: ...

    async def click(self, selector: str, *, timeout: float) -> None: ...

    async def fill(self, selector: str, value: str, *, timeout: float) -> None: ...

    async def press(self, selector: str, key: str, *, timeout: float) -> None: ...


# ============================================================================
# Storage Contracts
# ============================================================================


@runtime_checkable
class CacheTier(Protocol):
    """One independently failable cache tier.

    ``get`` returns the tier's ``MISS`` sentinel for an absent key, so a
    stored ``None`` still reads as a hit.
    """

    name: str

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool: ...

    async def delete(self, key: str) -> int: ...

    async def keys(self, prefix: str) -> List[str]: ...

    async def clear(self, prefix: str) -> int: ...
