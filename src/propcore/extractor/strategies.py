"""
Cascading selector strategies.

A field is described by an ordered tuple of :class:`SelectorStrategy`;
:func:`try_strategies` evaluates them against a scope (the page, or one
listing item) and returns the first acceptable value. A strategy that raises
is treated exactly like one that matched nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import structlog

from ..protocols import ElementLike

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


@dataclass(frozen=True, slots=True)
class SelectorStrategy:
    """One way of reading a field out of the DOM."""

    selector: str
    attribute: Optional[str] = None  # None reads text content
    min_length: int = 1
    require_prefix: Optional[str] = None
    reject_substrings: Tuple[str, ...] = ()

    def accepts(self, value: str) -> bool:
        if len(value) < self.min_length:
            return False
        if self.require_prefix and not value.startswith(self.require_prefix):
            return False
        lowered = value.lower()
        return not any(marker in lowered for marker in self.reject_substrings)


StrategyLike = Union[SelectorStrategy, str]


def as_strategies(*items: StrategyLike) -> Tuple[SelectorStrategy, ...]:
    """Build a strategy tuple; bare strings become text strategies."""
    return tuple(item if isinstance(item, SelectorStrategy) else SelectorStrategy(item) for item in items)


async def read_strategy(scope: ElementLike, strategy: SelectorStrategy) -> Optional[str]:
    element = await scope.query_selector(strategy.selector)
    if element is None:
        return None
    if strategy.attribute:
        raw = await element.get_attribute(strategy.attribute)
    else:
        raw = await element.text_content()
    value = normalize_text(raw)
    if value and strategy.accepts(value):
        return value
    return None


async def try_strategies(
    scope: ElementLike,
    strategies: Sequence[SelectorStrategy],
    *,
    field: str = "",
) -> Optional[str]:
    """Return the first non-empty accepted value, or None when all strategies miss."""
    for strategy in strategies:
        try:
            value = await read_strategy(scope, strategy)
        except Exception as e:
            logger.debug(
                "Selector strategy failed",
                field=field,
                selector=strategy.selector,
                error_type=type(e).__name__,
                error=str(e),
            )
            continue
        if value is not None:
            logger.debug("Selector strategy matched", field=field, selector=strategy.selector)
            return value
    return None
