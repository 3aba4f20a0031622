"""
Tests for cascading selector strategies.
"""

import pytest
from helpers.fakes import FakeElement, FakePage, text

from propcore.extractor import SelectorStrategy, as_strategies, normalize_text, try_strategies


class ExplodingPage(FakePage):
    async def query_selector(self, selector):
        if selector == ".boom":
            raise RuntimeError("Execution context was destroyed")
        return await super().query_selector(selector)


class TestTryStrategies:
    @pytest.mark.asyncio
    async def test_only_second_strategy_matches(self):
        page = FakePage({".s2": text("  Casa   en Ñuñoa ")})
        value = await try_strategies(page, as_strategies(".s1", ".s2", ".s3"), field="titulo")
        assert value == "Casa en Ñuñoa"

    @pytest.mark.asyncio
    async def test_earlier_strategy_wins(self):
        page = FakePage({".s1": text("first"), ".s2": text("second")})
        assert await try_strategies(page, as_strategies(".s1", ".s2")) == "first"

    @pytest.mark.asyncio
    async def test_raising_strategy_is_skipped(self):
        page = ExplodingPage({".s2": text("after the error")})
        assert await try_strategies(page, as_strategies(".boom", ".s2")) == "after the error"

    @pytest.mark.asyncio
    async def test_empty_text_is_a_miss(self):
        page = FakePage({".s1": text("   "), ".s2": text("value")})
        assert await try_strategies(page, as_strategies(".s1", ".s2")) == "value"

    @pytest.mark.asyncio
    async def test_all_miss_returns_none(self):
        assert await try_strategies(FakePage(), as_strategies(".a", ".b")) is None

    @pytest.mark.asyncio
    async def test_attribute_strategy_with_acceptance_rules(self):
        strategy = SelectorStrategy("img", attribute="src", require_prefix="http", reject_substrings=("placeholder",))
        fallback = SelectorStrategy("img.real", attribute="src", require_prefix="http")
        page = FakePage(
            {
                "img": [FakeElement(attrs={"src": "https://cdn.cl/placeholder.png"})],
                "img.real": [FakeElement(attrs={"src": "https://cdn.cl/casa.jpg"})],
            }
        )
        assert await try_strategies(page, (strategy, fallback)) == "https://cdn.cl/casa.jpg"

    @pytest.mark.asyncio
    async def test_min_length(self):
        page = FakePage({".short": text("Santiago"), ".long": text("Las Condes, Santiago")})
        strategies = (SelectorStrategy(".short", min_length=11), SelectorStrategy(".long", min_length=11))
        assert await try_strategies(page, strategies) == "Las Condes, Santiago"


class TestHelpers:
    def test_normalize_text(self):
        assert normalize_text("\n  a \t b  ") == "a b"
        assert normalize_text(None) == ""

