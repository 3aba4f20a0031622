"""
Tests for Chilean price parsing and formatting.
"""

import pytest

from propcore.extractor.models import NOT_AVAILABLE
from propcore.extractor.pricing import (
    CLP,
    UF,
    USD,
    build_price,
    detect_currency,
    format_es_cl,
    format_price,
    parse_chilean_number,
)


class TestParseChileanNumber:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("150.000.000", 150_000_000.0),
            ("6.900", 6900.0),
            ("6.5", 6.5),
            ("5.990,50", 5990.5),
            ("6,5", 6.5),
            ("UF 12.500", 12500.0),
            ("$ 89.000.000", 89_000_000.0),
            ("4500", 4500.0),
        ],
    )
    def test_parses(self, raw, expected):
        assert parse_chilean_number(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "consultar", "1,2,3"])
    def test_unparseable(self, raw):
        assert parse_chilean_number(raw) is None


class TestFormatting:
    def test_format_es_cl(self):
        assert format_es_cl(150000000) == "150.000.000"
        assert format_es_cl(5990.5, 2) == "5.990,50"

    def test_format_price_by_currency(self):
        assert format_price("150.000.000", CLP) == "$150.000.000"
        assert format_price("5.990", UF) == "UF 5.990"
        assert format_price("5.990,50", UF) == "UF 5.990,50"
        assert format_price("250.000", USD) == "US$250.000"

    def test_format_price_edge_cases(self):
        assert format_price("", CLP) == "0"
        assert format_price("Consultar", CLP) == "0"

    def test_detect_currency(self):
        assert detect_currency("UF 5.000") == UF
        assert detect_currency("US$ 200.000") == USD
        assert detect_currency("$ 1.000") == CLP
        assert detect_currency("1.000") is None


class TestBuildPrice:
    def test_missing_amount(self):
        assert build_price(None) is None

    def test_clp_from_symbol_in_amount(self):
        price = build_price("$150.000.000")
        assert price.precio == "$150.000.000"
        assert price.moneda == CLP
        assert price.precio_clp == "$150.000.000"
        assert price.precio_uf == NOT_AVAILABLE

    def test_uf_with_separate_cents_and_peso_subtitle(self):
        price = build_price("5.990", currency_text="UF", cents="50", secondary="$ 220.000.000")
        assert price.precio == "UF 5.990,50"
        assert price.moneda == UF
        assert price.precio_uf == "UF 5.990,50"
        assert price.precio_clp == "$220.000.000"
