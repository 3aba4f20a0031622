"""
Tests for characteristics tables and bedroom/bathroom/surface recovery.
"""

import pytest
from helpers.fakes import FakeElement, FakePage

from propcore.extractor.attributes import (
    collect_attribute_texts,
    format_attribute,
    from_characteristics,
    match_attribute_texts,
    recover_from_text,
)
from propcore.extractor.characteristics import extract_characteristics, normalize_label
from propcore.portals.profiles import CharacteristicRegion


def spec_row(key, value):
    return FakeElement(children={"th": [FakeElement(key)], "td": [FakeElement(value)]})


class TestCharacteristics:
    def test_normalize_label(self):
        assert normalize_label("Dormitorios:") == "dormitorios"
        assert normalize_label("Baños") == "banos"
        assert normalize_label("Superficie útil") == "superficie_util"
        assert normalize_label("Año de construcción") == "año_de_construcción"

    @pytest.mark.asyncio
    async def test_key_value_rows(self):
        page = FakePage({"table tr": [spec_row("Dormitorios", "4"), spec_row("Superficie total", "250 m²")]})
        regions = (CharacteristicRegion("table tr", "th", "td"),)
        assert await extract_characteristics(page, regions) == {"dormitorios": "4", "superficie": "250 m²"}

    @pytest.mark.asyncio
    async def test_separator_rows_and_first_region_wins(self):
        page = FakePage(
            {
                "table tr": [spec_row("Dormitorios", "4")],
                "li.feature": [FakeElement("Dormitorios: 5"), FakeElement("Jardín: Sí"), FakeElement("sin separador")],
            }
        )
        regions = (CharacteristicRegion("table tr", "th", "td"), CharacteristicRegion("li.feature"))
        merged = await extract_characteristics(page, regions)
        assert merged == {"dormitorios": "4", "jardin": "Sí"}

    @pytest.mark.asyncio
    async def test_rows_missing_a_value_are_skipped(self):
        page = FakePage({"table tr": [FakeElement(children={"th": [FakeElement("Bodegas")]})]})
        assert await extract_characteristics(page, (CharacteristicRegion("table tr", "th", "td"),)) == {}


class TestAttributes:
    def test_match_attribute_texts(self):
        found = match_attribute_texts(["3 dormitorios", "2 baños", "120 m² útiles", "Estacionamiento"])
        assert found == {"dormitorios": "3 dormitorios", "banos": "2 baños", "superficie": "120 m² útiles"}

    def test_one_text_fills_one_attribute(self):
        found = match_attribute_texts(["3 dormitorios 2 baños"])
        assert found == {"dormitorios": "3 dormitorios 2 baños"}

    @pytest.mark.asyncio
    async def test_collect_stops_once_complete(self):
        page = FakePage(
            {
                ".first": [FakeElement("3 dormitorios"), FakeElement("2 baños"), FakeElement("90 m²")],
                ".second": [FakeElement("5 dormitorios")],
            }
        )
        found = await collect_attribute_texts(page, [".first", ".second"])
        assert found["dormitorios"] == "3 dormitorios"

    @pytest.mark.parametrize(
        "name,value,expected",
        [
            ("dormitorios", "3", "3 dormitorios"),
            ("dormitorios", "1", "1 dormitorio"),
            ("banos", "2", "2 baños"),
            ("banos", "1", "1 baño"),
            ("superficie", "120", "120 m²"),
            ("superficie", "120 m² totales", "120 m² totales"),
        ],
    )
    def test_format_attribute(self, name, value, expected):
        assert format_attribute(name, value) == expected

    def test_from_characteristics_falls_back_to_useful_surface(self):
        found = from_characteristics({"dormitorios": "3", "superficie_util": "85"})
        assert found == {"dormitorios": "3 dormitorios", "superficie": "85 m²"}

    def test_recover_from_text(self):
        found = recover_from_text("Hermoso depto de 2 dormitorios y 1 baño, 65 m2", "Departamento en Providencia")
        assert found == {"dormitorios": "2 dormitorios", "banos": "1 baño", "superficie": "65 m²"}
        assert recover_from_text(None, "") == {}
