"""
Tests for response and content validation.
"""

import pytest
from helpers.fakes import FakePage

from propcore.errors import ErrorKind
from propcore.extractor import NOT_AVAILABLE, USEFUL_FIELDS, ExtractionResult
from propcore.portals.profiles import PORTAL_INMOBILIARIO
from propcore.protocols import PortalId
from propcore.validation import ContentValidator, ResponseValidator, ValidationReason

URL = "https://www.portalinmobiliario.com/MLC-1"


class BrokenTitlePage(FakePage):
    async def title(self):
        raise RuntimeError("Target page, context or browser has been closed")


class TestResponseValidator:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,reason,kind",
        [
            (404, ValidationReason.NOT_FOUND, ErrorKind.NOT_FOUND),
            (410, ValidationReason.NOT_FOUND, ErrorKind.NOT_FOUND),
            (403, ValidationReason.FORBIDDEN, ErrorKind.FORBIDDEN),
            (503, ValidationReason.SERVER_ERROR, ErrorKind.INTERNAL),
            (418, ValidationReason.GENERIC_HTTP_ERROR, ErrorKind.INTERNAL),
        ],
    )
    async def test_error_status_fails_regardless_of_title(self, status, reason, kind):
        page = FakePage(title="Casa en Las Condes | Portal Inmobiliario")
        outcome = await ResponseValidator().validate(status, page, PORTAL_INMOBILIARIO)
        assert not outcome
        assert outcome.reason is reason
        assert outcome.kind is kind
        assert outcome.diagnostics["status"] == status

    @pytest.mark.asyncio
    async def test_soft_404_title(self):
        page = FakePage(title="Publicación finalizada")
        outcome = await ResponseValidator().validate(200, page, PORTAL_INMOBILIARIO)
        assert outcome.reason is ValidationReason.CONTENT_GONE
        assert outcome.kind is ErrorKind.NOT_FOUND
        assert outcome.diagnostics["marker"] == "publicación finalizada"

    @pytest.mark.asyncio
    async def test_soft_404_final_url(self):
        page = FakePage(title="Portal Inmobiliario", final_url="https://www.portalinmobiliario.com/pagina-no-encontrada")
        await page.goto(URL, timeout=1000, wait_until="domcontentloaded")
        outcome = await ResponseValidator().validate(200, page, PORTAL_INMOBILIARIO)
        assert outcome.reason is ValidationReason.CONTENT_GONE

    @pytest.mark.asyncio
    async def test_healthy_page(self):
        page = FakePage(title="Casa en Las Condes | Portal Inmobiliario")
        outcome = await ResponseValidator().validate(200, page, PORTAL_INMOBILIARIO)
        assert outcome.valid
        assert outcome.reason is None

    @pytest.mark.asyncio
    async def test_missing_status_and_unreadable_title_pass(self):
        outcome = await ResponseValidator().validate(None, BrokenTitlePage(), PORTAL_INMOBILIARIO)
        assert outcome.valid


def result_with(**fields):
    return ExtractionResult(url=URL, portal=PortalId.PORTAL_INMOBILIARIO, fields=dict(fields))


class TestContentValidator:
    def test_title_and_one_useful_field_is_accepted(self):
        outcome = ContentValidator().validate(result_with(titulo="Casa en Las Condes", precio="$150.000.000"))
        assert outcome.valid
        assert outcome.diagnostics["useful_fields_found"] == 1
        assert outcome.diagnostics["useful_fields"] == ["precio"]

    def test_missing_title(self):
        outcome = ContentValidator().validate(result_with(precio="$150.000.000"))
        assert outcome.reason is ValidationReason.MISSING_TITLE
        assert outcome.kind is ErrorKind.NOT_A_PROPERTY_PAGE

    def test_sentinel_title_counts_as_missing(self):
        outcome = ContentValidator().validate(result_with(titulo=NOT_AVAILABLE, precio="$1.000"))
        assert outcome.reason is ValidationReason.MISSING_TITLE

    def test_stripping_useful_fields_flips_acceptance(self):
        full = {name: "valor" for name in USEFUL_FIELDS}
        validator = ContentValidator()
        assert validator.validate(result_with(titulo="Casa", **full)).valid

        stripped = result_with(titulo="Casa", **{name: NOT_AVAILABLE for name in USEFUL_FIELDS})
        outcome = validator.validate(stripped)
        assert not outcome.valid
        assert outcome.reason is ValidationReason.NO_USEFUL_FIELDS
        assert outcome.kind is ErrorKind.INSUFFICIENT_DATA
        assert outcome.diagnostics["useful_fields_found"] == 0

    def test_property_markers_are_diagnostic_only(self):
        outcome = ContentValidator().validate(
            result_with(titulo="Oficina comercial", ubicacion="Santiago Centro"), PORTAL_INMOBILIARIO
        )
        assert outcome.valid
        assert outcome.diagnostics["property_markers"] == 1

        outcome = ContentValidator().validate(result_with(titulo="Bicicleta", precio="$100"), PORTAL_INMOBILIARIO)
        assert outcome.valid
        assert outcome.diagnostics["property_markers"] == 0
