"""
Tests for URL to portal classification and URL validation.
"""

import pytest

from propcore.portals import PortalClassifier, classify_portal, is_http_url, profile_for
from propcore.portals.profiles import GENERIC, MERCADOLIBRE, PORTAL_INMOBILIARIO
from propcore.protocols import PortalId


class TestPortalClassifier:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.portalinmobiliario.com/venta/casa/las-condes", PortalId.PORTAL_INMOBILIARIO),
            ("https://casa.mercadolibre.cl/MLC-123-casa-_JM", PortalId.MERCADOLIBRE),
            ("https://www.yapo.cl/region_metropolitana/casas", PortalId.YAPO),
            ("https://www.toctoc.com/propiedades/123", PortalId.TOCTOC),
            ("https://www.cmfchile.cl/educa/simulador", PortalId.CMF_SIMULADOR),
            ("https://example.com/casa", PortalId.UNKNOWN),
        ],
    )
    def test_known_domains(self, url, expected):
        assert PortalClassifier().classify(url) is expected

    def test_is_total_over_garbage(self):
        classifier = PortalClassifier()
        for value in (None, "", 42, "not a url", "http://", "::::"):
            assert classifier.classify(value) is PortalId.UNKNOWN

    def test_lookalike_host_is_not_matched(self):
        """A domain appearing in the path or as a host prefix does not count."""
        assert classify_portal("https://evil.example.com/portalinmobiliario.com") is PortalId.UNKNOWN
        assert classify_portal("https://portalinmobiliario.com.evil.net/") is PortalId.UNKNOWN

    def test_host_is_matched_case_insensitively(self):
        assert classify_portal("HTTPS://WWW.YAPO.CL/Casas") is PortalId.YAPO
        assert classify_portal("https://portalinmobiliario.com/MLC-1") is PortalId.PORTAL_INMOBILIARIO

    def test_text_without_a_host_falls_back_to_substring(self):
        assert classify_portal("www.portalinmobiliario.com/MLC-1") is PortalId.PORTAL_INMOBILIARIO
        assert classify_portal("casa.mercadolibre.cl/MLC-2") is PortalId.MERCADOLIBRE

    def test_deterministic(self):
        url = "https://www.portalinmobiliario.com/MLC-1"
        assert {classify_portal(url) for _ in range(5)} == {PortalId.PORTAL_INMOBILIARIO}


class TestUrlValidation:
    def test_supported_portal(self):
        check = PortalClassifier().validate_url("https://www.portalinmobiliario.com/MLC-1")
        assert check.valid is True
        assert check.supported is True
        assert check.to_dict() == {
            "url": "https://www.portalinmobiliario.com/MLC-1",
            "valid": True,
            "portal": "portal_inmobiliario",
            "supported": True,
        }

    def test_known_but_generic_portal_is_not_supported(self):
        check = PortalClassifier().validate_url("https://www.yapo.cl/casa/1")
        assert check.valid is True
        assert check.portal is PortalId.YAPO
        assert check.supported is False

    def test_malformed_url(self):
        check = PortalClassifier().validate_url("ftp://files.example.com/x")
        assert check.valid is False
        assert check.reason
        assert "reason" in check.to_dict()

    def test_is_http_url(self):
        assert is_http_url("http://a.cl/x")
        assert is_http_url("  https://a.cl  ")
        assert not is_http_url("a.cl/x")
        assert not is_http_url(None)


class TestProfiles:
    def test_profile_lookup(self):
        assert profile_for(PortalId.PORTAL_INMOBILIARIO) is PORTAL_INMOBILIARIO
        assert profile_for(PortalId.MERCADOLIBRE) is MERCADOLIBRE
        assert profile_for(PortalId.YAPO) is GENERIC
        assert profile_for(PortalId.UNKNOWN) is GENERIC

    def test_absolutize(self):
        assert PORTAL_INMOBILIARIO.absolutize("/MLC-1") == "https://www.portalinmobiliario.com/MLC-1"
        assert PORTAL_INMOBILIARIO.absolutize("//img.cl/a.jpg") == "https://img.cl/a.jpg"
        assert GENERIC.absolutize("/x") == "/x"
