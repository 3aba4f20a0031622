"""
Tests for the command-line interface. Only commands that never open a
browser are exercised here.
"""

import json

import pytest
from click.testing import CliRunner

from propcore.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def run(runner, *args):
    with runner.isolated_filesystem():
        return runner.invoke(cli, list(args), obj={})


class TestPortalCommands:
    def test_classify(self, runner):
        result = run(runner, "classify", "https://www.portalinmobiliario.com/MLC-1")
        assert result.exit_code == 0
        assert json.loads(result.output)["portal"] == "portal_inmobiliario"

    def test_classify_unknown(self, runner):
        result = run(runner, "classify", "https://example.com/casa")
        assert json.loads(result.output)["portal"] == "unknown"

    def test_validate_url(self, runner):
        result = run(runner, "validate-url", "https://www.yapo.cl/region_metropolitana/casa")
        payload = json.loads(result.output)
        assert result.exit_code == 0
        assert payload["valid"] is True
        assert payload["portal"] == "yapo"

    def test_validate_url_rejects_garbage(self, runner):
        result = run(runner, "validate-url", "not a url")
        assert result.exit_code == 1
        assert json.loads(result.output)["valid"] is False


class TestSearchCommand:
    def test_invalid_price_range_is_a_usage_error(self, runner):
        result = run(
            runner,
            "search",
            "--tipo",
            "Casa",
            "--operacion",
            "Venta",
            "--ubicacion",
            "Ñuñoa",
            "--precio-minimo",
            "9000",
            "--precio-maximo",
            "100",
        )
        assert result.exit_code == 2
        assert "inválidos" in result.output

    def test_max_pages_range(self, runner):
        result = run(runner, "search", "--tipo", "Casa", "--operacion", "Venta", "--ubicacion", "X", "--max-pages", "4")
        assert result.exit_code == 2


class TestCacheCommands:
    def test_stats(self, runner):
        result = run(runner, "cache", "stats")
        assert result.exit_code == 0
        assert "Cache Statistics" in result.output

    def test_clear_all(self, runner):
        result = run(runner, "cache", "clear")
        assert result.exit_code == 0
        assert json.loads(result.output) == {"category": "all", "removed": 0}

    def test_get_miss_exits_non_zero(self, runner):
        result = run(runner, "cache", "get", "scraping", "scraping_missing")
        assert result.exit_code == 1
        assert json.loads(result.output)["hit"] is False

    def test_unknown_category(self, runner):
        result = run(runner, "cache", "info", "weather")
        assert result.exit_code == 2
