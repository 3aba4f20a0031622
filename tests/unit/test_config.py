"""
Tests for configuration models, YAML loading and the metrics manager.
"""

from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from propcore.config import Config, MonitoringConfig, NavigationConfig, RedisConfig, SearchConfig
from propcore.config.config import LazyConfig, find_config_file
from propcore.observability import METRICS, MetricsManager, export_prometheus


class TestModels:
    def test_defaults(self):
        config = Config()
        assert config.browser.max_concurrent_contexts == 3
        assert config.browser.accept_language.startswith("es-CL")
        assert config.navigation.max_attempts == 3
        assert config.cache.ttl_by_category["scraping"] == 24 * 60 * 60
        assert config.cache.default_ttl_seconds == 60 * 60
        assert config.search.home_url == "https://www.portalinmobiliario.com/"

    @pytest.mark.parametrize(
        "field", ["goto_timeout_ms", "dom_ready_timeout_ms", "critical_selector_timeout_ms", "network_idle_timeout_ms"]
    )
    def test_timeouts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            NavigationConfig(**{field: 0})

    def test_critical_selectors_required(self):
        with pytest.raises(ValidationError):
            NavigationConfig(critical_selectors=[])

    def test_search_settle_may_be_zero(self):
        assert SearchConfig(page_settle_ms=0).page_settle_ms == 0
        with pytest.raises(ValidationError):
            SearchConfig(items_per_page=0)

    def test_redis_configured(self):
        assert RedisConfig().configured is False
        assert RedisConfig(host="localhost").configured is True
        assert RedisConfig(url="redis://cache:6379/0", enabled=False).configured is False

    def test_log_file_parent_is_created(self, tmp_path):
        target = tmp_path / "logs" / "propcore.log"
        config = MonitoringConfig(log_file=target)
        assert config.log_file == str(target)
        assert target.parent.is_dir()


class TestLoading:
    def test_from_yaml(self, tmp_path):
        path = tmp_path / "propcore.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "navigation": {"max_attempts": 5},
                    "cache": {"redis": {"host": "redis.internal", "port": 6380}},
                }
            ),
            encoding="utf-8",
        )
        config = Config.from_yaml(path)
        assert config.navigation.max_attempts == 5
        assert config.cache.redis.configured is True
        assert config.cache.redis.port == 6380

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "propcore.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path).navigation.max_attempts == 3

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "absent.yaml")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PROPCORE_NAVIGATION__MAX_ATTEMPTS", "7")
        monkeypatch.setenv("PROPCORE_CACHE__REDIS__HOST", "redis.env")
        config = Config()
        assert config.navigation.max_attempts == 7
        assert config.cache.redis.host == "redis.env"

    def test_find_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None
        (tmp_path / "propcore.yml").write_text("{}", encoding="utf-8")
        assert find_config_file() == tmp_path / "propcore.yml"

    def test_lazy_config_falls_back_on_invalid_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "propcore.yaml").write_text(
            yaml.safe_dump({"navigation": {"max_attempts": 0}}), encoding="utf-8"
        )
        monkeypatch.setattr(LazyConfig, "_config", None)

        assert LazyConfig().navigation.max_attempts == 3


class TestMetricsManager:
    def test_system_metrics(self):
        manager = MetricsManager(MonitoringConfig(enabled=False))
        with patch("propcore.observability.metrics.psutil.cpu_percent", return_value=42.0), patch(
            "propcore.observability.metrics.psutil.virtual_memory"
        ) as memory:
            memory.return_value.percent = 61.5
            manager.update_system_metrics()

        assert METRICS["cpu_usage_percent"]._value.get() == 42.0
        assert METRICS["memory_usage_percent"]._value.get() == 61.5

    @pytest.mark.asyncio
    async def test_exporter_only_with_port(self):
        with patch("propcore.observability.metrics.start_http_server") as start:
            await MetricsManager(MonitoringConfig(prometheus_port=None)).initialize()
            start.assert_not_called()

            manager = MetricsManager(MonitoringConfig(prometheus_port=9108))
            await manager.initialize()
            manager.start()
            start.assert_called_once_with(9108)
            await manager.close()

    def test_export_lists_core_metrics(self):
        text = export_prometheus()
        assert "propcore_extractions_total" in text
        assert "propcore_cache_lookups_total" in text
