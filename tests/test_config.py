"""Tests for configuration."""

import pytest
import yaml

from etf_tracker.config import Config, get_config, load_settings, save_settings


class TestConfig:
    def test_defaults(self, tmp_path):
        config = Config(base_dir=tmp_path)
        assert config.fund_code == "00981A"
        assert config.backend == "sqlite"
        assert config.retention_days == 90
        assert config.db_path == tmp_path / "data" / "holdings.db"
        assert config.table_path == tmp_path / "data" / "holdings.csv"
        assert config.data_dir.is_dir()
        assert config.artifacts_dir.is_dir()

    def test_base_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ETF_TRACKER_HOME", str(tmp_path))
        assert get_config().base_dir == tmp_path


class TestSettings:
    def test_missing_file_keeps_defaults(self, tmp_path):
        config = load_settings(Config(base_dir=tmp_path))
        assert config.retention_days == 90

    def test_overrides(self, tmp_path):
        config = Config(base_dir=tmp_path)
        config.settings_file.write_text(
            yaml.dump({"fund_code": "0050", "backend": "TABLE", "retention_days": 30, "extra": 1})
        )
        load_settings(config)
        assert config.fund_code == "0050"
        assert config.backend == "table"
        assert config.retention_days == 30

    def test_save_and_load(self, tmp_path):
        config = Config(base_dir=tmp_path, backend="memory", retention_days=7)
        save_settings(config)
        loaded = load_settings(Config(base_dir=tmp_path))
        assert loaded.backend == "memory"
        assert loaded.retention_days == 7

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("retention_days: 5\n")
        assert load_settings(Config(base_dir=tmp_path), path).retention_days == 5

    @pytest.mark.parametrize(
        "content",
        ["retention_days: -1\n", "backend: excel\n"],
    )
    def test_invalid_values(self, tmp_path, content):
        config = Config(base_dir=tmp_path)
        config.settings_file.write_text(content)
        with pytest.raises(ValueError):
            load_settings(config)
