"""Tests for configuration loading."""

import json

import pytest

from indexsense.config import (
    Config,
    get_config,
    load_config_from_env,
    load_config_from_file,
    reset_config,
)
from indexsense.exceptions import ConfigurationError


class TestConfigDefaults:
    def test_defaults(self):
        config = Config()
        assert config.high_severity_ms == 1000
        assert config.medium_severity_ms == 500
        assert config.slow_op_threshold_ms == 100
        assert config.catalog_file is None

    def test_client_kwargs_are_time_bounded(self):
        kwargs = Config(socket_timeout_ms=1500).mongo_client_kwargs()
        assert kwargs == {
            "serverSelectionTimeoutMS": 5000,
            "connectTimeoutMS": 5000,
            "socketTimeoutMS": 1500,
        }

    def test_max_time_scope_is_documented(self):
        description = Config.model_fields["max_time_ms"].description
        assert "index builds" in description


class TestEnvironment:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("INDEXSENSE_DATABASE", "storefront")
        monkeypatch.setenv("INDEXSENSE_HIGH_SEVERITY_MS", "2000")
        monkeypatch.setenv("INDEXSENSE_MAX_TIME_MS", "750")

        config = load_config_from_env()

        assert config.database == "storefront"
        assert config.high_severity_ms == 2000
        assert config.max_time_ms == 750

    def test_unknown_variables_are_ignored(self, monkeypatch):
        monkeypatch.setenv("INDEXSENSE_ENVIRONMENT", "production")
        monkeypatch.setenv("INDEXSENSE_VERBOSE", "1")
        assert load_config_from_env() == Config()

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("INDEXSENSE_MAX_TIME_MS", "soon")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_env()
        assert exc_info.value.config_key == "max_time_ms"

    def test_get_config_is_cached(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("INDEXSENSE_DATABASE", "other")
        assert get_config() is first

        reset_config()
        assert get_config().database == "other"


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_time_ms": 0},
            {"socket_timeout_ms": -1},
            {"medium_severity_ms": 1000, "high_severity_ms": 1000},
            {"medium_severity_ms": -5},
            {"slow_op_threshold_ms": -1},
        ],
    )
    def test_rejects_invalid_values(self, monkeypatch, overrides):
        for key, value in overrides.items():
            monkeypatch.setenv(f"INDEXSENSE_{key.upper()}", str(value))
        with pytest.raises(ConfigurationError):
            load_config_from_env()


class TestConfigFile:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "indexsense.yaml"
        path.write_text("database: reporting\nslow_op_threshold_ms: 250\n")

        config = load_config_from_file(path)

        assert config.database == "reporting"
        assert config.slow_op_threshold_ms == 250

    def test_json_file_via_env(self, tmp_path, monkeypatch):
        path = tmp_path / "indexsense.json"
        path.write_text(json.dumps({"catalog_file": "indexes.yaml", "high_severity_ms": 3000}))
        monkeypatch.setenv("INDEXSENSE_CONFIG_FILE", str(path))

        config = get_config()

        assert config.catalog_file == "indexes.yaml"
        assert config.high_severity_ms == 3000

    def test_missing_file_uses_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INDEXSENSE_DATABASE", "fromenv")
        config = load_config_from_file(tmp_path / "missing.yaml")
        assert config.database == "fromenv"

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config_from_file(path)
