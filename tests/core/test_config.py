# tests/core/test_config.py
"""Tests for settings schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError


class TestSettingsDefaults:
    def test_defaults_match_documented_bounds(self) -> None:
        from phaseconf.core.config import PhaseConfSettings

        settings = PhaseConfSettings()

        assert settings.app_name == "AI.C9d.Web"
        assert settings.token.variable_name == "PHASE_SERVICE_TOKEN"
        assert settings.client.timeout_seconds == 5.0
        assert settings.cache.ttl_seconds == 300.0
        assert settings.cache.max_entries == 100
        assert settings.cache.sweep_interval_seconds == 60.0
        assert settings.monitor.max_records == 1000
        assert settings.monitor.max_log_entries == 1000
        assert settings.monitor.error_rate_cache_seconds == 300.0
        assert settings.retry.max_attempts == 3

    def test_settings_are_frozen(self) -> None:
        from phaseconf.core.config import PhaseConfSettings

        settings = PhaseConfSettings()

        with pytest.raises(ValidationError):
            settings.app_name = "other"  # type: ignore[misc]

    def test_blank_app_name_rejected(self) -> None:
        from phaseconf.core.config import PhaseConfSettings

        with pytest.raises(ValidationError):
            PhaseConfSettings(app_name="   ")

    def test_cache_bounds_validated(self) -> None:
        from phaseconf.core.config import CacheSettings

        with pytest.raises(ValidationError):
            CacheSettings(max_entries=0)


class TestDefaultEnvironment:
    def test_app_env_wins_over_node_env(self) -> None:
        from phaseconf.core.config import PhaseConfSettings

        settings = PhaseConfSettings()

        assert settings.default_environment_name({"APP_ENV": "staging", "NODE_ENV": "production"}) == "staging"

    def test_node_env_used_when_app_env_blank(self) -> None:
        from phaseconf.core.config import PhaseConfSettings

        settings = PhaseConfSettings()

        assert settings.default_environment_name({"APP_ENV": "  ", "NODE_ENV": "production"}) == "production"

    def test_falls_back_to_development(self) -> None:
        from phaseconf.core.config import PhaseConfSettings

        assert PhaseConfSettings().default_environment_name({}) == "development"


class TestLoadSettings:
    def test_missing_file_raises_settings_error(self, tmp_path: Path) -> None:
        from phaseconf.contracts import SettingsError
        from phaseconf.core.config import load_settings

        with pytest.raises(SettingsError, match="not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_yaml_file_values_applied(self, tmp_path: Path) -> None:
        from phaseconf.core.config import load_settings

        config_file = tmp_path / "phaseconf.yaml"
        config_file.write_text("app_name: billing\ncache:\n  ttl_seconds: 30\n  max_entries: 5\n")

        settings = load_settings(config_file)

        assert settings.app_name == "billing"
        assert settings.cache.ttl_seconds == 30
        assert settings.cache.max_entries == 5
        assert settings.cache.sweep_interval_seconds == 60.0

    def test_env_override_for_nested_key(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from phaseconf.core.config import load_settings

        monkeypatch.setenv("PHASECONF_CLIENT__TIMEOUT_SECONDS", "2.5")

        settings = load_settings()

        assert settings.client.timeout_seconds == 2.5

    def test_invalid_values_raise_settings_error(self, tmp_path: Path) -> None:
        from phaseconf.contracts import SettingsError
        from phaseconf.core.config import load_settings

        config_file = tmp_path / "phaseconf.yaml"
        config_file.write_text("cache:\n  max_entries: -1\n")

        with pytest.raises(SettingsError, match="Invalid phaseconf settings"):
            load_settings(config_file)


class TestDiscoverAppName:
    def test_reads_tool_table(self, tmp_path: Path) -> None:
        from phaseconf.core.config import discover_app_name

        (tmp_path / "pyproject.toml").write_text('[tool.phaseconf]\napp_name = " billing-api "\n')

        assert discover_app_name(tmp_path) == "billing-api"

    def test_missing_file_uses_default(self, tmp_path: Path) -> None:
        from phaseconf.core.config import discover_app_name

        assert discover_app_name(tmp_path, default="fallback") == "fallback"

    def test_unparseable_file_uses_default(self, tmp_path: Path) -> None:
        from phaseconf.core.config import DEFAULT_APP_NAME, discover_app_name

        (tmp_path / "pyproject.toml").write_text("this is [not toml")

        assert discover_app_name(tmp_path) == DEFAULT_APP_NAME
