"""Tests for layered configuration loading and environment overrides."""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from anglesite_resilience.config import (
    AppConfig,
    ErrorReportingSettings,
    RetrySettings,
    TelemetrySettings,
    TranslationSettings,
    _parse_bool,
    _try_parse_bool,
    get_config,
    set_config,
)


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run from an empty directory with no ANGLESITE_* variables and an empty XDG home."""
    for key in list(os.environ):
        if key.startswith("ANGLESITE_"):
            monkeypatch.delenv(key)
    xdg = tmp_path / "xdg"
    xdg.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return tmp_path


class TestDefaults:
    """Tests for default configuration values."""

    def test_defaults_without_files(self, isolated_env):
        config = AppConfig.from_env()
        assert config.log_level == "INFO"
        assert config.retry.max_attempts == 3
        assert config.telemetry.sampling_rate == 1.0
        assert config.telemetry.batch_size == 10
        assert config.error_reporting.max_breadcrumbs == 50
        assert config.translation.environment == "production"
        assert config.loaded_files == []

    def test_settings_from_empty_sections(self):
        assert RetrySettings.from_toml_dict({}) == RetrySettings()
        assert TelemetrySettings.from_toml_dict({}) == TelemetrySettings()
        assert ErrorReportingSettings.from_toml_dict({}) == ErrorReportingSettings()
        assert TranslationSettings.from_toml_dict({}) == TranslationSettings()


class TestConfigHierarchy:
    """XDG config, then project anglesite.toml, then explicit file, then environment."""

    def test_xdg_config_loaded(self, isolated_env):
        xdg_file = isolated_env / "xdg" / "anglesite" / "config.toml"
        xdg_file.parent.mkdir()
        xdg_file.write_text('log_level = "debug"\n\n[telemetry]\nbatch_size = 25\n')

        config = AppConfig.from_env()

        assert config.log_level == "DEBUG"
        assert config.telemetry.batch_size == 25
        assert config.loaded_files == [xdg_file]

    def test_project_overrides_xdg(self, isolated_env):
        xdg_file = isolated_env / "xdg" / "anglesite" / "config.toml"
        xdg_file.parent.mkdir()
        xdg_file.write_text("[telemetry]\nbatch_size = 25\nsampling_rate = 0.5\n")
        Path("anglesite.toml").write_text("[telemetry]\nbatch_size = 40\n")

        config = AppConfig.from_env()

        assert config.telemetry.batch_size == 40
        assert config.telemetry.sampling_rate == 0.5
        assert len(config.loaded_files) == 2

    def test_explicit_file_overrides_project(self, isolated_env):
        Path("anglesite.toml").write_text("[retry]\nmax_attempts = 4\nbase_delay_ms = 200\n")
        explicit = isolated_env / "custom.toml"
        explicit.write_text("[retry]\nmax_attempts = 6\n")

        config = AppConfig.from_env(str(explicit))

        assert config.retry.max_attempts == 6
        assert config.retry.base_delay_ms == 200

    def test_config_file_env_var(self, isolated_env, monkeypatch):
        explicit = isolated_env / "from-env.toml"
        explicit.write_text('[translation]\nenvironment = "development"\n')
        monkeypatch.setenv("ANGLESITE_CONFIG_FILE", str(explicit))

        assert AppConfig.from_env().translation.environment == "development"

    def test_channel_overrides_and_blacklist(self, isolated_env):
        Path("anglesite.toml").write_text(
            """
[retry]
blacklist = ["deploy-site"]
retryable_error_codes = "EBUSY, ETIMEDOUT"

[retry.channels."save-file-content"]
max_attempts = 4
"""
        )
        config = AppConfig.from_env()
        assert config.retry.blacklist == ["deploy-site"]
        assert config.retry.retryable_error_codes == ["EBUSY", "ETIMEDOUT"]
        assert config.retry.channels == {"save-file-content": {"max_attempts": 4}}

    def test_missing_explicit_file_warns(self, isolated_env, caplog):
        with caplog.at_level(logging.WARNING, logger="anglesite_resilience"):
            config = AppConfig.from_env(str(isolated_env / "nope.toml"))
        assert config.loaded_files == []
        assert "Config file not found" in caplog.text

    def test_warning_captured_when_package_logger_raised(self, isolated_env, caplog):
        package_logger = logging.getLogger("anglesite_resilience")
        previous = package_logger.level
        package_logger.setLevel(logging.ERROR)
        try:
            with caplog.at_level(logging.WARNING, logger="anglesite_resilience"):
                AppConfig.from_env(str(isolated_env / "nope.toml"))
        finally:
            package_logger.setLevel(previous)
        assert "Config file not found" in caplog.text

    def test_invalid_toml_warns_and_is_skipped(self, isolated_env, caplog):
        Path("anglesite.toml").write_text("[telemetry\nbroken")
        with caplog.at_level(logging.WARNING, logger="anglesite_resilience"):
            config = AppConfig.from_env()
        assert config.loaded_files == []
        assert "Failed to load config" in caplog.text


class TestEnvironmentOverrides:
    """Tests for ANGLESITE_* environment variables."""

    def test_env_beats_files(self, isolated_env, monkeypatch):
        Path("anglesite.toml").write_text("[telemetry]\nsampling_rate = 0.5\nenabled = true\n")
        monkeypatch.setenv("ANGLESITE_TELEMETRY_SAMPLING_RATE", "0.1")
        monkeypatch.setenv("ANGLESITE_TELEMETRY_ENABLED", "off")
        monkeypatch.setenv("ANGLESITE_TELEMETRY_ENDPOINT", "https://telemetry.test/events")
        monkeypatch.setenv("ANGLESITE_TELEMETRY_API_KEY", "k-1")
        monkeypatch.setenv("ANGLESITE_RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("ANGLESITE_LOG_LEVEL", "warning")

        config = AppConfig.from_env()

        assert config.telemetry.sampling_rate == 0.1
        assert config.telemetry.enabled is False
        assert config.telemetry.endpoint == "https://telemetry.test/events"
        assert config.telemetry.api_key == "k-1"
        assert config.retry.max_attempts == 5
        assert config.log_level == "WARNING"

    def test_env_sets_both_environments(self, isolated_env, monkeypatch):
        monkeypatch.setenv("ANGLESITE_ENV", "Development")
        config = AppConfig.from_env()
        assert config.translation.environment == "development"
        assert config.error_reporting.environment == "development"

    def test_unparseable_bool_ignored(self, isolated_env, monkeypatch):
        monkeypatch.setenv("ANGLESITE_TELEMETRY_ENABLED", "maybe")
        assert AppConfig.from_env().telemetry.enabled is True

    def test_unparseable_number_keeps_value(self, isolated_env, monkeypatch):
        monkeypatch.setenv("ANGLESITE_RETRY_MAX_ATTEMPTS", "lots")
        assert AppConfig.from_env().retry.max_attempts == 3


class TestValidation:
    """Out-of-range values are reset to defaults with a warning."""

    def test_out_of_range_values_reset(self, isolated_env, caplog):
        Path("anglesite.toml").write_text(
            """
log_level = "LOUD"

[telemetry]
sampling_rate = 3.0
batch_size = 0

[retry]
max_attempts = 0

[error_reporting]
max_breadcrumbs = -1

[translation]
environment = "staging"
"""
        )
        with caplog.at_level(logging.WARNING, logger="anglesite_resilience"):
            config = AppConfig.from_env()

        assert config.log_level == "INFO"
        assert config.telemetry.sampling_rate == 1.0
        assert config.telemetry.batch_size == 10
        assert config.retry.max_attempts == 3
        assert config.error_reporting.max_breadcrumbs == 50
        assert config.translation.environment == "production"
        assert "sampling_rate" in caplog.text

    def test_non_numeric_toml_value(self, caplog):
        with caplog.at_level(logging.WARNING, logger="anglesite_resilience"):
            settings = TelemetrySettings.from_toml_dict({"batch_size": "many"})
        assert settings.batch_size == 10
        assert "telemetry.batch_size" in caplog.text


class TestAppConfigHelpers:
    """Tests for to_dict, version and global accessors."""

    def test_to_dict_redacts_api_key(self):
        config = AppConfig()
        config.telemetry.api_key = "k-secret"
        assert config.to_dict()["telemetry"]["api_key"] == "[REDACTED]"
        assert config.to_dict(redact_secrets=False)["telemetry"]["api_key"] == "k-secret"

    def test_version_prefers_configured(self):
        config = AppConfig()
        config.error_reporting.version = "2.0.0"
        assert config.version == "2.0.0"

    def test_global_config(self):
        config = AppConfig()
        set_config(config)
        try:
            assert get_config() is config
        finally:
            set_config(None)

    def test_get_config_loads_lazily(self, isolated_env):
        set_config(None)
        with patch.object(AppConfig, "from_env", return_value=AppConfig(log_level="DEBUG")) as mock_from_env:
            try:
                assert get_config().log_level == "DEBUG"
                get_config()
            finally:
                set_config(None)
        mock_from_env.assert_called_once()


class TestBoolParsing:
    """Tests for boolean parsing helpers."""

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("YES", True), ("off", False), (False, False)])
    def test_parse_bool(self, value, expected):
        assert _parse_bool(value) is expected

    def test_try_parse_bool_unknown(self):
        assert _try_parse_bool("maybe") is None
        assert _try_parse_bool("no") is False
