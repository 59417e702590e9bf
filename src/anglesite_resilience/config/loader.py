"""AppConfig loading and validation logic.

Provides ``_AppConfigLoader``, a mixin class whose methods are inherited by
``AppConfig`` (defined in ``app.py``). Splitting loading/validation logic
into its own module keeps ``app.py`` focused on field definitions.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, cast

if TYPE_CHECKING:
    from anglesite_resilience.config.app import AppConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from anglesite_resilience.config.domains import (
    VALID_ENVIRONMENTS,
    ErrorReportingSettings,
    RetrySettings,
    TelemetrySettings,
    TranslationSettings,
)
from anglesite_resilience.config.parsing import _parse_number, _try_parse_bool

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV_VAR = "ANGLESITE_CONFIG_FILE"
PROJECT_CONFIG_NAME = "anglesite.toml"
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _merge_dicts(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overlay`` into a copy of ``base`` (overlay wins)."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


class _AppConfigLoader:
    """Mixin providing config-loading methods for ``AppConfig``.

    At runtime ``self`` is always an ``AppConfig`` instance.
    """

    if TYPE_CHECKING:
        log_level: str
        retry: RetrySettings
        telemetry: TelemetrySettings
        error_reporting: ErrorReportingSettings
        translation: TranslationSettings
        loaded_files: List[Path]

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "AppConfig":
        """
        Create configuration from environment variables and TOML files.

        Priority (highest to lowest):
        1. Environment variables
        2. Explicit config file (argument or ANGLESITE_CONFIG_FILE)
        3. Project TOML config (./anglesite.toml)
        4. XDG config (~/.config/anglesite/config.toml)
        5. Default values
        """
        paths: List[Path] = []
        xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        xdg_config = Path(xdg_config_home) / "anglesite" / "config.toml"
        if xdg_config.exists():
            paths.append(xdg_config)
        project_config = Path(PROJECT_CONFIG_NAME)
        if project_config.exists():
            paths.append(project_config)
        explicit = config_file or os.environ.get(CONFIG_FILE_ENV_VAR)
        if explicit:
            paths.append(Path(explicit))

        data: Dict[str, Any] = {}
        loaded: List[Path] = []
        for path in paths:
            layer = cls._read_toml(path)
            if layer is not None:
                data = _merge_dicts(data, layer)
                loaded.append(path)
                logger.debug("Loaded config from %s", path)

        config = cls.from_toml_dict(data)
        config.loaded_files = loaded
        config._load_env()
        config._validate()
        return cast("AppConfig", config)

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Build a config from an already-parsed TOML document."""
        config = cls()
        if "log_level" in data:
            config.log_level = str(data["log_level"]).upper()
        config.retry = RetrySettings.from_toml_dict(data.get("retry") or {})
        config.telemetry = TelemetrySettings.from_toml_dict(data.get("telemetry") or {})
        config.error_reporting = ErrorReportingSettings.from_toml_dict(data.get("error_reporting") or {})
        config.translation = TranslationSettings.from_toml_dict(data.get("translation") or {})
        return cast("AppConfig", config)

    @staticmethod
    def _read_toml(path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return None
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Failed to load config from %s: %s", path, e)
            return None

    def _load_env(self) -> None:
        """Apply ANGLESITE_* environment overrides."""
        if env := os.environ.get("ANGLESITE_ENV"):
            self.translation.environment = env.strip().lower()
            self.error_reporting.environment = env.strip().lower()
        if level := os.environ.get("ANGLESITE_LOG_LEVEL"):
            self.log_level = level.strip().upper()
        if enabled := os.environ.get("ANGLESITE_TELEMETRY_ENABLED"):
            parsed = _try_parse_bool(enabled)
            if parsed is None:
                logger.warning("Invalid ANGLESITE_TELEMETRY_ENABLED value %r, ignoring", enabled)
            else:
                self.telemetry.enabled = parsed
        if rate := os.environ.get("ANGLESITE_TELEMETRY_SAMPLING_RATE"):
            self.telemetry.sampling_rate = _parse_number(
                rate, float, self.telemetry.sampling_rate, source="ANGLESITE_TELEMETRY_SAMPLING_RATE"
            )
        if endpoint := os.environ.get("ANGLESITE_TELEMETRY_ENDPOINT"):
            self.telemetry.endpoint = endpoint
        if api_key := os.environ.get("ANGLESITE_TELEMETRY_API_KEY"):
            self.telemetry.api_key = api_key
        if attempts := os.environ.get("ANGLESITE_RETRY_MAX_ATTEMPTS"):
            self.retry.max_attempts = _parse_number(
                attempts, int, self.retry.max_attempts, source="ANGLESITE_RETRY_MAX_ATTEMPTS"
            )

    def _validate(self) -> None:
        """Reset out-of-range values to their defaults, logging a warning for each."""
        if self.log_level not in _VALID_LOG_LEVELS:
            logger.warning("Invalid log level %r, using INFO", self.log_level)
            self.log_level = "INFO"

        telemetry_defaults = TelemetrySettings()
        if not 0.0 <= self.telemetry.sampling_rate <= 1.0:
            logger.warning("telemetry.sampling_rate must be between 0 and 1, got %s", self.telemetry.sampling_rate)
            self.telemetry.sampling_rate = telemetry_defaults.sampling_rate
        if self.telemetry.batch_size < 1:
            logger.warning("telemetry.batch_size must be at least 1, got %s", self.telemetry.batch_size)
            self.telemetry.batch_size = telemetry_defaults.batch_size
        if self.telemetry.flush_interval_seconds <= 0:
            logger.warning(
                "telemetry.flush_interval_seconds must be positive, got %s", self.telemetry.flush_interval_seconds
            )
            self.telemetry.flush_interval_seconds = telemetry_defaults.flush_interval_seconds
        if self.telemetry.max_field_length < 1:
            logger.warning("telemetry.max_field_length must be at least 1, got %s", self.telemetry.max_field_length)
            self.telemetry.max_field_length = telemetry_defaults.max_field_length

        retry_defaults = RetrySettings()
        if self.retry.max_attempts < 1:
            logger.warning("retry.max_attempts must be at least 1, got %s", self.retry.max_attempts)
            self.retry.max_attempts = retry_defaults.max_attempts
        if self.retry.base_delay_ms < 0 or self.retry.max_delay_ms < 0:
            logger.warning("retry delays must be non-negative, using defaults")
            self.retry.base_delay_ms = retry_defaults.base_delay_ms
            self.retry.max_delay_ms = retry_defaults.max_delay_ms

        reporting_defaults = ErrorReportingSettings()
        if self.error_reporting.max_breadcrumbs < 1:
            logger.warning("error_reporting.max_breadcrumbs must be at least 1, got %s", self.error_reporting.max_breadcrumbs)
            self.error_reporting.max_breadcrumbs = reporting_defaults.max_breadcrumbs
        if self.error_reporting.max_retries < 1:
            logger.warning("error_reporting.max_retries must be at least 1, got %s", self.error_reporting.max_retries)
            self.error_reporting.max_retries = reporting_defaults.max_retries
        if self.error_reporting.retry_delay_ms < 0:
            logger.warning("error_reporting.retry_delay_ms must be non-negative, got %s", self.error_reporting.retry_delay_ms)
            self.error_reporting.retry_delay_ms = reporting_defaults.retry_delay_ms
        if self.error_reporting.max_history < 1:
            logger.warning("error_reporting.max_history must be at least 1, got %s", self.error_reporting.max_history)
            self.error_reporting.max_history = reporting_defaults.max_history
        if self.error_reporting.rate_limit_per_minute < 1:
            logger.warning(
                "error_reporting.rate_limit_per_minute must be at least 1, got %s",
                self.error_reporting.rate_limit_per_minute,
            )
            self.error_reporting.rate_limit_per_minute = reporting_defaults.rate_limit_per_minute

        if self.translation.environment not in VALID_ENVIRONMENTS:
            logger.warning(
                "Invalid environment %r. Falling back to 'production'. Valid options: %s",
                self.translation.environment,
                ", ".join(VALID_ENVIRONMENTS),
            )
            self.translation.environment = "production"
        if self.translation.max_message_length < 4:
            logger.warning(
                "translation.max_message_length must be at least 4, got %s", self.translation.max_message_length
            )
            self.translation.max_message_length = TranslationSettings().max_message_length
