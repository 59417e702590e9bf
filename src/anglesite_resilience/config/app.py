"""AppConfig dataclass and global configuration state.

This module defines the ``AppConfig`` class (field declarations and simple
accessor methods) and the global ``get_config`` / ``set_config`` helpers
used by the CLI. Library components take explicit settings instances.
Loading and validation logic lives in the ``_AppConfigLoader`` mixin
(``loader.py``) which ``AppConfig`` inherits from.
"""

import logging
from dataclasses import asdict, dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version
from pathlib import Path
from typing import Any, Dict, List, Optional

from anglesite_resilience.config.domains import (
    ErrorReportingSettings,
    RetrySettings,
    TelemetrySettings,
    TranslationSettings,
)
from anglesite_resilience.config.loader import _AppConfigLoader

_SECRET_MARKER = "[REDACTED]"


def _get_version() -> str:
    """Get package version from metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("anglesite-resilience")
    except PackageNotFoundError:
        return "0.1.0"  # Fallback for dev without install


_PACKAGE_VERSION = _get_version()


@dataclass
class AppConfig(_AppConfigLoader):
    """Application configuration with support for env vars and TOML overrides."""

    log_level: str = "INFO"

    # Retry policy table
    retry: RetrySettings = field(default_factory=RetrySettings)

    # Telemetry pipeline
    telemetry: TelemetrySettings = field(default_factory=TelemetrySettings)

    # Remote error reporting
    error_reporting: ErrorReportingSettings = field(default_factory=ErrorReportingSettings)

    # User-facing translation
    translation: TranslationSettings = field(default_factory=TranslationSettings)

    loaded_files: List[Path] = field(default_factory=list, repr=False)

    @property
    def version(self) -> str:
        return self.error_reporting.version or _PACKAGE_VERSION

    def to_dict(self, redact_secrets: bool = True) -> Dict[str, Any]:
        """Plain-dict view of the configuration; the telemetry API key is redacted by default."""
        data = asdict(self)
        data["loaded_files"] = [str(path) for path in self.loaded_files]
        if redact_secrets and data["telemetry"].get("api_key"):
            data["telemetry"]["api_key"] = _SECRET_MARKER
        return data

    def setup_logging(self) -> None:
        """Configure the package logger based on settings.

        A stderr handler is installed only when the root logger has none.
        """
        level = getattr(logging, self.log_level, logging.INFO)
        logging.getLogger("anglesite_resilience").setLevel(level)
        logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _config
    _config = config
