"""Configuration package for anglesite-resilience.

Re-exports all public symbols. Callers can use
``from anglesite_resilience.config import AppConfig`` etc.

Sub-modules:
    parsing  – Boolean/number/list parsing helpers
    domains  – RetrySettings, TelemetrySettings, ErrorReportingSettings,
               TranslationSettings
    app      – AppConfig dataclass, get_config/set_config globals
    loader   – AppConfig loading/validation mixin (_AppConfigLoader)
"""

from anglesite_resilience.config.app import (
    _PACKAGE_VERSION,
    AppConfig,
    get_config,
    set_config,
)
from anglesite_resilience.config.domains import (
    VALID_ENVIRONMENTS,
    ErrorReportingSettings,
    RetrySettings,
    TelemetrySettings,
    TranslationSettings,
)
from anglesite_resilience.config.loader import CONFIG_FILE_ENV_VAR
from anglesite_resilience.config.parsing import _parse_bool, _try_parse_bool

__all__ = [
    "_PACKAGE_VERSION",
    "AppConfig",
    "get_config",
    "set_config",
    "VALID_ENVIRONMENTS",
    "ErrorReportingSettings",
    "RetrySettings",
    "TelemetrySettings",
    "TranslationSettings",
    "CONFIG_FILE_ENV_VAR",
    "_parse_bool",
    "_try_parse_bool",
]
