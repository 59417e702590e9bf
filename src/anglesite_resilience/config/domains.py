"""Per-component settings dataclasses.

Contains small, focused settings classes for the retry policy table, the
telemetry pipeline, remote error reporting and message translation.
Each is built from its TOML section with ``from_toml_dict``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from anglesite_resilience.config.parsing import _parse_bool, _parse_number, _parse_str_list

VALID_ENVIRONMENTS = ("development", "production")


@dataclass
class RetrySettings:
    """Configuration for the retry policy registry.

    Attributes:
        max_attempts: Default attempts per invocation
        base_delay_ms: Default initial backoff delay
        max_delay_ms: Default backoff cap
        retryable_error_codes: Codes/message fragments that are retried
            (empty keeps the built-in list)
        blacklist: Channels added to the built-in never-retry set
        channels: Per-channel partial overrides
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 5000
    retryable_error_codes: List[str] = field(default_factory=list)
    blacklist: List[str] = field(default_factory=list)
    channels: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "RetrySettings":
        """Create settings from the ``[retry]`` TOML section."""
        channels: Dict[str, Dict[str, Any]] = {}
        for name, values in (data.get("channels") or {}).items():
            if isinstance(values, dict):
                channels[str(name)] = dict(values)
        return cls(
            max_attempts=_parse_number(data.get("max_attempts", 3), int, 3, source="retry.max_attempts"),
            base_delay_ms=_parse_number(data.get("base_delay_ms", 1000), int, 1000, source="retry.base_delay_ms"),
            max_delay_ms=_parse_number(data.get("max_delay_ms", 5000), int, 5000, source="retry.max_delay_ms"),
            retryable_error_codes=_parse_str_list(data.get("retryable_error_codes")),
            blacklist=_parse_str_list(data.get("blacklist")),
            channels=channels,
        )


@dataclass
class TelemetrySettings:
    """Configuration for the telemetry batcher and HTTP sink.

    Attributes:
        enabled: Master switch for telemetry capture
        sampling_rate: Probability (0.0 to 1.0) an event is kept
        batch_size: Events per flushed batch
        flush_interval_seconds: Interval timer for partial batches
        max_field_length: Cap on any text field in a flushed event
        config_ttl_seconds: Lifetime of the cached sink enabled flag
        endpoint: Collector URL (telemetry stays local without one)
        api_key: Bearer token for the collector
        timeout_seconds: HTTP request timeout
    """

    enabled: bool = True
    sampling_rate: float = 1.0
    batch_size: int = 10
    flush_interval_seconds: float = 30.0
    max_field_length: int = 10_000
    config_ttl_seconds: float = 60.0
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "TelemetrySettings":
        """Create settings from the ``[telemetry]`` TOML section."""
        return cls(
            enabled=_parse_bool(data.get("enabled", True)),
            sampling_rate=_parse_number(data.get("sampling_rate", 1.0), float, 1.0, source="telemetry.sampling_rate"),
            batch_size=_parse_number(data.get("batch_size", 10), int, 10, source="telemetry.batch_size"),
            flush_interval_seconds=_parse_number(
                data.get("flush_interval_seconds", 30.0), float, 30.0, source="telemetry.flush_interval_seconds"
            ),
            max_field_length=_parse_number(
                data.get("max_field_length", 10_000), int, 10_000, source="telemetry.max_field_length"
            ),
            config_ttl_seconds=_parse_number(
                data.get("config_ttl_seconds", 60.0), float, 60.0, source="telemetry.config_ttl_seconds"
            ),
            endpoint=data.get("endpoint") or None,
            api_key=data.get("api_key") or None,
            timeout_seconds=_parse_number(data.get("timeout_seconds", 10.0), float, 10.0, source="telemetry.timeout_seconds"),
        )


@dataclass
class ErrorReportingSettings:
    """Configuration for the error registry's remote reporting.

    Attributes:
        enabled: Send handled errors to the telemetry sink
        include_breadcrumbs: Attach the breadcrumb trail to reports
        include_stack_trace: Keep stack traces in reports
        max_breadcrumbs: Breadcrumb ring buffer capacity
        max_retries: Delivery attempts per report
        retry_delay_ms: Delay between delivery attempts
        max_history: Capacity of the in-memory error history
        rate_limit_per_minute: Identical errors recorded per minute before
            further occurrences are dropped from history and reporting
        environment: Reported environment name
        version: Reported application version (package version when unset)
    """

    enabled: bool = True
    include_breadcrumbs: bool = True
    include_stack_trace: bool = True
    max_breadcrumbs: int = 50
    max_retries: int = 3
    retry_delay_ms: int = 1000
    max_history: int = 100
    rate_limit_per_minute: int = 100
    environment: str = "production"
    version: Optional[str] = None

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ErrorReportingSettings":
        """Create settings from the ``[error_reporting]`` TOML section."""
        return cls(
            enabled=_parse_bool(data.get("enabled", True)),
            include_breadcrumbs=_parse_bool(data.get("include_breadcrumbs", True)),
            include_stack_trace=_parse_bool(data.get("include_stack_trace", True)),
            max_breadcrumbs=_parse_number(data.get("max_breadcrumbs", 50), int, 50, source="error_reporting.max_breadcrumbs"),
            max_retries=_parse_number(data.get("max_retries", 3), int, 3, source="error_reporting.max_retries"),
            retry_delay_ms=_parse_number(
                data.get("retry_delay_ms", 1000), int, 1000, source="error_reporting.retry_delay_ms"
            ),
            max_history=_parse_number(data.get("max_history", 100), int, 100, source="error_reporting.max_history"),
            rate_limit_per_minute=_parse_number(
                data.get("rate_limit_per_minute", 100), int, 100, source="error_reporting.rate_limit_per_minute"
            ),
            environment=str(data.get("environment", "production")),
            version=data.get("version") or None,
        )


@dataclass
class TranslationSettings:
    """Configuration for user-facing error translation.

    Attributes:
        environment: ``development`` includes sanitized stack traces in
            technical messages; ``production`` does not
        max_message_length: Cap on the user-facing message
    """

    environment: str = "production"
    max_message_length: int = 500

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "TranslationSettings":
        """Create settings from the ``[translation]`` TOML section."""
        return cls(
            environment=str(data.get("environment", "production")),
            max_message_length=_parse_number(
                data.get("max_message_length", 500), int, 500, source="translation.max_message_length"
            ),
        )
