"""
Observability for anglesite-resilience.

Provides the telemetry pipeline (sampling, batching, sinks), the error
registry (handlers, breadcrumbs, remote reporting) and redaction helpers
used before anything leaves the process or reaches a log line.

Wiring example:

    from anglesite_resilience.core.observability import (
        ErrorRegistry,
        HttpTelemetrySink,
        RetryTelemetry,
        TelemetryBatcher,
    )

    sink = HttpTelemetrySink("https://telemetry.example.com/events", api_key=key)
    batcher = TelemetryBatcher(sink, sampling_rate=0.25)
    orchestrator = RetryOrchestrator(telemetry=RetryTelemetry(sink, batcher))
    errors = ErrorRegistry(sink)
"""

from anglesite_resilience.core.observability.redaction import (
    SENSITIVE_KEYS,
    SENSITIVE_PATTERNS,
    redact_for_logging,
    redact_sensitive_data,
    redact_text,
)
from anglesite_resilience.core.observability.registry import (
    WILDCARD,
    Breadcrumb,
    ErrorHistoryEntry,
    ErrorRegistry,
    log_error_handler,
)
from anglesite_resilience.core.observability.sinks import (
    HttpTelemetrySink,
    InMemoryTelemetrySink,
    TelemetrySink,
)
from anglesite_resilience.core.observability.telemetry import (
    MAX_FIELD_LENGTH,
    RetryTelemetry,
    TelemetryBatcher,
    TelemetryStats,
)

__all__ = [
    # Redaction
    "SENSITIVE_KEYS",
    "SENSITIVE_PATTERNS",
    "redact_for_logging",
    "redact_sensitive_data",
    "redact_text",
    # Error registry
    "WILDCARD",
    "Breadcrumb",
    "ErrorHistoryEntry",
    "ErrorRegistry",
    "log_error_handler",
    # Sinks
    "HttpTelemetrySink",
    "InMemoryTelemetrySink",
    "TelemetrySink",
    # Telemetry
    "MAX_FIELD_LENGTH",
    "RetryTelemetry",
    "TelemetryBatcher",
    "TelemetryStats",
]
