"""Retry data models, outcome types, and protocols.

Defines the core types used across the resilience sub-package:
- RetryConfig for per-channel retry tuning
- TelemetryEvent for retry/success/failure reporting
- Success / Failure / Aborted invocation outcomes
- SleepFunc and TelemetryEmitter protocols for injection
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, Iterable, Optional, Protocol, TypeVar, Union

from anglesite_resilience.core.errors.base import StructuredError

T = TypeVar("T")

DEFAULT_RETRYABLE_ERRORS: FrozenSet[str] = frozenset(
    {"TIMEOUT", "ECONNREFUSED", "ECONNRESET", "ENOTFOUND", "Network error"}
)


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for one invocation channel.

    Delays are in milliseconds.
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 5000
    retryable_error_codes: FrozenSet[str] = DEFAULT_RETRYABLE_ERRORS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < 0:
            raise ValueError(f"max_delay_ms must be >= 0, got {self.max_delay_ms}")
        object.__setattr__(self, "retryable_error_codes", normalize_codes(self.retryable_error_codes))

    def merged(self, overrides: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "RetryConfig":
        """Return a copy with non-None override fields applied (override wins)."""
        known = {f.name for f in fields(self)}
        changes = {
            key: value
            for key, value in {**(overrides or {}), **kwargs}.items()
            if key in known and value is not None
        }
        return replace(self, **changes) if changes else self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "retryable_error_codes": sorted(self.retryable_error_codes),
        }


class TelemetryOutcome(str, Enum):
    """What a telemetry event records."""

    RETRY = "retry"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class TelemetryEvent:
    """One retry-related telemetry record.

    ``attempt`` is the attempt the event describes (1-based); for terminal
    events it equals the total number of attempts made.
    """

    channel: str
    attempt: int
    total_attempts: int
    outcome: TelemetryOutcome
    delay_ms: int = 0
    error: Optional[StructuredError] = None
    success: bool = False
    total_duration_ms: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def describe(self) -> str:
        if self.outcome == TelemetryOutcome.RETRY:
            return f"Retry attempt {self.attempt}/{self.total_attempts}: {self.channel}"
        if self.outcome == TelemetryOutcome.SUCCESS:
            return f"Retry succeeded after {self.attempt} attempts: {self.channel}"
        return f"Retry failed after {self.attempt} attempts: {self.channel}"

    def to_payload(self) -> Dict[str, Any]:
        """Convert to the sink payload shape."""
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "message": self.describe(),
            "component": "InvocationRetryOrchestrator",
            "context": {
                "channel": self.channel,
                "outcome": self.outcome.value,
                "attempt": self.attempt,
                "total_attempts": self.total_attempts,
                "delay_ms": self.delay_ms,
                "success": self.success,
                "total_duration_ms": self.total_duration_ms,
            },
        }
        if self.error is not None:
            payload["error"] = {
                "code": self.error.code,
                "category": self.error.category.value,
                "severity": self.error.severity.value,
                "message": self.error.message,
                "stack": self.error.stack,
            }
        return payload


# ---------------------------------------------------------------------------
# Invocation outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int = 1
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self, default: Any = None) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Terminal failure carrying the classified error of the last attempt."""

    error: StructuredError
    attempts: int = 1
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self, default: Any = None) -> Any:
        raise self.error


@dataclass(frozen=True)
class Aborted:
    """Retry wait cancelled by the caller.

    Not a user-facing failure: ``unwrap`` returns the default instead of
    raising.
    """

    attempts: int = 0
    duration_ms: int = 0
    last_error: Optional[StructuredError] = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self, default: Any = None) -> Any:
        return default


InvocationOutcome = Union[Success[T], Failure, Aborted]


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


class TelemetryEmitter(Protocol):
    """Receives retry telemetry events; must not block or raise."""

    def emit(self, event: TelemetryEvent) -> None: ...


def normalize_codes(codes: Iterable[str]) -> FrozenSet[str]:
    return frozenset(str(code) for code in codes if str(code).strip())
