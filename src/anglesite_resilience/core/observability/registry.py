"""
Central error registry and dispatcher.

Holds error handlers keyed by error type name (or ``*`` for every error),
a bounded breadcrumb trail, a global context plus a scoped context stack,
a bounded history of handled errors with per-error rate limiting, and
best-effort remote reporting with its own small retry loop.

Handlers, remote reporting and breadcrumb bookkeeping never raise into the
caller. Registries are plain instances: construct one per application and
pass it to the components that need it.

Usage:
    registry = ErrorRegistry(sink=HttpTelemetrySink(endpoint))
    registry.register_handler("PortAlreadyInUseError", show_port_dialog)

    with registry.error_context(operation="start-server", website_id=site):
        try:
            await start_server(site)
        except Exception as e:
            await registry.handle_error(e)
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
)

from anglesite_resilience.core.concurrency import BackgroundTasks, maybe_await
from anglesite_resilience.core.errors.base import ErrorSeverity, StructuredError
from anglesite_resilience.core.errors.utilities import get_statistics, wrap
from anglesite_resilience.core.observability.redaction import redact_for_logging, redact_sensitive_data
from anglesite_resilience.core.observability.sinks import TelemetrySink
from anglesite_resilience.core.resilience.models import SleepFunc

if TYPE_CHECKING:
    from anglesite_resilience.config import ErrorReportingSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

WILDCARD = "*"
DEFAULT_MAX_BREADCRUMBS = 50
DEFAULT_REPORT_RETRIES = 3
DEFAULT_REPORT_RETRY_DELAY_MS = 1000
DEFAULT_MAX_HISTORY = 100
DEFAULT_RATE_LIMIT_PER_MINUTE = 100
RATE_LIMIT_WINDOW_SECONDS = 60.0
# Rate limit keys are pruned once this many distinct errors are tracked
RATE_LIMIT_MAX_KEYS = 100

ErrorHandler = Callable[[StructuredError], Any]
RecoveryFunc = Callable[[StructuredError], Any]

_SEVERITY_LOG_LEVELS = {
    ErrorSeverity.CRITICAL: logging.ERROR,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.LOW: logging.INFO,
}


@dataclass(frozen=True)
class Breadcrumb:
    """A timestamped trace entry preceding an error."""

    message: str
    level: str = "info"
    category: str = "default"
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
            "category": self.category,
        }
        if self.data is not None:
            result["data"] = dict(self.data)
        return result


@dataclass(frozen=True)
class ErrorHistoryEntry:
    """A handled error kept in the registry history."""

    error: StructuredError
    context: Dict[str, Any]
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return redact_sensitive_data(
            {
                "timestamp": self.recorded_at.isoformat(),
                "error": self.error.serialize(),
                "context": self.context,
            }
        )


@dataclass
class RegistryStats:
    handled: int = 0
    handler_failures: int = 0
    rate_limited: int = 0
    reported: int = 0
    report_failures: int = 0


def log_error_handler(error: StructuredError) -> None:
    """Default wildcard handler: log at a level derived from severity."""
    level = _SEVERITY_LOG_LEVELS.get(error.severity, logging.WARNING)
    logger.log(
        level,
        "[%s] %s: %s",
        error.category.value,
        error.code,
        redact_for_logging(error.message),
        extra={"error_code": error.code, "error_severity": error.severity.value},
    )


class ErrorRegistry:
    """Handler registry, breadcrumb trail and remote reporter for errors.

    Args:
        sink: Remote reporting backend; reporting is skipped without one.
        enabled: Whether remote reporting is enabled.
        include_breadcrumbs: Attach the breadcrumb trail to reports.
        include_stack_trace: Keep stack traces in reported errors.
        max_breadcrumbs: Capacity of the breadcrumb ring buffer.
        max_retries: Attempts made to deliver each report.
        retry_delay_ms: Fixed delay between delivery attempts.
        environment: Reported environment name.
        version: Reported application version.
        max_history: Capacity of the handled-error history.
        rate_limit_per_minute: Occurrences of one error (same code and
            message) recorded and reported per minute; later ones still
            reach the handlers.
        log_errors: Register ``log_error_handler`` as a wildcard handler.
        sleep_func: Async sleep taking seconds, injectable for tests.
        clock: Monotonic clock in seconds used by the rate limiter.
    """

    def __init__(
        self,
        sink: Optional[TelemetrySink] = None,
        *,
        enabled: bool = True,
        include_breadcrumbs: bool = True,
        include_stack_trace: bool = True,
        max_breadcrumbs: int = DEFAULT_MAX_BREADCRUMBS,
        max_retries: int = DEFAULT_REPORT_RETRIES,
        retry_delay_ms: int = DEFAULT_REPORT_RETRY_DELAY_MS,
        environment: str = "production",
        version: Optional[str] = None,
        max_history: int = DEFAULT_MAX_HISTORY,
        rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE,
        log_errors: bool = True,
        sleep_func: Optional[SleepFunc] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sink = sink
        self.enabled = enabled
        self.include_breadcrumbs = include_breadcrumbs
        self.include_stack_trace = include_stack_trace
        self.max_retries = DEFAULT_REPORT_RETRIES
        self.retry_delay_ms = DEFAULT_REPORT_RETRY_DELAY_MS
        self.rate_limit_per_minute = DEFAULT_RATE_LIMIT_PER_MINUTE
        self.environment = environment
        self.version = version
        self._sleep: SleepFunc = sleep_func or asyncio.sleep
        self._clock = clock
        self._handlers: Dict[str, List[ErrorHandler]] = {}
        self._breadcrumbs: Deque[Breadcrumb] = deque(maxlen=DEFAULT_MAX_BREADCRUMBS)
        self._history: Deque[ErrorHistoryEntry] = deque(maxlen=DEFAULT_MAX_HISTORY)
        self._rate_limits: Dict[Tuple[str, str], Deque[float]] = {}
        self._global_context: Dict[str, Any] = {}
        self._context_stack: ContextVar[Tuple[Dict[str, Any], ...]] = ContextVar(
            f"anglesite_error_context_{id(self)}", default=()
        )
        self._tasks = BackgroundTasks(name="error-registry")
        self.stats = RegistryStats()

        self.configure(
            max_breadcrumbs=max_breadcrumbs,
            max_retries=max_retries,
            retry_delay_ms=retry_delay_ms,
            max_history=max_history,
            rate_limit_per_minute=rate_limit_per_minute,
        )
        if log_errors:
            self.register_handler(WILDCARD, log_error_handler)

    @classmethod
    def from_settings(
        cls,
        settings: "ErrorReportingSettings",
        sink: Optional[TelemetrySink] = None,
        **kwargs: Any,
    ) -> "ErrorRegistry":
        return cls(
            sink,
            enabled=settings.enabled,
            include_breadcrumbs=settings.include_breadcrumbs,
            include_stack_trace=settings.include_stack_trace,
            max_breadcrumbs=settings.max_breadcrumbs,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
            environment=settings.environment,
            version=settings.version,
            max_history=settings.max_history,
            rate_limit_per_minute=settings.rate_limit_per_minute,
            **kwargs,
        )

    def configure(self, **options: Any) -> None:
        """Update reporting options.

        Raises:
            ValueError: On an unknown option or an out-of-range value. No
                option is changed when any of them is invalid.
        """
        known = {
            "enabled",
            "include_breadcrumbs",
            "include_stack_trace",
            "max_breadcrumbs",
            "max_retries",
            "retry_delay_ms",
            "environment",
            "version",
            "max_history",
            "rate_limit_per_minute",
        }
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Invalid configuration: unknown option(s) {', '.join(sorted(unknown))}")
        if "max_breadcrumbs" in options and options["max_breadcrumbs"] < 1:
            raise ValueError(f"Invalid configuration: max_breadcrumbs must be at least 1, got {options['max_breadcrumbs']}")
        if "max_retries" in options and options["max_retries"] < 1:
            raise ValueError(f"Invalid configuration: max_retries must be at least 1, got {options['max_retries']}")
        if "retry_delay_ms" in options and options["retry_delay_ms"] < 0:
            raise ValueError(f"Invalid configuration: retry_delay_ms must be non-negative, got {options['retry_delay_ms']}")
        if "max_history" in options and options["max_history"] < 1:
            raise ValueError(f"Invalid configuration: max_history must be at least 1, got {options['max_history']}")
        if "rate_limit_per_minute" in options and options["rate_limit_per_minute"] < 1:
            raise ValueError(
                f"Invalid configuration: rate_limit_per_minute must be at least 1, got {options['rate_limit_per_minute']}"
            )

        max_breadcrumbs = options.pop("max_breadcrumbs", None)
        if max_breadcrumbs is not None and max_breadcrumbs != self._breadcrumbs.maxlen:
            self._breadcrumbs = deque(self._breadcrumbs, maxlen=max_breadcrumbs)
        max_history = options.pop("max_history", None)
        if max_history is not None and max_history != self._history.maxlen:
            self._history = deque(self._history, maxlen=max_history)
        for key, value in options.items():
            setattr(self, key, value)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def register_handler(self, error_type: str, handler: ErrorHandler) -> None:
        """Register ``handler`` for an error type name, or ``*`` for all errors."""
        self._handlers.setdefault(error_type, []).append(handler)

    def unregister_handler(self, error_type: str, handler: ErrorHandler) -> bool:
        handlers = self._handlers.get(error_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[error_type]
        return True

    def _handlers_for(self, error: StructuredError) -> List[ErrorHandler]:
        names = [type(error).__name__]
        if error.name not in names:
            names.append(error.name)
        selected: List[ErrorHandler] = []
        for name in names:
            selected.extend(self._handlers.get(name, ()))
        selected.extend(self._handlers.get(WILDCARD, ()))
        return selected

    async def _run_handler(self, handler: ErrorHandler, error: StructuredError) -> None:
        try:
            await maybe_await(handler(error))
        except Exception:
            self.stats.handler_failures += 1
            logger.exception("Error handler %r failed for %s", handler, error.code)

    # ------------------------------------------------------------------
    # Breadcrumbs
    # ------------------------------------------------------------------

    def add_breadcrumb(
        self,
        message: str,
        *,
        level: str = "info",
        category: str = "default",
        data: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> Breadcrumb:
        crumb = Breadcrumb(
            message=message,
            level=level,
            category=category,
            data=dict(data) if data is not None else None,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        self._breadcrumbs.append(crumb)
        return crumb

    def get_breadcrumbs(self) -> List[Breadcrumb]:
        return list(self._breadcrumbs)

    def clear_breadcrumbs(self) -> None:
        self._breadcrumbs.clear()

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def set_context(self, key: str, value: Any) -> None:
        self._global_context[key] = value

    def get_context(self) -> Dict[str, Any]:
        return dict(self._global_context)

    def clear_context(self) -> None:
        self._global_context.clear()

    def push_context(self, context: Mapping[str, Any]) -> None:
        """Push a context scope for the current task."""
        self._context_stack.set(self._context_stack.get() + (dict(context),))

    def pop_context(self) -> Optional[Dict[str, Any]]:
        stack = self._context_stack.get()
        if not stack:
            return None
        self._context_stack.set(stack[:-1])
        return stack[-1]

    @contextmanager
    def error_context(self, **context: Any) -> Iterator[None]:
        """Scope ``context`` to errors wrapped inside the ``with`` block."""
        token = self._context_stack.set(self._context_stack.get() + (context,))
        try:
            yield
        finally:
            self._context_stack.reset(token)

    def get_merged_context(self) -> Dict[str, Any]:
        """Global context overlaid with every scope, innermost last."""
        merged = dict(self._global_context)
        for scope in self._context_stack.get():
            merged.update(scope)
        return merged

    def wrap_error(self, error: Any, context: Optional[Mapping[str, Any]] = None) -> StructuredError:
        merged = self.get_merged_context()
        if context:
            merged.update(context)
        return wrap(error, merged or None)

    # ------------------------------------------------------------------
    # Handling and reporting
    # ------------------------------------------------------------------

    async def handle_error(self, error: Any, context: Optional[Mapping[str, Any]] = None) -> StructuredError:
        """Wrap ``error``, run its handlers, record it and report it remotely.

        Type-specific handlers run before wildcard handlers. Errors over the
        per-minute rate limit are neither recorded nor reported. Returns the
        wrapped error.
        """
        structured = self.wrap_error(error, context)
        self.stats.handled += 1
        self.add_breadcrumb(
            structured.message,
            level="error",
            category="error",
            data={"code": structured.code, "category": structured.category.value},
        )
        for handler in self._handlers_for(structured):
            await self._run_handler(handler, structured)

        if not self._check_rate_limit(structured):
            self.stats.rate_limited += 1
            logger.debug("Error rate limit exceeded for %s, not recording", structured.code)
            return structured
        recorded_context = self.get_merged_context()
        if context:
            recorded_context.update(context)
        self._history.append(ErrorHistoryEntry(structured, recorded_context))

        if self.enabled and self._sink is not None:
            await self.report(structured)
        return structured

    def _check_rate_limit(self, error: StructuredError) -> bool:
        key = (error.code, error.message)
        now = self._clock()
        window_start = now - RATE_LIMIT_WINDOW_SECONDS
        stamps = self._rate_limits.setdefault(key, deque())
        while stamps and stamps[0] <= window_start:
            stamps.popleft()
        if len(stamps) >= self.rate_limit_per_minute:
            return False
        stamps.append(now)

        if len(self._rate_limits) > RATE_LIMIT_MAX_KEYS:
            for stale in [k for k, v in self._rate_limits.items() if not v or v[-1] <= window_start]:
                del self._rate_limits[stale]
        return True

    def dispatch(self, error: Any, context: Optional[Mapping[str, Any]] = None) -> Optional["asyncio.Task"]:
        """Handle ``error`` in the background without blocking the caller."""
        return self._tasks.spawn(self.handle_error(error, context))

    def build_report(self, error: StructuredError) -> Dict[str, Any]:
        serialized = error.serialize()
        if not self.include_stack_trace:
            serialized.pop("stack", None)
        payload: Dict[str, Any] = {
            "error": serialized,
            "context": self.get_merged_context(),
            "environment": self.environment,
            "version": self.version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.include_breadcrumbs:
            payload["breadcrumbs"] = [crumb.to_dict() for crumb in self._breadcrumbs]
        return redact_sensitive_data(payload)

    async def report(self, error: StructuredError) -> bool:
        """Send ``error`` to the sink, retrying a bounded number of times.

        Returns True when delivered. Failures are logged, never raised.
        """
        if self._sink is None:
            return False
        try:
            payload = self.build_report(error)
        except Exception as e:
            logger.warning("Could not build error report for %s: %s", error.code, e)
            self.stats.report_failures += 1
            return False

        for attempt in range(1, self.max_retries + 1):
            try:
                await maybe_await(self._sink.report_event(payload))
            except Exception as e:
                logger.debug("Error report attempt %d/%d failed: %s", attempt, self.max_retries, e)
                if attempt < self.max_retries:
                    await self._sleep(self.retry_delay_ms / 1000.0)
                continue
            self.stats.reported += 1
            return True

        self.stats.report_failures += 1
        logger.warning("Failed to report error %s after %d attempt(s)", error.code, self.max_retries)
        return False

    async def drain(self, timeout: Optional[float] = None) -> None:
        await self._tasks.drain(timeout)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "handled": self.stats.handled,
            "handler_failures": self.stats.handler_failures,
            "rate_limited": self.stats.rate_limited,
            "reported": self.stats.reported,
            "report_failures": self.stats.report_failures,
            "breadcrumbs": len(self._breadcrumbs),
            "history": len(self._history),
            "pending": self._tasks.pending,
        }

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _history_since(self, since: Optional[datetime]) -> List[ErrorHistoryEntry]:
        if since is None:
            return list(self._history)
        return [entry for entry in self._history if entry.recorded_at >= since]

    def get_recent_errors(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Return up to ``limit`` recorded errors as redacted dicts, oldest first."""
        if limit <= 0:
            return []
        return [entry.to_dict() for entry in list(self._history)[-limit:]]

    def get_error_statistics(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """Summarize recorded errors by category and severity.

        Args:
            since: Only count errors recorded at or after this time
                (timezone-aware).
        """
        return get_statistics(entry.error for entry in self._history_since(since))

    def export_errors(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """Build a JSON-safe snapshot of the history for diagnostics export."""
        entries = self._history_since(since)
        return {
            "export_date": datetime.now(timezone.utc).isoformat(),
            "environment": self.environment,
            "version": self.version,
            "error_count": len(entries),
            "errors": [entry.to_dict() for entry in entries],
            "statistics": get_statistics(entry.error for entry in entries),
        }

    def clear_history(self) -> None:
        self._history.clear()
        self._rate_limits.clear()
        logger.info("Error history cleared")

    # ------------------------------------------------------------------
    # Higher-order wrappers
    # ------------------------------------------------------------------

    async def with_recovery(
        self,
        operation: Callable[[], Any],
        recovery: Optional[RecoveryFunc] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Run ``operation``; on failure handle the error, then recover or re-raise.

        The re-raised error is the wrapped StructuredError.
        """
        try:
            return await maybe_await(operation())
        except Exception as e:
            structured = await self.handle_error(e, context)
            if recovery is None:
                raise structured
            return await maybe_await(recovery(structured))

    def with_error_handling(
        self,
        func: Callable[..., Awaitable[T]],
        recovery: Optional[RecoveryFunc] = None,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Callable[..., Awaitable[T]]:
        """Wrap ``func`` so every failure goes through ``handle_error``.

        Example:
            save = registry.with_error_handling(save_site, recovery=lambda err: None)
            await save(site)
        """

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.with_recovery(lambda: func(*args, **kwargs), recovery, context)

        return wrapper
