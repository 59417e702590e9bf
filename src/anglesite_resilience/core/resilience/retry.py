"""Bounded, cancellable retry orchestration.

Runs an async unit of work with exponential backoff, classifying every
failure into a StructuredError exactly once. Cancellation is cooperative:
an in-flight call is never interrupted, but a pending backoff wait is
abandoned and reported as an ``Aborted`` outcome.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from anglesite_resilience.core.errors.base import StructuredError
from anglesite_resilience.core.errors.utilities import wrap
from anglesite_resilience.core.resilience.models import (
    Aborted,
    Failure,
    InvocationOutcome,
    RetryConfig,
    SleepFunc,
    Success,
    TelemetryEmitter,
    TelemetryEvent,
    TelemetryOutcome,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, int, StructuredError], None]
SuccessCallback = Callable[[int, int], None]
FailureCallback = Callable[[StructuredError, int, int], None]


def is_error_retryable(error: StructuredError, config: RetryConfig) -> bool:
    """Whether ``error`` should be retried under ``config``.

    Matches the error code or message against ``retryable_error_codes``
    (case-insensitive substring), falling back to the taxonomy's own
    recoverability verdict.
    """
    haystacks = (error.code.lower(), error.message.lower())
    for pattern in config.retryable_error_codes:
        needle = pattern.lower()
        if any(needle in text for text in haystacks):
            return True
    return error.is_recoverable()


def calculate_backoff(attempt: int, config: RetryConfig) -> int:
    """Policy delay in ms after failed attempt ``attempt`` (1-based).

    ``base_delay_ms * 2**(attempt - 1)``, capped at ``max_delay_ms``.
    """
    if attempt < 1:
        return 0
    return min(config.base_delay_ms * (2 ** (attempt - 1)), config.max_delay_ms)


def compute_retry_delay(error: StructuredError, attempt: int, config: RetryConfig) -> int:
    """Delay before the next attempt: the error's own suggestion wins, capped at ``max_delay_ms``."""
    suggested = error.get_retry_delay()
    if suggested is None:
        return calculate_backoff(attempt, config)
    return min(suggested, config.max_delay_ms)


class RetryOrchestrator:
    """Executes operations with bounded retries, backoff and telemetry.

    The orchestrator holds no per-invocation state, so one instance can
    serve concurrent invocations for different channels.

    Args:
        telemetry: Receives retry/success/failure events (optional).
        sleep_func: Injectable async sleep for tests; when given, the
            cancellation event is checked before and after each sleep.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        *,
        telemetry: Optional[TelemetryEmitter] = None,
        sleep_func: Optional[SleepFunc] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._telemetry = telemetry
        self._sleep = sleep_func
        self._clock = clock

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfig,
        *,
        channel: str = "anonymous",
        blacklisted: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
        context: Optional[Mapping[str, Any]] = None,
        on_retry: Optional[RetryCallback] = None,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> InvocationOutcome[T]:
        """Run ``operation`` until it succeeds, fails terminally or is aborted.

        Args:
            operation: Zero-argument async callable (use a lambda for args).
            config: Resolved retry configuration.
            channel: Channel name used for logs, telemetry and error context.
            blacklisted: Forces ``max_attempts = 1``.
            cancel_event: Setting it abandons a pending backoff wait.
            context: Extra context merged into the classified error.
            on_retry: Called as ``(attempt, delay_ms, error)`` before each wait.
            on_success: Called as ``(attempts, duration_ms)``.
            on_failure: Called as ``(error, attempts, duration_ms)``.

        Returns:
            Success, Failure or Aborted. Operation errors are never raised.
        """
        max_attempts = 1 if blacklisted else config.max_attempts
        error_context = {"operation": channel, **(context or {})}
        start = self._clock()
        attempt = 0
        last_error: Optional[StructuredError] = None

        if cancel_event is not None and cancel_event.is_set():
            logger.info("Invocation of %s cancelled before first attempt", channel)
            return Aborted(attempts=0, duration_ms=0)

        while attempt < max_attempts:
            attempt += 1
            try:
                result = await operation()
            except Exception as exc:
                error = wrap(exc, error_context).with_metadata(retry_count=attempt - 1)
                last_error = error
                duration_ms = self._elapsed_ms(start)
                retryable = is_error_retryable(error, config)

                if attempt >= max_attempts or not retryable:
                    logger.error(
                        "Invocation failed after %d attempt(s): %s [%s] (duration: %dms, retryable: %s)",
                        attempt,
                        channel,
                        error.code,
                        duration_ms,
                        retryable,
                    )
                    self._emit(
                        TelemetryEvent(
                            channel=channel,
                            attempt=attempt,
                            total_attempts=attempt,
                            outcome=TelemetryOutcome.FAILURE,
                            error=error,
                            total_duration_ms=duration_ms,
                        )
                    )
                    _invoke_callback(on_failure, error, attempt, duration_ms)
                    return Failure(error=error, attempts=attempt, duration_ms=duration_ms)

                delay_ms = compute_retry_delay(error, attempt, config)
                logger.warning(
                    "Attempt %d/%d of %s failed [%s], retrying in %dms",
                    attempt,
                    max_attempts,
                    channel,
                    error.code,
                    delay_ms,
                )
                self._emit(
                    TelemetryEvent(
                        channel=channel,
                        attempt=attempt,
                        total_attempts=max_attempts,
                        outcome=TelemetryOutcome.RETRY,
                        delay_ms=delay_ms,
                        error=error,
                        total_duration_ms=duration_ms,
                    )
                )
                _invoke_callback(on_retry, attempt, delay_ms, error)

                if await self._wait(delay_ms / 1000.0, cancel_event):
                    duration_ms = self._elapsed_ms(start)
                    logger.info("Retry of %s aborted after %d attempt(s)", channel, attempt)
                    return Aborted(attempts=attempt, duration_ms=duration_ms, last_error=last_error)
                continue

            duration_ms = self._elapsed_ms(start)
            if attempt > 1:
                logger.info("Invocation of %s succeeded after %d attempts (%dms)", channel, attempt, duration_ms)
                self._emit(
                    TelemetryEvent(
                        channel=channel,
                        attempt=attempt,
                        total_attempts=attempt,
                        outcome=TelemetryOutcome.SUCCESS,
                        success=True,
                        total_duration_ms=duration_ms,
                    )
                )
            _invoke_callback(on_success, attempt, duration_ms)
            return Success(value=result, attempts=attempt, duration_ms=duration_ms)

        # max_attempts >= 1, so the loop always returns
        raise RuntimeError("RetryOrchestrator.run: unexpected state")

    async def _wait(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep for ``seconds``; return True if cancelled meanwhile."""
        if cancel_event is not None and cancel_event.is_set():
            return True
        if self._sleep is not None:
            await self._sleep(seconds)
            return cancel_event is not None and cancel_event.is_set()
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def _emit(self, event: TelemetryEvent) -> None:
        if self._telemetry is None:
            return
        try:
            self._telemetry.emit(event)
        except Exception as e:
            logger.warning("Telemetry emit failed for %s: %s", event.channel, e)

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)


def _invoke_callback(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.exception("Retry lifecycle callback %r failed", callback)


def with_retry(
    func: Callable[..., Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    orchestrator: Optional[RetryOrchestrator] = None,
    channel: Optional[str] = None,
    blacklisted: bool = False,
) -> Callable[..., Awaitable[InvocationOutcome[T]]]:
    """Wrap ``func`` so every call runs through a RetryOrchestrator.

    The wrapper accepts ``func``'s arguments plus an optional keyword-only
    ``cancel_event`` and returns an InvocationOutcome.

    Example:
        >>> load_schema = with_retry(fetch_schema, RetryConfig(max_attempts=3))
        >>> outcome = await load_schema("my-site")
        >>> schema = outcome.unwrap()
    """
    _config = config or RetryConfig()
    _orchestrator = orchestrator or RetryOrchestrator()
    _channel = channel or getattr(func, "__name__", "anonymous")

    @functools.wraps(func)
    async def wrapper(*args: Any, cancel_event: Optional[asyncio.Event] = None, **kwargs: Any):
        return await _orchestrator.run(
            lambda: func(*args, **kwargs),
            _config,
            channel=_channel,
            blacklisted=blacklisted,
            cancel_event=cancel_event,
        )

    return wrapper
