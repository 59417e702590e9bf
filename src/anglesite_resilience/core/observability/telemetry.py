"""Sampling, batching telemetry reporter.

``TelemetryBatcher`` admits events by sampling, anonymizes and caps them,
queues them, and flushes them to a sink either when a full batch is
queued or on a fixed interval. ``RetryTelemetry`` adapts it to the retry
orchestrator's synchronous ``emit`` contract and caches the sink's
enabled flag with a TTL.

Nothing here raises into the caller: sink failures are logged and counted.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Deque, Dict, List, Mapping, Optional

from anglesite_resilience.core.concurrency import BackgroundTasks, maybe_await
from anglesite_resilience.core.observability.redaction import redact_sensitive_data
from anglesite_resilience.core.observability.sinks import TelemetrySink
from anglesite_resilience.core.resilience.models import TelemetryEvent
from anglesite_resilience.core.safe_json import to_json_safe, truncate_text

if TYPE_CHECKING:
    from anglesite_resilience.config import TelemetrySettings

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 10_000
DEFAULT_BATCH_SIZE = 10
DEFAULT_FLUSH_INTERVAL_SECONDS = 30.0
DEFAULT_MAX_QUEUE_SIZE = 1_000
TELEMETRY_CONFIG_TTL_SECONDS = 60.0


@dataclass
class TelemetryStats:
    """Counters for a TelemetryBatcher.

    Attributes:
        captured: Events admitted into the queue
        dropped_by_sampling: Events rejected by the sampling draw
        dropped_overflow: Queued events evicted because the queue was full
        flushed: Events handed to the sink successfully
        flush_failures: Batches the sink failed to accept
    """

    captured: int = 0
    dropped_by_sampling: int = 0
    dropped_overflow: int = 0
    flushed: int = 0
    flush_failures: int = 0


def _validate(sampling_rate: float, batch_size: int, flush_interval_seconds: float, max_field_length: int) -> None:
    if not 0.0 <= sampling_rate <= 1.0:
        raise ValueError(f"Invalid configuration: sampling_rate must be between 0 and 1, got {sampling_rate}")
    if batch_size < 1:
        raise ValueError(f"Invalid configuration: batch_size must be at least 1, got {batch_size}")
    if flush_interval_seconds <= 0:
        raise ValueError(f"Invalid configuration: flush_interval_seconds must be positive, got {flush_interval_seconds}")
    if max_field_length < 1:
        raise ValueError(f"Invalid configuration: max_field_length must be at least 1, got {max_field_length}")


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _truncate_fields(value: Any, max_length: int) -> Any:
    if isinstance(value, str):
        return truncate_text(value, max_length)
    if isinstance(value, dict):
        return {key: _truncate_fields(item, max_length) for key, item in value.items()}
    if isinstance(value, list):
        return [_truncate_fields(item, max_length) for item in value]
    return value


class TelemetryBatcher:
    """Samples, batches and flushes telemetry events.

    The queue is FIFO. Reaching ``batch_size`` queued events flushes exactly
    that many of the oldest; the interval timer flushes whatever remains.
    Flushes run as background tasks so ``capture`` never blocks.

    Args:
        sink: Destination implementing ``report_batch``.
        sampling_rate: Probability in [0, 1] that an event is admitted.
        batch_size: Events per size-triggered flush.
        flush_interval_seconds: Period of the interval flush.
        max_field_length: Cap for every text field, marked when truncated.
        max_queue_size: Queue bound; the oldest events are evicted past it.
        anonymize: Redact emails, IPs and secrets before queuing.
        enabled: Master switch; a disabled batcher admits nothing.
        rng: Injectable Random instance for deterministic sampling.

    Example:
        >>> batcher = TelemetryBatcher(sink, sampling_rate=0.5, rng=random.Random(7))
        >>> batcher.capture({"message": "Retry failed", "context": {"channel": "list-websites"}})
        >>> await batcher.shutdown()
    """

    def __init__(
        self,
        sink: TelemetrySink,
        *,
        sampling_rate: float = 1.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
        max_field_length: int = MAX_FIELD_LENGTH,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        anonymize: bool = True,
        enabled: bool = True,
        rng: Optional[random.Random] = None,
    ):
        _validate(sampling_rate, batch_size, flush_interval_seconds, max_field_length)
        self._sink = sink
        self.sampling_rate = sampling_rate
        self.batch_size = batch_size
        self.flush_interval_seconds = flush_interval_seconds
        self.max_field_length = max_field_length
        self.anonymize = anonymize
        self.enabled = enabled
        self._rng = rng or random.Random()
        self._queue: Deque[Dict[str, Any]] = deque(maxlen=max(max_queue_size, batch_size))
        self._tasks = BackgroundTasks(name="telemetry-flush")
        self._interval_task: Optional[asyncio.Task] = None
        self.stats = TelemetryStats()

    @classmethod
    def from_settings(
        cls,
        settings: "TelemetrySettings",
        sink: TelemetrySink,
        *,
        rng: Optional[random.Random] = None,
    ) -> "TelemetryBatcher":
        return cls(
            sink,
            sampling_rate=settings.sampling_rate,
            batch_size=settings.batch_size,
            flush_interval_seconds=settings.flush_interval_seconds,
            max_field_length=settings.max_field_length,
            enabled=settings.enabled,
            rng=rng,
        )

    def configure(
        self,
        *,
        sampling_rate: Optional[float] = None,
        batch_size: Optional[int] = None,
        flush_interval_seconds: Optional[float] = None,
        max_field_length: Optional[int] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        """Update settings in place.

        Raises:
            ValueError: If any value is out of range; nothing is changed then.
        """
        new_rate = self.sampling_rate if sampling_rate is None else sampling_rate
        new_size = self.batch_size if batch_size is None else batch_size
        new_interval = self.flush_interval_seconds if flush_interval_seconds is None else flush_interval_seconds
        new_length = self.max_field_length if max_field_length is None else max_field_length
        _validate(new_rate, new_size, new_interval, new_length)

        interval_changed = new_interval != self.flush_interval_seconds
        self.sampling_rate = new_rate
        self.batch_size = new_size
        self.flush_interval_seconds = new_interval
        self.max_field_length = new_length
        if enabled is not None:
            self.enabled = enabled
        if new_size > (self._queue.maxlen or 0):
            self._queue = deque(self._queue, maxlen=new_size)
        if interval_changed and self._interval_task is not None:
            self._interval_task.cancel()
            self._interval_task = None
            self._ensure_interval()

    @property
    def queued(self) -> int:
        return len(self._queue)

    def should_sample(self) -> bool:
        return self._rng.random() < self.sampling_rate

    def capture(self, event: Mapping[str, Any]) -> bool:
        """Offer an event; return True if it was admitted into the queue."""
        if not self.enabled:
            return False
        if not self.should_sample():
            self.stats.dropped_by_sampling += 1
            return False

        if len(self._queue) == self._queue.maxlen:
            self.stats.dropped_overflow += 1
        self._queue.append(self._prepare(event))
        self.stats.captured += 1

        if len(self._queue) >= self.batch_size and _has_running_loop():
            batch = [self._queue.popleft() for _ in range(self.batch_size)]
            self._tasks.spawn(self._send(batch))
        else:
            self._ensure_interval()
        return True

    def _prepare(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        data = to_json_safe(event if isinstance(event, dict) else dict(event))
        if self.anonymize:
            data = redact_sensitive_data(data)
        return _truncate_fields(data, self.max_field_length)

    async def flush(self) -> int:
        """Send every queued event now; return how many were sent."""
        if not self._queue:
            return 0
        batch = list(self._queue)
        self._queue.clear()
        return await self._send(batch)

    async def _send(self, batch: List[Dict[str, Any]]) -> int:
        try:
            await maybe_await(self._sink.report_batch(batch))
        except Exception as e:
            self.stats.flush_failures += 1
            logger.warning("Failed to flush %d telemetry event(s): %s", len(batch), e)
            return 0
        self.stats.flushed += len(batch)
        logger.debug("Flushed %d telemetry event(s)", len(batch))
        return len(batch)

    def start(self) -> None:
        """Start the interval flush timer (requires a running event loop)."""
        self._ensure_interval()

    def _ensure_interval(self) -> None:
        if self._interval_task is not None and not self._interval_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._interval_task = loop.create_task(self._run_interval())

    async def _run_interval(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval_seconds)
            await self.flush()

    async def shutdown(self) -> None:
        """Stop the timer, wait for in-flight flushes, then flush the remainder."""
        if self._interval_task is not None:
            self._interval_task.cancel()
            try:
                await self._interval_task
            except asyncio.CancelledError:
                pass
            self._interval_task = None
        await self._tasks.drain()
        await self.flush()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "sampling_rate": self.sampling_rate,
            "queued": self.queued,
            "captured": self.stats.captured,
            "dropped_by_sampling": self.stats.dropped_by_sampling,
            "dropped_overflow": self.stats.dropped_overflow,
            "flushed": self.stats.flushed,
            "flush_failures": self.stats.flush_failures,
        }


class RetryTelemetry:
    """Routes orchestrator events to the telemetry pipeline.

    ``emit`` is synchronous and returns immediately; the enabled check and
    the reporting happen in a background task. The sink's ``get_config``
    answer is cached for ``ttl_seconds``; if it fails, telemetry is treated
    as disabled until the cache expires.

    Args:
        sink: Telemetry sink queried for ``{"enabled": bool}``.
        batcher: When given, events are captured into it; otherwise each
            event is sent with ``sink.report_event``.
        ttl_seconds: Lifetime of the cached enabled flag.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        sink: TelemetrySink,
        batcher: Optional[TelemetryBatcher] = None,
        *,
        ttl_seconds: float = TELEMETRY_CONFIG_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sink = sink
        self._batcher = batcher
        self._ttl = ttl_seconds
        self._clock = clock
        self._enabled: Optional[bool] = None
        self._checked_at = 0.0
        self._tasks = BackgroundTasks(name="retry-telemetry")

    @classmethod
    def from_settings(
        cls,
        settings: "TelemetrySettings",
        sink: TelemetrySink,
        batcher: Optional[TelemetryBatcher] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RetryTelemetry":
        return cls(sink, batcher, ttl_seconds=settings.config_ttl_seconds, clock=clock)

    def emit(self, event: TelemetryEvent) -> None:
        self._tasks.spawn(self.record(event))

    async def is_enabled(self) -> bool:
        now = self._clock()
        if self._enabled is not None and now - self._checked_at < self._ttl:
            return self._enabled
        try:
            config = await maybe_await(self._sink.get_config())
            self._enabled = bool(isinstance(config, Mapping) and config.get("enabled") is True)
        except Exception as e:
            logger.debug("Telemetry config check failed, assuming disabled: %s", e)
            self._enabled = False
        self._checked_at = now
        return self._enabled

    async def record(self, event: TelemetryEvent) -> None:
        """Report one event if telemetry is enabled; never raises."""
        if not await self.is_enabled():
            return
        payload = event.to_payload()
        try:
            if self._batcher is not None:
                self._batcher.capture(payload)
            else:
                await maybe_await(self._sink.report_event(payload))
        except Exception as e:
            logger.warning("Failed to record %s telemetry for %s: %s", event.outcome.value, event.channel, e)
            return
        logger.debug("Recorded %s telemetry for %s (attempt %d)", event.outcome.value, event.channel, event.attempt)

    def reset_cache(self) -> None:
        self._enabled = None
        self._checked_at = 0.0

    async def drain(self) -> None:
        """Wait for pending background reports."""
        await self._tasks.drain()
