"""Tests for the sampling, batching telemetry pipeline.

Verifies:
- Sampling rates 0 and 1 are exact; intermediate rates are statistically close
- Size-triggered flushes send exactly batch_size events, oldest first
- Text fields are capped, payloads anonymized, cycles broken
- Sink failures are counted, never raised
- RetryTelemetry caches the sink's enabled flag for its TTL (configurable via settings)
"""

import asyncio
import random
from types import MappingProxyType

import pytest

from anglesite_resilience.config import TelemetrySettings
from anglesite_resilience.core.errors import NetworkError
from anglesite_resilience.core.observability import (
    InMemoryTelemetrySink,
    RetryTelemetry,
    TelemetryBatcher,
)
from anglesite_resilience.core.resilience import TelemetryEvent, TelemetryOutcome


def _event(index=0, **extra):
    return {"message": f"Retry attempt {index}", "context": {"channel": "list-websites", "index": index}, **extra}


class TestSampling:
    """Tests for sampling admission."""

    def test_rate_zero_admits_nothing(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, sampling_rate=0.0)
        admitted = sum(batcher.capture(_event(i)) for i in range(10_000))
        assert admitted == 0
        assert batcher.stats.dropped_by_sampling == 10_000

    def test_rate_one_admits_everything(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, sampling_rate=1.0)
        admitted = sum(batcher.capture(_event(i)) for i in range(10_000))
        assert admitted == 10_000
        assert batcher.stats.dropped_by_sampling == 0

    @pytest.mark.slow
    def test_rate_half_is_close_to_half(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, sampling_rate=0.5, rng=random.Random(1234))
        admitted = sum(batcher.capture(_event(i)) for i in range(1_000))
        assert 400 <= admitted <= 600

    def test_disabled_batcher_admits_nothing(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, enabled=False)
        assert batcher.capture(_event()) is False
        assert batcher.queued == 0


class TestBatching:
    """Tests for size- and interval-triggered flushing."""

    @pytest.mark.asyncio
    async def test_full_batch_flushes_exactly_batch_size(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, batch_size=5, flush_interval_seconds=60)
        for i in range(7):
            batcher.capture(_event(i))
        await batcher.shutdown()

        assert [len(batch) for batch in memory_sink.batches] == [5, 2]
        assert [e["context"]["index"] for e in memory_sink.batches[0]] == [0, 1, 2, 3, 4]
        assert batcher.stats.flushed == 7
        assert batcher.queued == 0

    @pytest.mark.asyncio
    async def test_interval_flushes_partial_batch(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, batch_size=50, flush_interval_seconds=0.01)
        batcher.capture(_event())
        await asyncio.sleep(0.05)

        assert len(memory_sink.events) == 1
        await batcher.shutdown()

    @pytest.mark.asyncio
    async def test_flush_empty_queue(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink)
        assert await batcher.flush() == 0
        assert memory_sink.batches == []

    def test_queue_is_bounded(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, batch_size=2, max_queue_size=3)
        for i in range(5):
            batcher.capture(_event(i))
        assert batcher.queued == 3
        assert batcher.stats.dropped_overflow == 2


class TestPayloadPreparation:
    """Tests for truncation, anonymization and cycle handling."""

    @pytest.mark.asyncio
    async def test_long_fields_truncated(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, max_field_length=30)
        batcher.capture({"message": "x" * 100, "context": {"detail": "y" * 100, "count": 3}})
        await batcher.flush()

        event = memory_sink.events[0]
        assert len(event["message"]) == 30
        assert event["message"].endswith("...[truncated]")
        assert len(event["context"]["detail"]) == 30
        assert event["context"]["count"] == 3

    @pytest.mark.asyncio
    async def test_circular_payload(self, memory_sink):
        payload = {"message": "loop"}
        payload["self"] = payload
        batcher = TelemetryBatcher(memory_sink)

        assert batcher.capture(payload) is True
        await batcher.flush()
        assert memory_sink.events[0]["self"] == "[Circular]"

    @pytest.mark.asyncio
    async def test_read_only_mapping_accepted(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink)

        assert batcher.capture(MappingProxyType({"message": "frozen", "attempt": 2})) is True
        await batcher.flush()
        assert memory_sink.events[0]["message"] == "frozen"

    @pytest.mark.asyncio
    async def test_anonymized(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink)
        batcher.capture({"message": "failed for alice@example.com", "api_key": "sk_live_0123456789"})
        await batcher.flush()

        event = memory_sink.events[0]
        assert "alice@example.com" not in event["message"]
        assert event["api_key"] == "[REDACTED:API_KEY]"

    @pytest.mark.asyncio
    async def test_anonymize_can_be_disabled(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, anonymize=False)
        batcher.capture({"message": "failed for alice@example.com"})
        await batcher.flush()
        assert memory_sink.events[0]["message"] == "failed for alice@example.com"


class TestFailuresAndConfig:
    """Tests for sink failure isolation and configure()."""

    @pytest.mark.asyncio
    async def test_sink_failure_counted(self):
        sink = InMemoryTelemetrySink(fail_with=RuntimeError("collector down"))
        batcher = TelemetryBatcher(sink)
        batcher.capture(_event())

        assert await batcher.flush() == 0
        assert batcher.stats.flush_failures == 1
        assert batcher.get_stats()["flushed"] == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sampling_rate": 1.5},
            {"sampling_rate": -0.1},
            {"batch_size": 0},
            {"flush_interval_seconds": 0},
            {"max_field_length": 0},
        ],
    )
    def test_invalid_configuration_rejected(self, memory_sink, kwargs):
        batcher = TelemetryBatcher(memory_sink)
        with pytest.raises(ValueError, match="Invalid configuration"):
            batcher.configure(**kwargs)
        assert batcher.sampling_rate == 1.0
        assert batcher.batch_size == 10

    def test_configure_updates(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink)
        batcher.configure(sampling_rate=0.25, batch_size=20, enabled=False)
        stats = batcher.get_stats()
        assert stats["sampling_rate"] == 0.25
        assert stats["enabled"] is False
        assert batcher.batch_size == 20

    def test_constructor_validates(self, memory_sink):
        with pytest.raises(ValueError):
            TelemetryBatcher(memory_sink, sampling_rate=2)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _retry_event():
    return TelemetryEvent(
        channel="get-website-schema",
        attempt=1,
        total_attempts=3,
        outcome=TelemetryOutcome.RETRY,
        delay_ms=1000,
        error=NetworkError("Connection refused", "ECONNREFUSED"),
    )


class TestRetryTelemetry:
    """Tests for the orchestrator-facing telemetry adapter."""

    @pytest.mark.asyncio
    async def test_enabled_flag_cached_for_ttl(self, memory_sink):
        clock = FakeClock()
        telemetry = RetryTelemetry(memory_sink, ttl_seconds=60, clock=clock)

        await telemetry.record(_retry_event())
        await telemetry.record(_retry_event())
        assert memory_sink.config_requests == 1

        clock.now = 61
        await telemetry.record(_retry_event())
        assert memory_sink.config_requests == 2
        assert len(memory_sink.events) == 3

    @pytest.mark.asyncio
    async def test_from_settings_uses_config_ttl(self, memory_sink):
        clock = FakeClock()
        telemetry = RetryTelemetry.from_settings(TelemetrySettings(config_ttl_seconds=5), memory_sink, clock=clock)

        await telemetry.record(_retry_event())
        clock.now = 4
        await telemetry.record(_retry_event())
        assert memory_sink.config_requests == 1

        clock.now = 6
        await telemetry.record(_retry_event())
        assert memory_sink.config_requests == 2

    @pytest.mark.asyncio
    async def test_from_settings_routes_through_batcher(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, batch_size=5)
        telemetry = RetryTelemetry.from_settings(TelemetrySettings(), memory_sink, batcher)

        await telemetry.record(_retry_event())

        assert batcher.queued == 1
        assert memory_sink.events == []

    @pytest.mark.asyncio
    async def test_disabled_sink_records_nothing(self):
        sink = InMemoryTelemetrySink(enabled=False)
        telemetry = RetryTelemetry(sink)
        await telemetry.record(_retry_event())
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_config_failure_means_disabled(self):
        class BrokenConfigSink(InMemoryTelemetrySink):
            def get_config(self):
                raise ConnectionError("backend down")

        sink = BrokenConfigSink()
        telemetry = RetryTelemetry(sink)
        assert await telemetry.is_enabled() is False
        await telemetry.record(_retry_event())
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_payload_shape(self, memory_sink):
        telemetry = RetryTelemetry(memory_sink)
        await telemetry.record(_retry_event())

        payload = memory_sink.events[0]
        assert payload["message"] == "Retry attempt 1/3: get-website-schema"
        assert payload["component"] == "InvocationRetryOrchestrator"
        assert payload["context"]["outcome"] == "retry"
        assert payload["error"]["code"] == "ECONNREFUSED"

    @pytest.mark.asyncio
    async def test_emit_is_fire_and_forget(self, memory_sink):
        batcher = TelemetryBatcher(memory_sink, batch_size=100)
        telemetry = RetryTelemetry(memory_sink, batcher)

        telemetry.emit(_retry_event())
        await telemetry.drain()
        assert batcher.queued == 1

        await batcher.shutdown()
        assert len(memory_sink.events) == 1

    @pytest.mark.asyncio
    async def test_report_failure_swallowed(self):
        sink = InMemoryTelemetrySink(fail_with=RuntimeError("nope"))
        telemetry = RetryTelemetry(sink)
        await telemetry.record(_retry_event())

    def test_emit_without_loop_is_dropped(self, memory_sink):
        RetryTelemetry(memory_sink).emit(_retry_event())
        assert memory_sink.events == []
