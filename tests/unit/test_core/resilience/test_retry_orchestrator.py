"""Tests for the retry orchestrator.

Verifies:
- Bounded attempts with exactly one terminal telemetry event
- Error-suggested delays capped by the policy, policy backoff otherwise
- Cooperative cancellation during backoff yields Aborted
- Lifecycle callbacks and telemetry failures never break an invocation
- with_retry decorator wiring
"""

import asyncio

import pytest

from anglesite_resilience.core.errors import (
    BusinessLogicError,
    ErrorCategory,
    ErrorSeverity,
    NetworkError,
    StructuredError,
    SystemLevelError,
)
from anglesite_resilience.core.resilience import (
    Aborted,
    Failure,
    RetryConfig,
    RetryOrchestrator,
    RetryPolicyRegistry,
    Success,
    calculate_backoff,
    compute_retry_delay,
    is_error_retryable,
    with_retry,
)


def flaky(failures, result="ok", exc_factory=lambda: Exception("ECONNREFUSED: connect 127.0.0.1:3000")):
    """Build an async operation that fails ``failures`` times, then returns ``result``."""
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise exc_factory()
        return result

    return operation, calls


class TestBackoffMath:
    """Tests for delay computation helpers."""

    @pytest.mark.parametrize("attempt,expected", [(0, 0), (1, 100), (2, 200), (3, 400), (4, 500), (10, 500)])
    def test_calculate_backoff(self, attempt, expected):
        config = RetryConfig(base_delay_ms=100, max_delay_ms=500)
        assert calculate_backoff(attempt, config) == expected

    def test_error_suggestion_wins_but_is_capped(self):
        config = RetryConfig(base_delay_ms=10, max_delay_ms=3000)
        error = NetworkError("x", "ECONNRESET", metadata={"retry_count": 4})
        assert compute_retry_delay(error, 1, config) == 3000
        error = NetworkError("x", "ECONNRESET", metadata={"retry_count": 0})
        assert compute_retry_delay(error, 1, config) == 1000

    def test_policy_backoff_when_no_suggestion(self):
        config = RetryConfig(base_delay_ms=100, max_delay_ms=5000)
        error = BusinessLogicError("x", "RULE", ErrorSeverity.LOW)
        assert compute_retry_delay(error, 3, config) == 400


class TestRetryability:
    """Tests for is_error_retryable."""

    def test_code_in_list(self):
        error = SystemLevelError("boom", "TIMEOUT")
        assert is_error_retryable(error, RetryConfig())

    def test_message_fragment_matches_case_insensitively(self):
        error = SystemLevelError("A network error happened", "SOMETHING")
        assert is_error_retryable(error, RetryConfig())

    def test_falls_back_to_recoverability(self):
        config = RetryConfig(retryable_error_codes=[])
        assert is_error_retryable(NetworkError("x", "ANY"), config)
        assert not is_error_retryable(SystemLevelError("x", "FATAL"), config)


class TestRun:
    """Tests for RetryOrchestrator.run outcomes and telemetry."""

    @pytest.mark.asyncio
    async def test_first_attempt_success_emits_nothing(self, fake_sleep, recording_telemetry):
        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=fake_sleep)
        operation, calls = flaky(0, result={"name": "blog"})

        outcome = await orchestrator.run(operation, RetryConfig(), channel="list-websites")

        assert isinstance(outcome, Success)
        assert outcome.value == {"name": "blog"}
        assert outcome.attempts == 1
        assert calls["count"] == 1
        assert recording_telemetry.events == []
        assert fake_sleep.calls == []

    @pytest.mark.asyncio
    async def test_connection_refused_recovers_on_third_attempt(self, fake_sleep, recording_telemetry):
        """Two refused connections then success on a read channel."""
        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=fake_sleep)
        config = RetryPolicyRegistry().effective("get-website-schema")
        operation, calls = flaky(2, result={"fields": []})

        outcome = await orchestrator.run(operation, config, channel="get-website-schema")

        assert isinstance(outcome, Success)
        assert outcome.attempts == 3
        assert calls["count"] == 3
        assert recording_telemetry.outcomes() == ["retry", "retry", "success"]
        assert fake_sleep.calls == [1.0, 2.0]
        success = recording_telemetry.events[-1]
        assert success.attempt == 3
        assert success.success is True

    @pytest.mark.asyncio
    async def test_exhausted_attempts_emit_one_failure(self, fake_sleep, recording_telemetry):
        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=fake_sleep)
        operation, calls = flaky(99)

        outcome = await orchestrator.run(operation, RetryConfig(max_attempts=4), channel="list-websites")

        assert isinstance(outcome, Failure)
        assert outcome.attempts == 4
        assert calls["count"] == 4
        assert recording_telemetry.outcomes() == ["retry", "retry", "retry", "failure"]
        assert outcome.error.code == "ECONNREFUSED"
        assert outcome.error.category == ErrorCategory.NETWORK
        assert outcome.error.metadata.operation == "list-websites"
        assert outcome.error.metadata.retry_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_immediately(self, fake_sleep, recording_telemetry):
        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=fake_sleep)
        operation, calls = flaky(5, exc_factory=lambda: SystemLevelError("disk controller gone", "FATAL"))

        outcome = await orchestrator.run(operation, RetryConfig(max_attempts=5, retryable_error_codes=[]))

        assert isinstance(outcome, Failure)
        assert calls["count"] == 1
        assert recording_telemetry.outcomes() == ["failure"]
        assert outcome.error.code == "FATAL"

    @pytest.mark.asyncio
    async def test_blacklisted_runs_once(self, fake_sleep, recording_telemetry):
        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=fake_sleep)
        operation, calls = flaky(1)

        outcome = await orchestrator.run(operation, RetryConfig(max_attempts=5), channel="create-new-page", blacklisted=True)

        assert isinstance(outcome, Failure)
        assert calls["count"] == 1
        assert recording_telemetry.outcomes() == ["failure"]

    @pytest.mark.asyncio
    async def test_structured_error_is_not_rewrapped(self, fake_sleep):
        original = NetworkError("refused", "ECONNREFUSED")
        operation, _ = flaky(5, exc_factory=lambda: original)

        outcome = await RetryOrchestrator(sleep_func=fake_sleep).run(operation, RetryConfig(max_attempts=1))

        assert type(outcome.error) is NetworkError
        assert outcome.error.cause is None
        assert outcome.error.timestamp == original.timestamp

    @pytest.mark.asyncio
    async def test_failure_unwrap_raises_classified_error(self, fake_sleep):
        operation, _ = flaky(5)
        outcome = await RetryOrchestrator(sleep_func=fake_sleep).run(operation, RetryConfig(max_attempts=1))
        with pytest.raises(StructuredError) as exc_info:
            outcome.unwrap()
        assert exc_info.value.code == "ECONNREFUSED"


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_before_first_attempt(self, fake_sleep):
        cancel = asyncio.Event()
        cancel.set()
        operation, calls = flaky(0)

        outcome = await RetryOrchestrator(sleep_func=fake_sleep).run(operation, RetryConfig(), cancel_event=cancel)

        assert isinstance(outcome, Aborted)
        assert outcome.attempts == 0
        assert calls["count"] == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, recording_telemetry):
        cancel = asyncio.Event()

        async def cancelling_sleep(seconds):
            cancel.set()

        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=cancelling_sleep)
        operation, calls = flaky(99)

        outcome = await orchestrator.run(operation, RetryConfig(max_attempts=5), cancel_event=cancel)

        assert isinstance(outcome, Aborted)
        assert outcome.attempts == 1
        assert calls["count"] == 1
        assert outcome.last_error.code == "ECONNREFUSED"
        assert outcome.unwrap("fallback") == "fallback"
        assert "failure" not in recording_telemetry.outcomes()

    @pytest.mark.asyncio
    async def test_cancel_interrupts_real_wait(self):
        """Without an injected sleep the backoff wait ends as soon as the event is set."""
        cancel = asyncio.Event()
        operation, calls = flaky(99)
        orchestrator = RetryOrchestrator()

        task = asyncio.create_task(orchestrator.run(operation, RetryConfig(max_attempts=3), cancel_event=cancel))
        await asyncio.sleep(0.01)
        cancel.set()
        outcome = await asyncio.wait_for(task, timeout=1.0)

        assert isinstance(outcome, Aborted)
        assert calls["count"] == 1


class TestIsolation:
    """Callbacks and telemetry can fail without affecting the outcome."""

    @pytest.mark.asyncio
    async def test_callbacks_are_invoked(self, fake_sleep):
        seen = {"retry": [], "success": []}
        operation, _ = flaky(1)

        outcome = await RetryOrchestrator(sleep_func=fake_sleep).run(
            operation,
            RetryConfig(),
            on_retry=lambda attempt, delay, error: seen["retry"].append((attempt, delay, error.code)),
            on_success=lambda attempts, duration: seen["success"].append(attempts),
        )

        assert outcome.ok
        assert seen["retry"] == [(1, 1000, "ECONNREFUSED")]
        assert seen["success"] == [2]

    @pytest.mark.asyncio
    async def test_raising_callbacks_are_swallowed(self, fake_sleep):
        def explode(*args):
            raise RuntimeError("callback bug")

        operation, _ = flaky(1)
        outcome = await RetryOrchestrator(sleep_func=fake_sleep).run(
            operation, RetryConfig(), on_retry=explode, on_success=explode, on_failure=explode
        )
        assert isinstance(outcome, Success)

        operation, _ = flaky(9)
        outcome = await RetryOrchestrator(sleep_func=fake_sleep).run(
            operation, RetryConfig(max_attempts=2), on_failure=explode
        )
        assert isinstance(outcome, Failure)

    @pytest.mark.asyncio
    async def test_failing_telemetry_is_swallowed(self, fake_sleep):
        class BrokenTelemetry:
            def emit(self, event):
                raise RuntimeError("sink down")

        operation, _ = flaky(1)
        outcome = await RetryOrchestrator(telemetry=BrokenTelemetry(), sleep_func=fake_sleep).run(
            operation, RetryConfig()
        )
        assert isinstance(outcome, Success)
        assert outcome.attempts == 2


class TestWithRetry:
    """Tests for the with_retry wrapper."""

    @pytest.mark.asyncio
    async def test_wrapper_passes_arguments(self, fake_sleep):
        async def load(site, *, draft=False):
            return f"{site}:{draft}"

        wrapped = with_retry(load, orchestrator=RetryOrchestrator(sleep_func=fake_sleep))
        outcome = await wrapped("blog", draft=True)

        assert outcome.value == "blog:True"
        assert wrapped.__name__ == "load"

    @pytest.mark.asyncio
    async def test_wrapper_uses_function_name_as_channel(self, fake_sleep, recording_telemetry):
        state = {"calls": 0}

        async def fetch_schema():
            state["calls"] += 1
            raise TimeoutError("slow")

        orchestrator = RetryOrchestrator(telemetry=recording_telemetry, sleep_func=fake_sleep)
        wrapped = with_retry(fetch_schema, RetryConfig(max_attempts=2), orchestrator=orchestrator)
        outcome = await wrapped()

        assert isinstance(outcome, Failure)
        assert state["calls"] == 2
        assert {event.channel for event in recording_telemetry.events} == {"fetch_schema"}
