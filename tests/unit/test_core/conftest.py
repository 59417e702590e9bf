"""Shared fixtures for core unit tests."""

from typing import List

import pytest

from anglesite_resilience.core.observability.sinks import InMemoryTelemetrySink


class RecordingSleep:
    """Async sleep stand-in that records requested durations."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class RecordingTelemetry:
    """Synchronous TelemetryEmitter that keeps every event."""

    def __init__(self):
        self.events = []

    def emit(self, event) -> None:
        self.events.append(event)

    def outcomes(self):
        return [event.outcome.value for event in self.events]


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def recording_telemetry():
    return RecordingTelemetry()


@pytest.fixture
def memory_sink():
    return InMemoryTelemetrySink()
