"""Tests for background task tracking and maybe_await."""

import asyncio

import pytest

from anglesite_resilience.core.concurrency import BackgroundTasks, maybe_await


class TestMaybeAwait:
    """Tests for maybe_await."""

    @pytest.mark.asyncio
    async def test_plain_value(self):
        assert await maybe_await(5) == 5

    @pytest.mark.asyncio
    async def test_coroutine(self):
        async def produce():
            return "done"

        assert await maybe_await(produce()) == "done"


class TestBackgroundTasks:
    """Tests for BackgroundTasks."""

    @pytest.mark.asyncio
    async def test_spawn_and_drain(self):
        tasks = BackgroundTasks(name="test")
        results = []

        async def work(value):
            await asyncio.sleep(0)
            results.append(value)

        tasks.spawn(work(1))
        tasks.spawn(work(2))
        assert tasks.pending == 2
        await tasks.drain()

        assert sorted(results) == [1, 2]
        assert tasks.get_stats()["completed"] == 2
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_failures_counted_not_raised(self):
        tasks = BackgroundTasks(name="test")

        async def explode():
            raise RuntimeError("boom")

        tasks.spawn(explode())
        await tasks.drain()

        assert tasks.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        tasks = BackgroundTasks(name="test")
        tasks.spawn(asyncio.sleep(10))
        await tasks.cancel_all()
        assert tasks.get_stats()["cancelled"] == 1
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_drain_timeout(self):
        tasks = BackgroundTasks(name="test")
        tasks.spawn(asyncio.sleep(10))
        await tasks.drain(timeout=0.01)
        assert tasks.pending == 1
        await tasks.cancel_all()

    def test_spawn_without_loop_drops_work(self):
        async def work():
            return 1

        tasks = BackgroundTasks(name="test")
        assert tasks.spawn(work()) is None
        assert tasks.get_stats()["spawned"] == 0
