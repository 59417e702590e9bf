"""
Concurrency utilities for anglesite-resilience.

Provides fire-and-forget task tracking for work that must not sit on the
caller's critical path (telemetry flushes, remote error reports), plus a
helper for calling collaborators that may be sync or async.

Example:
    from anglesite_resilience.core.concurrency import BackgroundTasks

    tasks = BackgroundTasks(name="telemetry")
    tasks.spawn(sink.report_batch(events))
    ...
    await tasks.drain()
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Coroutine, Dict, Optional, Set, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def maybe_await(value: Union[T, Awaitable[T]]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class BackgroundStats:
    """Statistics for a BackgroundTasks group.

    Attributes:
        spawned: Tasks scheduled
        completed: Tasks finished without error
        failed: Tasks that raised
        cancelled: Tasks cancelled before finishing
    """

    spawned: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0


class BackgroundTasks:
    """Keeps strong references to fire-and-forget tasks until they finish.

    Failures inside a task are logged and counted, never propagated.
    ``spawn`` needs a running event loop; without one the coroutine is
    closed and None is returned.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self.stats = BackgroundStats()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; dropping background work for %s", self.name or "tasks")
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        self.stats.spawned += 1
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.stats.cancelled += 1
            return
        exc = task.exception()
        if exc is not None:
            self.stats.failed += 1
            logger.warning("Background task in %s failed: %s", self.name or "tasks", exc)
        else:
            self.stats.completed += 1

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for all currently pending tasks (including ones they spawn)."""
        while self._tasks:
            pending = list(self._tasks)
            _done, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                logger.warning("%d background task(s) in %s still pending after drain timeout", len(not_done), self.name)
                return

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "pending": self.pending,
            "spawned": self.stats.spawned,
            "completed": self.stats.completed,
            "failed": self.stats.failed,
            "cancelled": self.stats.cancelled,
        }
