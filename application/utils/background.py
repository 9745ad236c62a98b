"""Detached background work owned by the process.

Tasks spawned here are never awaited by the request that started them. Each
one reports its own failure through the log and the ``failed`` counter.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, Set

from core.logging_config import get_logger


logger = get_logger(__name__)


class BackgroundTasks:
    """Keeps strong references to in-flight tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, *, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("background_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failed += 1
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return
        self.completed += 1

    async def drain(self) -> None:
        """Wait until every task spawned so far has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Give in-flight tasks ``timeout`` seconds, then cancel the rest"""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("background_tasks_cancelled_on_shutdown", count=len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
