"""
Background task helpers.

Runs coroutines without awaiting them while making sure their failures
reach the log.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger


class BackgroundTasks:
    """Keeps references to fire-and-forget tasks and logs their outcome."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """
        Schedule a coroutine in background.

        A result of False or None is treated as a reported failure, matching
        the sentinels returned by game-state operations.

        Args:
            coro: Coroutine to run
            name: Operation name for logging

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._handle_task_done)
        return task

    def _handle_task_done(self, task: asyncio.Task) -> None:
        """Log errors from background tasks."""
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task '{task.get_name()}' was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(
                f"Background task '{task.get_name()}' failed: {exc}"
            )
            return
        result = task.result()
        if result is False or result is None:
            logger.error(f"Background task '{task.get_name()}' reported failure")

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all pending tasks to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        """Cancel every pending task."""
        for task in list(self._tasks):
            task.cancel()
