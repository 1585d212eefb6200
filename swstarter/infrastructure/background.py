"""
Supervisor for fire-and-forget work.

Request handlers hand analytics work to the supervisor instead of awaiting
it. Each spawned task is tracked until it finishes, and any exception it
raises is logged here so it never surfaces as an unhandled task error.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from swstarter.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TaskSupervisor:
    """Owns detached asyncio tasks and reports their failures."""

    def __init__(self, name: str = "background"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return immediately."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("Detached task cancelled", supervisor=self.name, task=task.get_name())
            return

        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error(
                "Detached task failed",
                supervisor=self.name,
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task spawned so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Give in-flight tasks ``timeout`` seconds, then cancel the rest."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(
                "Cancelled detached tasks on shutdown",
                supervisor=self.name,
                cancelled=len(still_running),
            )
            await asyncio.gather(*still_running, return_exceptions=True)
