"""Tracked fire-and-forget tasks."""

import asyncio
import logging
from collections import deque
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

MAX_RECORDED_FAILURES = 100


@dataclass
class BackgroundFailure:
    description: str
    error: BaseException


class BackgroundTaskRegistry:
    """Holds references to background tasks and records how they ended.

    Tasks spawned here are never awaited by their caller. Exceptions are logged
    and the most recent ones are kept in ``failures`` for inspection.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self.failures: deque[BackgroundFailure] = deque(maxlen=MAX_RECORDED_FAILURES)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=description)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task cancelled: %s", task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.error("Background task failed: %s (%s)", task.get_name(), error)
            self.failures.append(BackgroundFailure(task.get_name(), error))

    async def drain(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, settles."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
