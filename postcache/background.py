"""Detached background work with logged failures.

View counting must not delay the read path, so the reader hands it to a
``BackgroundRunner``. The runner keeps a strong reference to every task
until it finishes (the event loop only keeps weak ones) and logs any
failure with the context supplied by the caller, e.g. ``record_view
post=42``, so counter drift can be traced.

Usage:
    runner = BackgroundRunner()
    runner.spawn(counter.record_view(post_id), context=f"record_view post={post_id}")

    # On shutdown / in tests
    await runner.drain()
"""

import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Fire-and-forget task spawner."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine, context: str) -> asyncio.Task:
        """Schedule ``coro`` without awaiting it.

        Args:
            coro: Coroutine to run detached from the caller
            context: Short description logged if the task fails

        Returns:
            The created task (callers normally ignore it)
        """
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._on_done(done, context))
        return task

    def _on_done(self, task: asyncio.Task, context: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task cancelled: {context}")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task failed: {context}: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for all pending tasks; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning(f"Cancelled {len(not_done)} background task(s) on drain")
            await asyncio.gather(*not_done, return_exceptions=True)
