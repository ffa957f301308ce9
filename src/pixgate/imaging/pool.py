"""Transform concurrency layer and background task supervision.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> Pillow

Requests beyond the semaphore limit wait up to ``queue_timeout`` seconds,
then fail with ``Overloaded``. Cache writes run as detached tasks that the
request path never awaits.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from pixgate.errors import Overloaded

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransformPool:
    """Bounds the number of transforms running at once."""

    def __init__(self, max_concurrent: int, queue_timeout: float = 5.0) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="image-transform",
        )
        self._queue_timeout = queue_timeout

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a synchronous function on the transform thread pool.

        Raises:
            Overloaded: If no slot frees up within the queue timeout.
        """
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._queue_timeout)
        except TimeoutError:
            raise Overloaded(f"no transform slot available within {self._queue_timeout}s") from None

        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)


class BackgroundTasks:
    """Fire-and-forget runner for blocking calls such as cache writes.

    Keeps a reference to every task until it finishes and logs failures, so a
    failing task never reaches the code that submitted it.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[object]] = set()

    def submit(self, func: Callable[..., object], *args: object, name: str | None = None) -> asyncio.Task[object]:
        task: asyncio.Task[object] = asyncio.create_task(asyncio.to_thread(func, *args), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task %s failed: %s", task.get_name(), exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task; failures are already logged."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
