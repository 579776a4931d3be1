"""
Cancelable delayed and periodic tasks keyed by purpose.
"""

from typing import Awaitable, Callable, Dict, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class TaskScheduler:
    """
    Runs jobs on the current event loop, at most one task per purpose.

    Scheduling a purpose cancels whatever task was previously scheduled for
    it. Must be used from code running on the event loop.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def __contains__(self, purpose: str) -> bool:
        task = self._tasks.get(purpose)
        return task is not None and not task.done()

    def schedule(self, purpose: str, delay: float, job: Job) -> asyncio.Task:
        """Run job once after delay seconds, replacing any task for the same purpose."""

        async def run_later():
            if delay > 0:
                await asyncio.sleep(delay)
            await job()

        return self._start(purpose, run_later())

    def schedule_periodic(self, purpose: str, interval: float, job: Job) -> asyncio.Task:
        """
        Run job every interval seconds until canceled.

        A failing run is logged; later runs still happen.
        """

        async def run_forever():
            while True:
                await asyncio.sleep(interval)
                try:
                    await job()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(f"Periodic task {purpose!r} failed")

        return self._start(purpose, run_forever())

    def cancel(self, purpose: str) -> bool:
        """Cancel the task for a purpose; returns whether one was pending."""
        task = self._tasks.pop(purpose, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Canceled task {purpose!r}")
        return True

    def cancel_all(self) -> None:
        for purpose in list(self._tasks):
            self.cancel(purpose)

    def task(self, purpose: str) -> Optional[asyncio.Task]:
        return self._tasks.get(purpose)

    async def wait(self, purpose: str) -> None:
        """Wait for the current task of a purpose to finish, if there is one."""
        task = self._tasks.get(purpose)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _start(self, purpose: str, coro) -> asyncio.Task:
        self.cancel(purpose)
        task = asyncio.get_running_loop().create_task(coro, name=purpose)
        self._tasks[purpose] = task
        task.add_done_callback(lambda t: self._finished(purpose, t))
        return task

    def _finished(self, purpose: str, task: asyncio.Task) -> None:
        if self._tasks.get(purpose) is task:
            del self._tasks[purpose]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Task {purpose!r} failed: {task.exception()!r}")
