"""
Background scheduler for periodic cache maintenance.

Runs the expired-entry sweep of the :class:`CacheStore` on a fixed interval so
that keys which are never requested again do not accumulate in memory.  The
scheduler is started and stopped by the application lifespan.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List

from quran_proxy.cache import CacheStore

logger = logging.getLogger(__name__)


class CacheSweepScheduler:
    """
    Scheduler for periodic background cache sweeps.

    The sweep goes through :meth:`CacheStore.sweep`, the same eviction path
    used by lazy expiry on lookup.
    """

    def __init__(self, cache: CacheStore, interval_seconds: int) -> None:
        """
        Initialize the scheduler.

        Args:
            cache: Store whose expired entries are swept
            interval_seconds: Seconds between sweeps
        """
        self.cache = cache
        self.interval_seconds = interval_seconds
        self._tasks: List[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep task."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        logger.info("Starting cache sweep scheduler")

        self._tasks = [
            asyncio.create_task(self._run_periodic_task(
                self._sweep,
                self.interval_seconds,
                "cache_sweep",
            )),
        ]

        logger.info(
            "Scheduler started with %d tasks: cache_sweep(%ds)",
            len(self._tasks),
            self.interval_seconds,
        )

    async def stop(self) -> None:
        """Stop all scheduled background tasks."""
        if not self._running:
            logger.warning("Scheduler not running")
            return

        self._running = False
        logger.info("Stopping cache sweep scheduler")

        for task in self._tasks:
            task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks = []
        logger.info("Scheduler stopped")

    async def _run_periodic_task(
        self,
        task_func: Callable[..., Awaitable[None]],
        interval_seconds: int,
        task_name: str,
    ) -> None:
        """
        Run a task periodically, waiting one interval before each run.

        Args:
            task_func: Async function to execute periodically
            interval_seconds: Interval between executions in seconds
            task_name: Name of the task for logging
        """
        logger.info("Starting periodic task %s with interval %ds", task_name, interval_seconds)

        while self._running:
            try:
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                logger.info("Periodic task %s cancelled", task_name)
                break

            try:
                await task_func()
            except Exception as e:
                # Keep sweeping on the next tick.
                logger.error(
                    "Error in periodic task %s: %s",
                    task_name,
                    str(e),
                    exc_info=True,
                )

    async def _sweep(self) -> None:
        """Evict expired cache entries."""
        removed = await self.cache.sweep()
        logger.debug("Cache sweep finished: %d expired entries removed", removed)
