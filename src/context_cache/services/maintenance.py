"""Periodic cache maintenance."""

import asyncio
import logging
from typing import Any

from context_cache.services.rag_cache_manager import RagCacheManager

logger = logging.getLogger(__name__)


class CacheMaintenanceTask:
    """Runs RagCacheManager.perform_maintenance on a fixed interval.

    The loop is an asyncio task owned by this object. A failed run is logged
    and the loop keeps going.

    Example:
        ```python
        task = CacheMaintenanceTask(manager, interval_seconds=86400)
        task.start()
        ...
        await task.stop()
        ```
    """

    def __init__(self, manager: RagCacheManager, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._manager = manager
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._runs = 0

    def start(self) -> None:
        """Start the loop. Does nothing if it is already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Cache maintenance scheduled every %.0fs", self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Cache maintenance stopped")

    async def run_once(self) -> dict[str, Any] | None:
        """Run a single maintenance pass, logging instead of raising."""
        try:
            result = await self._manager.perform_maintenance()
        except Exception:
            logger.exception("Cache maintenance run failed")
            return None
        self._runs += 1
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()

    @property
    def is_running(self) -> bool:
        """Whether the loop task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def runs(self) -> int:
        """Number of successful maintenance passes."""
        return self._runs
