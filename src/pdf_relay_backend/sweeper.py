"""Background task that evicts stale files from the staging directory."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .staging import StagingStore

logger = logging.getLogger(__name__)


class HousekeepingSweeper:
    """
    Periodically removes staged files older than the time-to-live.

    The sweep itself runs in a worker thread so scanning the directory never
    blocks request handling on the event loop. Errors are logged and the
    next cycle runs as scheduled.
    """

    def __init__(self, store: StagingStore, interval_seconds: float, max_age_seconds: float) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self.max_age_seconds = max_age_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> List[str]:
        try:
            removed = await asyncio.to_thread(self.store.sweep, self.max_age_seconds)
        except Exception as exc:
            logger.error(f"Staging sweep failed: {exc}")
            return []
        if removed:
            logger.info(f"Sweep removed {len(removed)} stale file(s)")
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Staging sweeper started (every {self.interval_seconds:.0f}s, ttl {self.max_age_seconds:.0f}s)"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Staging sweeper stopped")
