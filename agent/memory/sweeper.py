"""
Background expiry sweeper.

Periodically removes expired conversation records and prunes stale
entities of the surviving ones. Started and stopped by the application
lifespan.
"""

import asyncio
import logging
from typing import Optional

from agent.memory.store import ConversationMemoryStore

logger = logging.getLogger(__name__)


class MemorySweeper:
    """asyncio task wrapper around ConversationMemoryStore.sweep_expired()."""

    def __init__(self, store: ConversationMemoryStore, interval_seconds: Optional[float] = None):
        self.store = store
        if interval_seconds is None:
            interval_seconds = store.config.sweep_interval_hours * 3600
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Memory sweeper started (every {self.interval_seconds:.0f}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Memory sweeper stopped")

    def sweep_once(self) -> int:
        try:
            return self.store.sweep_expired()
        except Exception as e:
            logger.error(f"Memory sweep failed: {str(e)}", exc_info=True)
            return 0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.sweep_once()
