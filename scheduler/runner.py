"""Recurring task runner -- fires an async callback on a fixed period.

Runs are scheduled against the loop clock (start + n * interval), so a slow
callback shortens the following sleep instead of pushing every later run
back. If a run overruns whole periods, the missed runs are skipped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

Callback = Callable[[], Coroutine[Any, Any, Any]]


class RecurringTask:
    """Handle for a periodic background job with cancel-on-shutdown.

    Usage:
        task = RecurringTask("market-ticker", 10.0, ticker.tick)
        await task.start()
        ...
        await task.stop()
    """

    def __init__(self, name: str, interval: float, callback: Callback) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self._interval = interval
        self._callback = callback
        self._running = False
        self._task: asyncio.Task | None = None
        self.run_count = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the loop. The first run happens one interval from now."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("%s started (every %.3gs)", self.name, self._interval)

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish cancelling."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("%s stopped", self.name)

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + self._interval
        while self._running:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            try:
                await self._callback()
            except Exception:
                logger.exception("Error in %s", self.name)
            self.run_count += 1

            next_run += self._interval
            now = loop.time()
            if next_run < now:
                skipped = int((now - next_run) // self._interval) + 1
                logger.warning("%s fell behind, skipping %d run(s)", self.name, skipped)
                next_run += skipped * self._interval
