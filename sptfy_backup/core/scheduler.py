"""
Periodic background tasks (metadata refresh and download scans).
"""

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable

log = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs an async callback every `interval_seconds` in a background task. Errors
    are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[object]],
        run_immediately: bool = False,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Starts the periodic loop if it is not already running."""
        if self.interval_seconds <= 0:
            log.debug(f"Periodic task '{self.name}' disabled (interval 0).")
            return
        if not self.running:
            self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
            log.info(f"{self.name} interval: {self.interval_seconds:g} seconds")

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval_seconds)
        while True:
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning(f"Error in periodic task '{self.name}': {e}")
            self.runs += 1
            await asyncio.sleep(self.interval_seconds)

    async def stop(self) -> None:
        """Stops the periodic loop gracefully."""
        if self._task and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            log.debug(f"Stopped periodic task '{self.name}'.")
        self._task = None
