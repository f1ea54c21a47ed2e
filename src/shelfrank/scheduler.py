from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any

from .logging_config import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class PeriodicTask:
    """
    Fire ``callback`` every ``interval`` seconds without waiting for it.

    Each firing runs as its own task, like an interval timer; a callback that
    is still busy must decide for itself to skip the new firing.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._runs: set[asyncio.Task[Any]] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self.running:
            raise RuntimeError(f"{self.name} is already running")
        self._task = asyncio.create_task(self.run(), name=self.name)
        return self._task

    async def run(self) -> None:
        if self.interval <= 0:
            logger.info("Periodic task disabled (interval=0)", task=self.name)
            return

        logger.info("Periodic task started", task=self.name, interval=self.interval)
        try:
            while True:
                await self._sleep(self.interval)
                self.fire()
        except asyncio.CancelledError:
            logger.debug("Periodic task cancelled", task=self.name)
            raise

    def fire(self) -> asyncio.Task[Any]:
        run = asyncio.create_task(self._guarded(), name=f"{self.name}-run")
        self._runs.add(run)
        run.add_done_callback(self._runs.discard)
        return run

    async def _guarded(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Periodic task run failed", task=self.name, error=str(e))

    async def stop(self, timeout: float = 5.0) -> None:
        pending = [task for task in (self._task, *self._runs) if task is not None]
        for task in pending:
            task.cancel()

        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                try:
                    await asyncio.wait_for(task, timeout=timeout)
                except TimeoutError:
                    logger.warning("Task did not stop gracefully", task=task.get_name())

        self._task = None
        self._runs.clear()
