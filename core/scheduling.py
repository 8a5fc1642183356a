"""Cancellable repeating tasks for the single asyncio event loop."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from core.logging import logger as LOGGER

TickCallback = Callable[[], Awaitable[None] | None]


def millis() -> int:
    """Wall-clock milliseconds since the epoch."""

    return int(time.time() * 1000)


class RepeatingTask:
    """Run a callback every ``interval_s`` until cancelled.

    The cancellation flag is checked before every iteration, so no callback
    fires after :meth:`cancel` returns even if the sleep already elapsed.
    Exceptions raised by the callback are logged and the loop keeps going.
    """

    def __init__(
        self,
        interval_s: float,
        callback: TickCallback,
        *,
        name: str = "repeating-task",
        run_immediately: bool = False,
    ) -> None:
        self._interval_s = max(float(interval_s), 0.0)
        self._callback = callback
        self._name = name
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self._cancelled = True
        self.iterations = 0

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def is_running(self) -> bool:
        return self._task is not None and not self._cancelled

    def start(self) -> None:
        if self.is_running():
            return
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        if self._run_immediately:
            await self._tick()
        while not self._cancelled:
            await asyncio.sleep(self._interval_s)
            if self._cancelled:
                return
            await self._tick()

    async def _tick(self) -> None:
        if self._cancelled:
            return
        self.iterations += 1
        try:
            result = self._callback()
            if asyncio.iscoroutine(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.exception("[%s] Error in tick (continuing): %s", self._name, exc)
