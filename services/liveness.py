"""Periodic liveness probing of the control plane."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from core.logging import logger
from core.scheduling import RepeatingTask
from services.control_plane import ControlPlaneClient

ProbeResultHandler = Callable[[bool], Awaitable[None] | None]


class LivenessProber:
    """Answer "is the control plane up?" once now and then on an interval.

    Each periodic probe runs in its own task, so a hung request never delays
    the next scheduled probe.
    """

    def __init__(self, client: ControlPlaneClient, *, interval_s: float = 10.0) -> None:
        self._client = client
        self._interval_s = float(interval_s)
        self._loop_task: RepeatingTask | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._handler: ProbeResultHandler | None = None
        self.probes_run = 0
        self.last_result: bool | None = None

    @property
    def interval_s(self) -> float:
        return self._interval_s

    async def probe(self) -> bool:
        """Return the control-plane health; any failure reads as unhealthy."""

        self.probes_run += 1
        try:
            healthy = bool(await asyncio.to_thread(self._client.check_health))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - probe should not raise
            logger.warning("Liveness probe failed: %s", exc)
            healthy = False
        self.last_result = healthy
        return healthy

    def start(self, handler: ProbeResultHandler) -> None:
        self._handler = handler
        if self._loop_task is not None:
            return
        self._loop_task = RepeatingTask(
            self._interval_s,
            self._spawn_probe,
            name="liveness-probe",
        )
        self._loop_task.start()

    def stop(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()
        self._handler = None

    def is_running(self) -> bool:
        return self._loop_task is not None

    def _spawn_probe(self) -> None:
        task = asyncio.get_running_loop().create_task(self._probe_and_report())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _probe_and_report(self) -> None:
        healthy = await self.probe()
        handler = self._handler
        if handler is None:
            return
        try:
            result = handler(healthy)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Failed to apply liveness result (healthy=%s)", healthy)
