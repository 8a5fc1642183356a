"""Operator controls: start/stop detection, clear history, push settings."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from config.settings import DashboardSettings, SettingsStore
from core.logging import log_error, log_info
from core.ops_models import Mode
from services.control_plane import ControlPlaneClient, ControlPlaneError
from services.mode_controller import ModeController
from vision.buffer import DetectionBuffer


@dataclass(frozen=True)
class ControlResult:
    ok: bool
    message: str = ""


class DetectionControls:
    """Control-plane actions that keep the running flag consistent.

    In simulated mode start/stop only toggle local state. In live mode the
    flag changes only after the control plane accepts the request.
    """

    def __init__(
        self,
        mode_controller: ModeController,
        client: ControlPlaneClient,
        buffer: DetectionBuffer,
        settings: SettingsStore,
    ) -> None:
        self._mode_controller = mode_controller
        self._client = client
        self._buffer = buffer
        self._settings = settings

    async def start_detection(self) -> ControlResult:
        return await self._set_running(True)

    async def stop_detection(self) -> ControlResult:
        return await self._set_running(False)

    def clear_detections(self) -> None:
        self._buffer.clear()
        log_info("Detection history cleared")

    async def update_settings(self, **changes: Any) -> DashboardSettings:
        settings = self._settings.update(**changes)
        if self._mode_controller.mode is Mode.LIVE:
            await asyncio.to_thread(self._client.update_config, settings.control_plane_payload())
        return settings

    async def _set_running(self, running: bool) -> ControlResult:
        action = "start" if running else "stop"
        if self._mode_controller.mode is not Mode.LIVE:
            self._mode_controller.set_running(running)
            return ControlResult(ok=True, message=f"{action} (simulated)")

        call = self._client.start if running else self._client.stop
        try:
            await asyncio.to_thread(call)
        except ControlPlaneError as exc:
            log_error(f"Failed to {action} detection: {exc}")
            return ControlResult(ok=False, message=str(exc))
        self._mode_controller.set_running(running)
        return ControlResult(ok=True, message=action)
