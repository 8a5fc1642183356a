"""Operator-tunable dashboard settings."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from config.controller import ConfigController
from core.logging import logger


@dataclass(frozen=True)
class DashboardSettings:
    """Detection thresholds, overlay toggles and source selector.

    The ingestion core only reads the three ``show_*`` flags; the thresholds
    and source are forwarded to the control plane untouched.
    """

    confidence: float = 0.5
    nms: float = 0.4
    show_overlay: bool = True
    show_boxes: bool = True
    show_labels: bool = True
    source: str = "camera"

    @classmethod
    def from_config(cls) -> "DashboardSettings":
        config = ConfigController.get_instance().get_config()
        settings_cfg = config.get("settings") or {}
        return cls(
            confidence=float(settings_cfg.get("confidence", 0.5)),
            nms=float(settings_cfg.get("nms", 0.4)),
            show_overlay=bool(settings_cfg.get("show_overlay", True)),
            show_boxes=bool(settings_cfg.get("show_boxes", True)),
            show_labels=bool(settings_cfg.get("show_labels", True)),
            source=str(settings_cfg.get("source", "camera")),
        )

    def control_plane_payload(self) -> dict[str, Any]:
        return {"confidence": self.confidence, "nms": self.nms, "source": self.source}


class SettingsStore:
    """Hold the current settings and apply partial updates."""

    def __init__(self, settings: DashboardSettings | None = None) -> None:
        self._settings = settings or DashboardSettings()

    def get(self) -> DashboardSettings:
        return self._settings

    def update(self, **changes: Any) -> DashboardSettings:
        known = {f.name for f in fields(DashboardSettings)}
        unknown = sorted(set(changes) - known)
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))
        accepted = {key: value for key, value in changes.items() if key in known}
        self._settings = replace(self._settings, **accepted)
        return self._settings
