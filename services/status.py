"""User-facing status indicator derived from mode controller state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.ops_models import BackendStatus, ModeSnapshot

HEARTBEAT_STALE_MS = 5000


class StatusLevel(str, Enum):
    OFFLINE = "Offline"
    UNKNOWN = "Unknown"
    STOPPED = "Stopped"
    STALE = "Stale"
    RUNNING = "Running"


@dataclass(frozen=True)
class StatusIndicator:
    level: StatusLevel
    mode: str
    connected: bool

    def label(self) -> str:
        return f"{self.level.value} [{self.mode}]"


def derive_status(
    snapshot: ModeSnapshot,
    now_ms: int,
    *,
    stale_after_ms: int = HEARTBEAT_STALE_MS,
) -> StatusIndicator:
    if snapshot.backend_status is BackendStatus.OFFLINE:
        level = StatusLevel.OFFLINE
    elif snapshot.backend_status is BackendStatus.UNKNOWN:
        level = StatusLevel.UNKNOWN
    elif not snapshot.running:
        level = StatusLevel.STOPPED
    elif (
        snapshot.last_heartbeat_ms is None
        or now_ms - snapshot.last_heartbeat_ms > stale_after_ms
    ):
        level = StatusLevel.STALE
    else:
        level = StatusLevel.RUNNING
    return StatusIndicator(level=level, mode=snapshot.mode.value, connected=snapshot.online)
