"""Models for dashboard mode, connection and health tracking."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class HealthStatus(str, Enum):
    """Overall health classification for a runtime subsystem."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILING = "failing"


class Mode(str, Enum):
    """Which producer is authoritative for the detection buffer."""

    LIVE = "live"
    SIMULATED = "simulated"


class BackendStatus(str, Enum):
    """Last known reachability of the control plane."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectionPhase(str, Enum):
    """Lifecycle phase of the streaming connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


@dataclass(frozen=True)
class ConnectionState:
    """Connection phase plus retry bookkeeping.

    ``retry_deadline`` is a monotonic timestamp in seconds and is only set
    while a reconnect is pending. ``final`` marks the terminal disconnected
    state reached after retries are exhausted.
    """

    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    attempts: int = 0
    retry_deadline: float | None = None
    final: bool = False


@dataclass(frozen=True)
class ModeSnapshot:
    """Observable state of the mode controller."""

    mode: Mode
    backend_status: BackendStatus
    online: bool
    running: bool
    last_heartbeat_ms: int | None = None
