"""Runtime health probes for the ingestion core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from core.ops_models import ConnectionPhase, HealthStatus, Mode
from ingest.stream_client import StreamingIngestClient
from services.mode_controller import ModeController
from vision.buffer import DetectionBuffer


@dataclass(frozen=True)
class HealthProbeResult:
    """Result of a single subsystem health probe."""

    name: str
    status: HealthStatus
    summary: str
    details: Mapping[str, str | float | int] = field(default_factory=dict)


def probe_stream_session(client: StreamingIngestClient | None) -> HealthProbeResult:
    """Probe stream connectivity health."""

    if client is None:
        return HealthProbeResult(
            name="stream",
            status=HealthStatus.DEGRADED,
            summary="Stream client not initialized",
        )

    state = client.state
    details: dict[str, str | float | int] = {
        "phase": state.phase.value,
        "attempts": state.attempts,
        "connections": client.connections,
        "messages": client.messages_received,
        "dropped": client.messages_dropped,
    }
    if client.last_error:
        details["last_error"] = client.last_error

    if state.phase is ConnectionPhase.OPEN:
        status = HealthStatus.OK
        summary = "Stream connected"
    elif state.final:
        status = HealthStatus.FAILING
        summary = "Stream reconnect attempts exhausted"
    elif client.is_active():
        status = HealthStatus.DEGRADED
        summary = f"Stream {state.phase.value} (attempt {state.attempts})"
    else:
        status = HealthStatus.DEGRADED
        summary = "Stream inactive"
    return HealthProbeResult(name="stream", status=status, summary=summary, details=details)


def probe_mode_controller(controller: ModeController) -> HealthProbeResult:
    """Probe that exactly one producer is active and report the mode."""

    producers = controller.active_producers()
    mode = controller.mode
    details: dict[str, str | float | int] = {
        "mode": mode.value if mode else "none",
        "backend": controller.backend_status.value,
        "producers": ",".join(producers) or "none",
        "transitions": controller.transitions,
    }
    if len(producers) != 1:
        return HealthProbeResult(
            name="mode",
            status=HealthStatus.FAILING,
            summary=f"Expected one active producer, found {len(producers)}",
            details=details,
        )
    if mode is Mode.SIMULATED:
        return HealthProbeResult(
            name="mode",
            status=HealthStatus.DEGRADED,
            summary="Running on simulated detections",
            details=details,
        )
    return HealthProbeResult(
        name="mode",
        status=HealthStatus.OK,
        summary="Live detections",
        details=details,
    )


def probe_detection_buffer(buffer: DetectionBuffer) -> HealthProbeResult:
    size = len(buffer)
    return HealthProbeResult(
        name="buffer",
        status=HealthStatus.OK,
        summary=f"{size}/{buffer.capacity} detections buffered",
        details={
            "size": size,
            "capacity": buffer.capacity,
            "appended_total": buffer.appended_total,
        },
    )


def overall_status(results: Iterable[HealthProbeResult]) -> HealthStatus:
    statuses = {result.status for result in results}
    if HealthStatus.FAILING in statuses:
        return HealthStatus.FAILING
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.OK
