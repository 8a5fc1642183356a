"""Diagnostics routines for the services subsystem."""

from __future__ import annotations

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from services.control_plane import ControlPlaneClient


def probe(client: ControlPlaneClient | None = None) -> DiagnosticResult:
    """Check whether the control plane answers ``GET /api/status``.

    An unreachable backend is a warning, not a failure: the dashboard then
    starts in simulated mode.
    """

    name = "services"
    if client is None:
        from config import ConfigController

        client = ControlPlaneClient.from_config(ConfigController.get_instance().get_config())

    if client.check_health():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.PASS,
            details=f"Control plane reachable at {client.base_url}",
        )
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.WARN,
        details=f"Control plane unreachable at {client.base_url}; simulated mode will be used",
    )
