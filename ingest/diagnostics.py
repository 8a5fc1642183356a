"""Diagnostics routines for the stream ingestion subsystem."""

from __future__ import annotations

import importlib.util

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from ingest.stream_client import stream_url


def probe(base_url: str | None = None, path: str | None = None) -> DiagnosticResult:
    """Check that websockets is importable and the stream endpoint derives.

    Args:
        base_url: Control-plane origin; read from config when omitted.
        path: Stream path; read from config when omitted.
    """

    name = "ingest"
    if importlib.util.find_spec("websockets") is None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="websockets is not installed; live mode unavailable",
        )

    if base_url is None or path is None:
        from config import ConfigController

        config = ConfigController.get_instance().get_config()
        base_url = base_url or config["control_plane"]["base_url"]
        path = path or config["stream"]["path"]

    try:
        url = stream_url(base_url, path)
    except ValueError as exc:
        return DiagnosticResult(name=name, status=DiagnosticStatus.FAIL, details=str(exc))
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Stream endpoint {url}",
    )
