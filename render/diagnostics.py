"""Diagnostics routines for the overlay renderer."""

from __future__ import annotations

import importlib.util

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe() -> DiagnosticResult:
    """Check that Pillow can allocate an overlay surface."""

    name = "render"
    if importlib.util.find_spec("PIL") is None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Pillow is not installed; overlay cannot be drawn",
        )

    from render.surface import PillowSurface

    surface = PillowSurface(64, 48)
    width = surface.measure_text("Robin 92%")
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Pillow surface ready (label width {width:.0f}px)",
    )
