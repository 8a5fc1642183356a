"""Diagnostics runner utilities."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from core.logging import logger as LOGGER
from diagnostics.models import DiagnosticResult, DiagnosticStatus

Probe = Callable[[], DiagnosticResult]


def format_results(results: Iterable[DiagnosticResult]) -> str:
    """Return a human-friendly diagnostics report."""

    results = list(results)
    width = max((len(result.name) for result in results), default=0)
    lines = ["Detection dashboard diagnostics", "-" * 60]
    for result in results:
        lines.append(f"[{result.status.value}] {result.name.ljust(width)}  {result.details}")
    lines.append("-" * 60)
    failures = sum(1 for result in results if result.failed)
    warnings = sum(1 for result in results if result.status is DiagnosticStatus.WARN)
    lines.append(f"{len(results)} checks, {failures} failed, {warnings} warnings")
    return "\n".join(lines)


def run_diagnostics(probes: Iterable[Probe]) -> list[DiagnosticResult]:
    """Run every probe, turning a raised exception into a FAIL result."""

    results: list[DiagnosticResult] = []
    for probe in probes:
        try:
            result = probe()
        except Exception as exc:  # noqa: BLE001 - diagnostics must keep running
            LOGGER.exception("Probe failed: %s", probe)
            result = DiagnosticResult(
                name=getattr(probe, "__name__", "unknown_probe"),
                status=DiagnosticStatus.FAIL,
                details=f"Probe raised exception: {exc}",
            )
        results.append(result)
    return results


def exit_code(results: Iterable[DiagnosticResult]) -> int:
    return 1 if any(result.failed for result in results) else 0
