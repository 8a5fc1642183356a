"""Tests for the diagnostics runner."""

from __future__ import annotations

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from diagnostics.runner import exit_code, format_results, run_diagnostics


def test_raising_probe_becomes_failure() -> None:
    def exploding_probe() -> DiagnosticResult:
        raise RuntimeError("no backend")

    def ok_probe() -> DiagnosticResult:
        return DiagnosticResult(name="ok", status=DiagnosticStatus.PASS, details="fine")

    results = run_diagnostics([exploding_probe, ok_probe])

    assert [result.status for result in results] == [DiagnosticStatus.FAIL, DiagnosticStatus.PASS]
    assert results[0].name == "exploding_probe"
    assert exit_code(results) == 1


def test_format_results_summarizes_counts() -> None:
    results = [
        DiagnosticResult(name="config", status=DiagnosticStatus.PASS, details="ok"),
        DiagnosticResult(name="services", status=DiagnosticStatus.WARN, details="unreachable"),
    ]

    report = format_results(results)

    assert "[WARN] services" in report
    assert report.endswith("2 checks, 0 failed, 1 warnings")
    assert exit_code(results) == 0
