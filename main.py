"""Command-line entry point for the detection dashboard runtime."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
from pathlib import Path
import signal
import sys
from typing import Any

from config import ConfigController
from config.settings import DashboardSettings, SettingsStore
from core.logging import enable_file_logging, logger, set_level
from core.scheduling import RepeatingTask, millis
from ingest.stream_client import StreamSettings, StreamingIngestClient, stream_url
from render.overlay import WindowedRenderer
from render.surface import PillowSurface
from services.control_plane import ControlPlaneClient
from services.controls import DetectionControls
from services.health_probes import (
    overall_status,
    probe_detection_buffer,
    probe_mode_controller,
    probe_stream_session,
)
from services.liveness import LivenessProber
from services.mode_controller import ModeController
from services.status import derive_status
from vision.buffer import DetectionBuffer
from vision.recent import table_rows
from vision.simulator import SimulatedEventSource, SimulatorSettings, resolve_frame_url


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Ingest live detections (or simulate them) and render the overlay."
    )
    parser.add_argument("--base-url", type=str, help="Override the control-plane base URL.")
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    parser.add_argument(
        "--autostart",
        action="store_true",
        help="Ask the backend to start detection once the mode is chosen.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds instead of waiting for a signal.",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Save the last overlay frame as PNG on shutdown.",
    )
    return parser.parse_args(argv)


def run_diagnostics_report(base_url: str | None) -> int:
    from config.diagnostics import probe as config_probe
    from core.diagnostics import probe as core_probe
    from diagnostics.runner import exit_code, format_results, run_diagnostics
    from ingest.diagnostics import probe as ingest_probe
    from render.diagnostics import probe as render_probe
    from services.diagnostics import probe as services_probe

    client = None
    if base_url:
        client = ControlPlaneClient(base_url)
    results = run_diagnostics(
        [
            config_probe,
            core_probe,
            lambda: ingest_probe(base_url=base_url),
            render_probe,
            lambda: services_probe(client),
        ]
    )
    print(format_results(results))
    return exit_code(results)


def _log_status(
    mode_controller: ModeController,
    stream_client: StreamingIngestClient,
    buffer: DetectionBuffer,
    stale_after_ms: int,
) -> None:
    now_ms = millis()
    snapshot = mode_controller.snapshot()
    indicator = derive_status(snapshot, now_ms, stale_after_ms=stale_after_ms)
    probes = [
        probe_mode_controller(mode_controller),
        probe_stream_session(stream_client),
        probe_detection_buffer(buffer),
    ]
    rows = table_rows(buffer.snapshot(), now_ms)
    newest = f"{rows[0].label} {rows[0].confidence_percent}% ({rows[0].age})" if rows else "-"
    logger.info(
        "[Status] %s health=%s recent=%s newest=%s frame=%s",
        indicator.label(),
        overall_status(probes).value,
        len(rows),
        newest,
        resolve_frame_url(snapshot.mode, snapshot.backend_status)[:32],
    )
    for result in probes:
        logger.debug("[Status] %s: %s %s", result.name, result.status.value, result.summary)


async def run_dashboard(config: dict[str, Any], args: argparse.Namespace) -> int:
    base_url = (args.base_url or config["control_plane"]["base_url"]).rstrip("/")
    buffer = DetectionBuffer(config["buffer"]["capacity"])
    client = ControlPlaneClient(base_url, timeout_s=config["control_plane"]["timeout_s"])
    prober = LivenessProber(client, interval_s=config["liveness"]["interval_s"])
    stream_client = StreamingIngestClient(
        buffer,
        stream_url(base_url, config["stream"]["path"]),
        settings=StreamSettings.from_config(config),
    )
    simulator = SimulatedEventSource(SimulatorSettings.from_config(config))
    mode_controller = ModeController(buffer, prober, stream_client, simulator)
    settings = SettingsStore(DashboardSettings.from_config())
    controls = DetectionControls(mode_controller, client, buffer, settings)

    render_cfg = config["render"]
    surface = PillowSurface(render_cfg["width"], render_cfg["height"])
    renderer = WindowedRenderer(
        buffer,
        surface,
        settings.get,
        window_ms=render_cfg["window_ms"],
        fps=render_cfg["fps"],
    )
    status_task = RepeatingTask(
        config["status"]["log_period_s"],
        lambda: _log_status(
            mode_controller, stream_client, buffer, config["status"]["heartbeat_stale_ms"]
        ),
        name="status-log",
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        await mode_controller.start()
        if args.autostart:
            result = await controls.start_detection()
            if not result.ok:
                logger.warning("Autostart failed: %s", result.message)
        renderer.start()
        status_task.start()
        if args.duration is not None:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=args.duration)
        else:
            await stop_event.wait()
    finally:
        logger.info("Shutting down dashboard runtime...")
        status_task.cancel()
        renderer.stop()
        await mode_controller.stop()
        if args.snapshot is not None:
            renderer.render_frame()
            surface.save(args.snapshot)
            logger.info("Saved overlay snapshot to %s", args.snapshot)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    config = ConfigController.get_instance().get_config()
    set_level(config["logging_level"])
    args = parse_args(argv)
    if args.diagnostics:
        return run_diagnostics_report(args.base_url)

    if config["file_logging_enabled"]:
        log_file_path = Path(config["log_file"])
        enable_file_logging(log_file_path)
        logger.info("Writing logs to %s", log_file_path)

    try:
        return asyncio.run(run_dashboard(config, args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
