"""Mode controller choosing between the live stream and the simulator."""

from __future__ import annotations

from core.logging import log_mode_transition, logger
from core.ops_models import BackendStatus, Mode, ModeSnapshot
from ingest.stream_client import StreamingIngestClient
from services.liveness import LivenessProber
from vision.buffer import DetectionBuffer
from vision.simulator import SimulatedEventSource


class ModeController:
    """Own the current mode and keep exactly one producer writing to the buffer.

    Switching always stops the outgoing producer before the incoming one is
    started. The buffer is never cleared on a switch.
    """

    def __init__(
        self,
        buffer: DetectionBuffer,
        prober: LivenessProber,
        stream_client: StreamingIngestClient,
        simulator: SimulatedEventSource,
    ) -> None:
        self._buffer = buffer
        self._prober = prober
        self._stream_client = stream_client
        self._simulator = simulator
        self._mode: Mode | None = None
        self._backend_status = BackendStatus.UNKNOWN
        self._online = False
        self._running = False
        self._last_heartbeat_ms: int | None = None
        self._started = False
        self.transitions = 0

        stream_client.on_open = self._on_stream_open
        stream_client.on_exhausted = self.on_retries_exhausted
        stream_client.on_heartbeat = self._on_heartbeat

    @property
    def mode(self) -> Mode | None:
        return self._mode

    @property
    def backend_status(self) -> BackendStatus:
        return self._backend_status

    @property
    def online(self) -> bool:
        return self._online

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_heartbeat_ms(self) -> int | None:
        return self._last_heartbeat_ms

    def set_running(self, running: bool) -> None:
        self._running = bool(running)

    def snapshot(self) -> ModeSnapshot:
        return ModeSnapshot(
            mode=self._mode or Mode.SIMULATED,
            backend_status=self._backend_status,
            online=self._online,
            running=self._running,
            last_heartbeat_ms=self._last_heartbeat_ms,
        )

    def active_producers(self) -> list[str]:
        producers = []
        if self._stream_client.is_active():
            producers.append("stream")
        if self._simulator.is_running():
            producers.append("simulator")
        return producers

    async def start(self) -> None:
        """Probe once, activate the matching producer, then probe periodically."""

        if self._started:
            return
        self._started = True
        healthy = await self._prober.probe()
        if not self._started:
            return
        if healthy:
            self._backend_status = BackendStatus.ONLINE
            self._switch_to_live("startup probe healthy")
        else:
            self._backend_status = BackendStatus.OFFLINE
            self._switch_to_simulated("startup probe failed")
        self._prober.start(self.handle_probe_result)

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self._prober.stop()
        self._simulator.stop()
        await self._stream_client.aclose()
        self._online = False
        logger.info("Mode controller stopped (last mode=%s)", getattr(self._mode, "value", None))

    def handle_probe_result(self, healthy: bool) -> None:
        if not self._started:
            return
        if healthy and self._mode is Mode.SIMULATED:
            self._backend_status = BackendStatus.ONLINE
            self._switch_to_live("backend came back online")
        elif not healthy and self._mode is Mode.LIVE:
            self._backend_status = BackendStatus.OFFLINE
            self._online = False
            self._switch_to_simulated("backend went offline")

    def on_retries_exhausted(self) -> None:
        if not self._started or self._mode is not Mode.LIVE:
            return
        self._backend_status = BackendStatus.OFFLINE
        self._online = False
        self._switch_to_simulated("stream reconnect attempts exhausted")

    def _switch_to_live(self, reason: str) -> None:
        previous = self._mode
        self._simulator.stop()
        self._mode = Mode.LIVE
        self.transitions += 1
        log_mode_transition(previous, self._mode, reason)
        self._stream_client.connect()

    def _switch_to_simulated(self, reason: str) -> None:
        previous = self._mode
        self._stream_client.disconnect()
        self._mode = Mode.SIMULATED
        self.transitions += 1
        log_mode_transition(previous, self._mode, reason)
        self._simulator.start(self._buffer.append_batch)

    def _on_stream_open(self) -> None:
        self._online = True
        self._backend_status = BackendStatus.ONLINE

    def _on_heartbeat(self, timestamp_ms: int) -> None:
        self._last_heartbeat_ms = timestamp_ms
