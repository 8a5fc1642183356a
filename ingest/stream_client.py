"""Streaming ingest client for the backend detection websocket."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
import time
from typing import Any, AsyncContextManager, Callable
from urllib.parse import urlparse, urlunparse

from core.logging import (
    log_connection_transition,
    log_stream_event,
    log_warning,
    logger,
)
from core.ops_models import ConnectionPhase, ConnectionState
from core.scheduling import millis
from ingest.events import Closed, ConnectionEvent, Errored, MessageReceived, Opened
from vision.buffer import DetectionBuffer
from vision.detections import MessageFormatError, parse_message

Connector = Callable[[str], AsyncContextManager[Any]]
CallLater = Callable[[float, Callable[[], None]], Any]


def _require_websockets() -> Any:
    import importlib
    import importlib.util

    if importlib.util.find_spec("websockets") is None:
        raise RuntimeError("websockets is required for StreamingIngestClient")

    websockets = importlib.import_module("websockets")
    return websockets


def _default_connector(url: str) -> AsyncContextManager[Any]:
    websockets = _require_websockets()
    return websockets.connect(
        url,
        open_timeout=10,
        close_timeout=5,
        ping_interval=30,
        ping_timeout=10,
    )


def _default_call_later(delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay_s, callback)


def _close_code(exc: BaseException) -> int | None:
    rcvd = getattr(exc, "rcvd", None)
    code = getattr(rcvd, "code", None)
    if isinstance(code, int):
        return code
    return 1006


def stream_url(base_url: str, path: str = "/ws/detections") -> str:
    """Derive the websocket endpoint from the control-plane origin.

    ``http`` becomes ``ws`` and ``https`` becomes ``wss``; host and port are kept.
    """

    parsed = urlparse(base_url)
    scheme = "wss" if parsed.scheme in {"https", "wss"} else "ws"
    if not parsed.netloc:
        raise ValueError(f"Cannot derive stream endpoint from {base_url!r}")
    return urlunparse((scheme, parsed.netloc, path, "", "", ""))


def reconnect_delay_ms(attempts: int, base_delay_ms: int = 1000, max_delay_ms: int = 30000) -> int:
    """Backoff delay before the reconnect that follows ``attempts`` earlier ones."""

    return min(base_delay_ms * (2 ** max(attempts, 0)), max_delay_ms)


@dataclass(frozen=True)
class StreamSettings:
    """Reconnect policy for the ingest client."""

    max_reconnect_attempts: int = 10
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    @classmethod
    def from_config(cls, config: dict) -> "StreamSettings":
        stream_cfg = config.get("stream") or {}
        return cls(
            max_reconnect_attempts=int(stream_cfg.get("max_reconnect_attempts", 10)),
            base_delay_ms=int(stream_cfg.get("base_delay_ms", 1000)),
            max_delay_ms=int(stream_cfg.get("max_delay_ms", 30000)),
        )


class StreamingIngestClient:
    """Own one websocket to the detection stream and feed the buffer.

    All transitions go through :meth:`dispatch`. Every connection attempt is
    tagged with a generation number; events from an older generation (for
    example a socket that was torn down by :meth:`disconnect`) are ignored.
    """

    def __init__(
        self,
        buffer: DetectionBuffer,
        url: str,
        *,
        settings: StreamSettings | None = None,
        connector: Connector | None = None,
        call_later: CallLater | None = None,
        clock: Callable[[], int] = millis,
        on_open: Callable[[], None] | None = None,
        on_exhausted: Callable[[], None] | None = None,
        on_heartbeat: Callable[[int], None] | None = None,
    ) -> None:
        self._buffer = buffer
        self.url = url
        self.settings = settings or StreamSettings()
        self._connector = connector or _default_connector
        self._call_later = call_later or _default_call_later
        self._clock = clock
        self.on_open = on_open
        self.on_exhausted = on_exhausted
        self.on_heartbeat = on_heartbeat

        self._state = ConnectionState()
        self._should_reconnect = False
        self._generation = 0
        self._connection_task: asyncio.Task[None] | None = None
        self._retry_handle: Any = None

        self.messages_received = 0
        self.messages_dropped = 0
        self.connections = 0
        self.last_heartbeat_ms: int | None = None
        self.last_error: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_active(self) -> bool:
        """True while this client is the authoritative producer."""

        return self._should_reconnect

    def is_connected(self) -> bool:
        return self._state.phase is ConnectionPhase.OPEN

    def connect(self) -> None:
        """Open the stream unless a connection is already opening or open."""

        self._should_reconnect = True
        if self._state.final:
            self._state = ConnectionState()
        self._open()

    def disconnect(self) -> None:
        """Stop reconnecting, close any connection and reset state."""

        self._should_reconnect = False
        self._cancel_retry()
        self._generation += 1
        task = self._connection_task
        self._connection_task = None
        if task is not None and not task.done():
            task.cancel()
        previous = self._state.phase
        self._state = ConnectionState()
        if previous is not ConnectionPhase.DISCONNECTED:
            log_connection_transition(previous, self._state.phase, 0)

    async def aclose(self) -> None:
        """Disconnect and wait for the connection task to unwind."""

        task = self._connection_task
        self.disconnect()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def dispatch(self, event: ConnectionEvent, generation: int | None = None) -> None:
        """Apply one connection event to the state machine."""

        if generation is not None and generation != self._generation:
            logger.debug("Ignoring stale %s from generation %s", type(event).__name__, generation)
            return

        if isinstance(event, Opened):
            self._handle_opened()
        elif isinstance(event, MessageReceived):
            self._handle_message(event)
        elif isinstance(event, Errored):
            self.last_error = event.error
            log_stream_event("Incoming", "errored", event.error)
        elif isinstance(event, Closed):
            self._handle_closed(event)
        else:
            raise TypeError(f"Unsupported connection event: {event!r}")

    def _open(self) -> None:
        if self._state.phase in (ConnectionPhase.CONNECTING, ConnectionPhase.OPEN):
            return
        self._cancel_retry()
        self._generation += 1
        generation = self._generation
        self._transition(
            replace(
                self._state,
                phase=ConnectionPhase.CONNECTING,
                retry_deadline=None,
                final=False,
            )
        )
        loop = asyncio.get_running_loop()
        self._connection_task = loop.create_task(
            self._run_connection(generation),
            name=f"detection-stream-{generation}",
        )

    async def _run_connection(self, generation: int) -> None:
        try:
            async with self._connector(self.url) as websocket:
                self.dispatch(Opened(), generation)
                async for raw in websocket:
                    self.dispatch(MessageReceived(raw, self._clock()), generation)
                code = getattr(websocket, "close_code", None)
            self.dispatch(Closed(code=code, reason="closed by peer"), generation)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.dispatch(Errored(f"{type(exc).__name__}: {exc}"), generation)
            self.dispatch(Closed(code=_close_code(exc), reason=str(exc)), generation)

    def _handle_opened(self) -> None:
        self.connections += 1
        self._transition(ConnectionState(phase=ConnectionPhase.OPEN, attempts=0))
        log_stream_event("Incoming", "opened", self.url)
        if self.on_open is not None:
            self.on_open()

    def _handle_message(self, event: MessageReceived) -> None:
        try:
            message = parse_message(event.payload, event.arrival_ms)
        except MessageFormatError as exc:
            self.messages_dropped += 1
            log_warning(f"Dropping malformed detection message: {exc}")
            return
        self.messages_received += 1
        self._buffer.append_batch(message.detections)
        self.last_heartbeat_ms = message.timestamp_ms
        if self.on_heartbeat is not None:
            self.on_heartbeat(message.timestamp_ms)

    def _handle_closed(self, event: Closed) -> None:
        self._connection_task = None
        log_stream_event("Incoming", "closed", f"code={event.code}")
        attempts = self._state.attempts
        if not self._should_reconnect:
            self._transition(
                replace(self._state, phase=ConnectionPhase.DISCONNECTED, retry_deadline=None)
            )
            return

        if attempts >= self.settings.max_reconnect_attempts:
            self._should_reconnect = False
            self._transition(
                replace(
                    self._state,
                    phase=ConnectionPhase.DISCONNECTED,
                    retry_deadline=None,
                    final=True,
                )
            )
            log_stream_event("Incoming", "exhausted", f"after {attempts} reconnect attempts")
            if self.on_exhausted is not None:
                self.on_exhausted()
            return

        delay_ms = reconnect_delay_ms(
            attempts, self.settings.base_delay_ms, self.settings.max_delay_ms
        )
        self._transition(
            ConnectionState(
                phase=ConnectionPhase.DISCONNECTED,
                attempts=attempts + 1,
                retry_deadline=time.monotonic() + delay_ms / 1000.0,
            )
        )
        log_stream_event(
            "Outgoing", "reconnect", f"attempt {attempts + 1} in {delay_ms}ms"
        )
        self._retry_handle = self._call_later(delay_ms / 1000.0, self._on_retry_due)

    def _on_retry_due(self) -> None:
        self._retry_handle = None
        if not self._should_reconnect:
            return
        self._open()

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
        if self._state.retry_deadline is not None:
            self._state = replace(self._state, retry_deadline=None)

    def _transition(self, new_state: ConnectionState) -> None:
        previous = self._state
        self._state = new_state
        if previous.phase is not new_state.phase:
            log_connection_transition(previous.phase, new_state.phase, new_state.attempts)
