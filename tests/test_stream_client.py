from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable

from core.ops_models import ConnectionPhase, ConnectionState
from ingest.events import Closed, Opened
from ingest.stream_client import StreamingIngestClient, reconnect_delay_ms, stream_url
from vision.buffer import DetectionBuffer


class _FakeSocket:
    def __init__(self, messages: list[str], hold: asyncio.Event | None = None) -> None:
        self._messages = list(messages)
        self._hold = hold
        self.close_code = 1000

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message
        if self._hold is not None:
            await self._hold.wait()


class _FakeHandle:
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


def _refusing_connector(attempts: list[str]):
    @contextlib.asynccontextmanager
    async def connect(url: str):
        attempts.append(url)
        raise ConnectionRefusedError("connection refused")
        yield  # pragma: no cover

    return connect


def _socket_connector(socket: _FakeSocket, attempts: list[str], failures: int = 0):
    @contextlib.asynccontextmanager
    async def connect(url: str):
        attempts.append(url)
        if len(attempts) <= failures:
            raise OSError("backend starting")
        yield socket

    return connect


async def _settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_reconnect_delays_double_then_cap() -> None:
    delays = [reconnect_delay_ms(n - 1) for n in range(1, 11)]

    assert delays == [min(1000 * 2 ** (n - 1), 30000) for n in range(1, 11)]
    assert delays[:6] == [1000, 2000, 4000, 8000, 16000, 30000]


def test_stream_url_follows_page_scheme() -> None:
    assert stream_url("http://bob.local:8000") == "ws://bob.local:8000/ws/detections"
    assert stream_url("https://bob.example/") == "wss://bob.example/ws/detections"


def test_retries_exhaust_after_ten_attempts() -> None:
    async def scenario() -> tuple[list[float], list[str], StreamingIngestClient]:
        loop = asyncio.get_running_loop()
        delays: list[float] = []
        attempts: list[str] = []
        exhausted = asyncio.Event()

        def fake_call_later(delay_s: float, callback: Callable[[], None]) -> Any:
            delays.append(delay_s)
            return loop.call_soon(callback)

        client = StreamingIngestClient(
            DetectionBuffer(),
            "ws://backend/ws/detections",
            connector=_refusing_connector(attempts),
            call_later=fake_call_later,
            on_exhausted=exhausted.set,
        )
        client.connect()
        await asyncio.wait_for(exhausted.wait(), timeout=2.0)
        await _settle()
        return delays, attempts, client

    delays, attempts, client = asyncio.run(scenario())

    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0, 30.0, 30.0]
    assert len(attempts) == 11
    assert client.state.phase is ConnectionPhase.DISCONNECTED
    assert client.state.final is True
    assert client.is_active() is False
    assert client.last_error is not None and "ConnectionRefusedError" in client.last_error


def test_messages_feed_buffer_and_malformed_payloads_are_dropped() -> None:
    async def scenario() -> tuple[StreamingIngestClient, DetectionBuffer, list[int], list[bool]]:
        hold = asyncio.Event()
        socket = _FakeSocket(
            [
                '{"timestamp": 4000, "detections":[{"bbox":[10,20,30,40],'
                '"confidence":0.92,"class_name":"Robin"}]}',
                "{not json",
                '{"detections":[{"bbox":[1,1,1,1],"confidence":0.5,"class_name":"Owl"}]}',
            ],
            hold=hold,
        )
        buffer = DetectionBuffer()
        heartbeats: list[int] = []
        opened: list[bool] = []
        client = StreamingIngestClient(
            buffer,
            "ws://backend/ws/detections",
            connector=_socket_connector(socket, []),
            clock=lambda: 7000,
            on_open=lambda: opened.append(True),
            on_heartbeat=heartbeats.append,
        )
        client.connect()
        await _settle()
        assert client.is_connected()
        await client.aclose()
        return client, buffer, heartbeats, opened

    client, buffer, heartbeats, opened = asyncio.run(scenario())

    assert [det.label for det in buffer.snapshot()] == ["Robin", "Owl"]
    assert buffer.snapshot()[1].timestamp_ms == 7000
    assert client.messages_received == 2
    assert client.messages_dropped == 1
    assert heartbeats == [4000, 7000]
    assert opened == [True]
    assert client.state.phase is ConnectionPhase.DISCONNECTED
    assert client.state.attempts == 0


def test_connect_is_idempotent_while_connecting_or_open() -> None:
    async def scenario() -> list[str]:
        hold = asyncio.Event()
        attempts: list[str] = []
        client = StreamingIngestClient(
            DetectionBuffer(),
            "ws://backend/ws/detections",
            connector=_socket_connector(_FakeSocket([], hold=hold), attempts),
        )
        client.connect()
        client.connect()
        await _settle()
        client.connect()
        await _settle()
        await client.aclose()
        return attempts

    assert len(asyncio.run(scenario())) == 1


def test_successful_open_resets_attempt_counter() -> None:
    async def scenario() -> StreamingIngestClient:
        loop = asyncio.get_running_loop()
        hold = asyncio.Event()
        attempts: list[str] = []
        client = StreamingIngestClient(
            DetectionBuffer(),
            "ws://backend/ws/detections",
            connector=_socket_connector(_FakeSocket([], hold=hold), attempts, failures=2),
            call_later=lambda delay, callback: loop.call_soon(callback),
        )
        client.connect()
        await _settle(40)
        assert len(attempts) == 3
        assert client.state.phase is ConnectionPhase.OPEN
        assert client.state.attempts == 0
        await client.aclose()
        return client

    client = asyncio.run(scenario())

    assert client.connections == 1


def test_disconnect_cancels_pending_reconnect() -> None:
    async def scenario() -> tuple[list[_FakeHandle], list[str], StreamingIngestClient]:
        handles: list[_FakeHandle] = []
        attempts: list[str] = []

        def fake_call_later(delay_s: float, callback: Callable[[], None]) -> _FakeHandle:
            handle = _FakeHandle(callback)
            handles.append(handle)
            return handle

        client = StreamingIngestClient(
            DetectionBuffer(),
            "ws://backend/ws/detections",
            connector=_refusing_connector(attempts),
            call_later=fake_call_later,
        )
        client.connect()
        await _settle()
        assert client.state.retry_deadline is not None
        client.disconnect()
        # A timer that already fired must still respect the disconnect.
        handles[0].callback()
        await _settle()
        return handles, attempts, client

    handles, attempts, client = asyncio.run(scenario())

    assert len(handles) == 1
    assert handles[0].cancelled is True
    assert len(attempts) == 1
    assert client.state.phase is ConnectionPhase.DISCONNECTED
    assert client.state.attempts == 0
    assert client.state.retry_deadline is None


def test_events_from_stale_generation_are_ignored() -> None:
    client = StreamingIngestClient(DetectionBuffer(), "ws://backend/ws/detections")

    client.dispatch(Opened(), generation=99)

    assert client.state.phase is ConnectionPhase.DISCONNECTED
    assert client.connections == 0


def test_close_without_reconnect_desired_stays_disconnected() -> None:
    client = StreamingIngestClient(DetectionBuffer(), "ws://backend/ws/detections")

    client.dispatch(Opened())
    client.dispatch(Closed(code=1000))

    assert client.state.phase is ConnectionPhase.DISCONNECTED
    assert client.state.final is False


def test_non_finite_timestamp_is_dropped_without_closing_connection() -> None:
    async def scenario() -> tuple[StreamingIngestClient, DetectionBuffer, list[float], ConnectionPhase]:
        hold = asyncio.Event()
        delays: list[float] = []
        socket = _FakeSocket(
            [
                '{"detections": [], "timestamp": NaN}',
                '{"detections":[{"bbox":[10,20,30,40],"confidence":0.92,"class_name":"Robin"}]}',
            ],
            hold=hold,
        )
        buffer = DetectionBuffer()
        client = StreamingIngestClient(
            buffer,
            "ws://backend/ws/detections",
            connector=_socket_connector(socket, []),
            call_later=lambda delay, callback: delays.append(delay),
        )
        client.connect()
        await _settle()
        phase = client.state.phase
        await client.aclose()
        return client, buffer, delays, phase

    client, buffer, delays, phase = asyncio.run(scenario())

    assert phase is ConnectionPhase.OPEN
    assert [det.label for det in buffer.snapshot()] == ["Robin"]
    assert client.messages_dropped == 1
    assert client.connections == 1
    assert delays == []


def test_connect_after_exhaustion_starts_fresh_attempt_cycle() -> None:
    async def scenario() -> tuple[list[float], ConnectionState]:
        loop = asyncio.get_running_loop()
        delays: list[float] = []
        exhausted = asyncio.Event()

        def fake_call_later(delay_s: float, callback: Callable[[], None]) -> Any:
            delays.append(delay_s)
            if exhausted.is_set():
                return _FakeHandle(callback)
            return loop.call_soon(callback)

        client = StreamingIngestClient(
            DetectionBuffer(),
            "ws://backend/ws/detections",
            connector=_refusing_connector([]),
            call_later=fake_call_later,
            on_exhausted=exhausted.set,
        )
        client.connect()
        await asyncio.wait_for(exhausted.wait(), timeout=2.0)
        await _settle()
        delays.clear()

        client.connect()
        await _settle()
        state = client.state
        client.disconnect()
        return delays, state

    delays, state = asyncio.run(scenario())

    assert delays == [1.0]
    assert state.attempts == 1
    assert state.final is False
