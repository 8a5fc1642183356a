from __future__ import annotations

import json
from urllib import error

import pytest

from services.control_plane import ControlPlaneClient, ControlPlaneError


class _FakeResponse:
    def __init__(self, body: str, status: int = 200) -> None:
        self._body = body
        self.status = status

    def read(self) -> bytes:
        return self._body.encode("utf-8")

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


class _FakeOpener:
    def __init__(self, responses: list[object]) -> None:
        self._responses = list(responses)
        self.requests: list[tuple[str, str, bytes | None]] = []

    def __call__(self, req, timeout: float):
        self.requests.append((req.get_method(), req.full_url, req.data))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_get_status_parses_report() -> None:
    opener = _FakeOpener(
        [_FakeResponse(json.dumps({"status": "running", "fps": 29.5, "uptime": 12}))]
    )
    client = ControlPlaneClient("http://bob.local:8000/", opener=opener)

    report = client.get_status()

    assert report.status == "running"
    assert report.fps == 29.5
    assert report.uptime == 12.0
    assert report.detections_per_second is None
    assert opener.requests == [("GET", "http://bob.local:8000/api/status", None)]


def test_check_health_never_raises() -> None:
    opener = _FakeOpener(
        [error.URLError("connection refused"), _FakeResponse("{}", status=503), _FakeResponse("{}")]
    )
    client = ControlPlaneClient(opener=opener)

    assert client.check_health() is False
    assert client.check_health() is False
    assert client.check_health() is True


def test_start_and_stop_post_to_control_endpoints() -> None:
    opener = _FakeOpener([_FakeResponse('{"ok": true}'), _FakeResponse("")])
    client = ControlPlaneClient(opener=opener)

    assert client.start() == {"ok": True}
    assert client.stop() == {}
    assert [req[:2] for req in opener.requests] == [
        ("POST", "http://localhost:8000/api/start"),
        ("POST", "http://localhost:8000/api/stop"),
    ]


def test_start_raises_on_http_error() -> None:
    opener = _FakeOpener(
        [error.HTTPError("http://localhost:8000/api/start", 500, "boom", None, None)]
    )
    client = ControlPlaneClient(opener=opener)

    with pytest.raises(ControlPlaneError, match="HTTP 500"):
        client.start()


def test_update_config_sends_json_and_swallows_failures() -> None:
    opener = _FakeOpener([_FakeResponse("{}"), _FakeResponse("", status=404)])
    client = ControlPlaneClient(opener=opener)

    assert client.update_config({"confidence": 0.6}) is True
    assert json.loads(opener.requests[0][2]) == {"confidence": 0.6}
    assert client.update_config({"confidence": 0.7}) is False


def test_from_config_reads_control_plane_section() -> None:
    client = ControlPlaneClient.from_config(
        {"control_plane": {"base_url": "https://bob.example", "timeout_s": 2}}
    )

    assert client.base_url == "https://bob.example"
