"""Minimal HTTP client for the detection backend control plane."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Callable
from urllib import error, request

from core.logging import logger


class ControlPlaneError(RuntimeError):
    """Raised when a control-plane call fails or returns a non-success status."""


@dataclass(frozen=True)
class BackendStatusReport:
    """Parsed body of ``GET /api/status``."""

    status: str
    uptime: float | None = None
    fps: float | None = None
    detections_per_second: float | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BackendStatusReport":
        def _optional(key: str) -> float | None:
            value = payload.get(key)
            return float(value) if isinstance(value, (int, float)) else None

        return cls(
            status=str(payload.get("status", "unknown")),
            uptime=_optional("uptime"),
            fps=_optional("fps"),
            detections_per_second=_optional("detections_per_second"),
        )


class ControlPlaneClient:
    """HTTP client for ``/api/status``, ``/api/start``, ``/api/stop`` and ``/api/config``."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        timeout_s: float = 5.0,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = max(0.5, float(timeout_s))
        self._opener = opener or request.urlopen

    @property
    def base_url(self) -> str:
        return self._base_url

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ControlPlaneClient":
        control_cfg = config.get("control_plane") or {}
        return cls(
            str(control_cfg.get("base_url", "http://localhost:8000")),
            timeout_s=float(control_cfg.get("timeout_s", 5.0)),
        )

    def check_health(self) -> bool:
        """Return True when ``GET /api/status`` succeeds; never raises."""

        try:
            self._request("GET", "/status")
        except Exception as exc:  # noqa: BLE001 - health check must not raise
            logger.debug("Control plane health check failed: %s", exc)
            return False
        return True

    def get_status(self) -> BackendStatusReport:
        payload = self._request("GET", "/status")
        if not isinstance(payload, dict):
            raise ControlPlaneError("Status response was not a JSON object")
        return BackendStatusReport.from_payload(payload)

    def start(self) -> dict[str, Any]:
        return self._request("POST", "/start") or {}

    def stop(self) -> dict[str, Any]:
        return self._request("POST", "/stop") or {}

    def update_config(self, config: dict[str, Any]) -> bool:
        """Push config to the backend; failures are logged and swallowed."""

        try:
            self._request("POST", "/config", body=config)
        except ControlPlaneError as exc:
            logger.warning("Config update not available: %s", exc)
            return False
        return True

    def _request(self, method: str, path: str, *, body: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}/api{path}"
        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = request.Request(url, data=data, headers=headers, method=method)
        try:
            with self._opener(req, timeout=self._timeout_s) as response:
                status = getattr(response, "status", 200)
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raise ControlPlaneError(f"HTTP {exc.code} from {method} {url}") from exc
        except (error.URLError, OSError, ValueError) as exc:
            raise ControlPlaneError(f"{method} {url} failed: {exc}") from exc

        if not 200 <= int(status) < 300:
            raise ControlPlaneError(f"HTTP {status} from {method} {url}")
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None
