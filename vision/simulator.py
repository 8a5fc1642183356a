"""Synthetic detection source used while the backend is unreachable."""

from __future__ import annotations

import base64
from dataclasses import dataclass
import random
from typing import Callable, Sequence

from core.logging import logger
from core.ops_models import BackendStatus, Mode
from core.scheduling import RepeatingTask, millis
from vision.detections import Detection

DetectionSink = Callable[[Sequence[Detection]], None]

BIRD_CLASSES: tuple[str, ...] = (
    "Robin",
    "Sparrow",
    "Crow",
    "Blue Jay",
    "Cardinal",
    "Finch",
    "Pigeon",
    "Hawk",
    "Eagle",
    "Owl",
)
OTHER_CLASSES: tuple[str, ...] = ("Plane", "Cloud", "Unknown", "Edge")

LIVE_STREAM_URL = "/stream"


@dataclass(frozen=True)
class SimulatorSettings:
    """Generation parameters for synthetic batches."""

    interval_ms: int = 500
    max_batch: int = 8
    frame_width: int = 1920
    frame_height: int = 1080
    bird_ratio: float = 0.7
    min_size: float = 50.0
    size_span: float = 150.0

    @classmethod
    def from_config(cls, config: dict) -> "SimulatorSettings":
        simulator_cfg = config.get("simulator") or {}
        return cls(
            interval_ms=int(simulator_cfg.get("interval_ms", 500)),
            max_batch=int(simulator_cfg.get("max_batch", 8)),
            frame_width=int(simulator_cfg.get("frame_width", 1920)),
            frame_height=int(simulator_cfg.get("frame_height", 1080)),
        )


def generate_detections(
    count: int,
    *,
    now_ms: int | None = None,
    rng: random.Random | None = None,
    settings: SimulatorSettings | None = None,
) -> list[Detection]:
    """Return ``count`` synthetic detections stamped ``now_ms + index``."""

    rng = rng or random.Random()
    settings = settings or SimulatorSettings()
    timestamp = millis() if now_ms is None else now_ms
    # Leave room for the largest box so it stays mostly inside the frame.
    x_span = max(settings.frame_width - 320, 1)
    y_span = max(settings.frame_height - 280, 1)

    detections: list[Detection] = []
    for index in range(count):
        is_bird = rng.random() > (1.0 - settings.bird_ratio)
        if is_bird:
            label = rng.choice(BIRD_CLASSES)
            confidence = 0.7 + rng.random() * 0.3
        else:
            label = rng.choice(OTHER_CLASSES)
            confidence = 0.4 + rng.random() * 0.3
        detections.append(
            Detection(
                id=f"mock-{timestamp}-{index}",
                x=float(round(rng.random() * x_span)),
                y=float(round(rng.random() * y_span)),
                width=float(round(settings.min_size + rng.random() * settings.size_span)),
                height=float(round(settings.min_size + rng.random() * settings.size_span)),
                confidence=round(confidence, 2),
                label=label,
                timestamp_ms=timestamp + index,
            )
        )
    return detections


class SimulatedEventSource:
    """Emit batches of 0..max_batch synthetic detections on a fixed interval."""

    def __init__(
        self,
        settings: SimulatorSettings | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], int] = millis,
    ) -> None:
        self.settings = settings or SimulatorSettings()
        self._rng = rng or random.Random()
        self._clock = clock
        self._sink: DetectionSink | None = None
        self._task: RepeatingTask | None = None
        self.batches_emitted = 0

    def is_running(self) -> bool:
        return self._task is not None

    def start(self, sink: DetectionSink) -> None:
        if self._task is not None:
            self._sink = sink
            return
        self._sink = sink
        self._task = RepeatingTask(
            self.settings.interval_ms / 1000.0,
            self._emit,
            name="simulated-detections",
        )
        self._task.start()
        logger.info(
            "[SIM] Generating synthetic detections every %sms", self.settings.interval_ms
        )

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("[SIM] Synthetic generation stopped")
        self._sink = None

    def _emit(self) -> None:
        sink = self._sink
        if sink is None:
            return
        count = self._rng.randint(0, self.settings.max_batch)
        batch = generate_detections(
            count,
            now_ms=self._clock(),
            rng=self._rng,
            settings=self.settings,
        )
        self.batches_emitted += 1
        sink(batch)


_PLACEHOLDER_SVG = """<svg width="640" height="480" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="grad1" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:#87CEEB;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#98FB98;stop-opacity:1" />
    </linearGradient>
  </defs>
  <rect width="640" height="480" fill="url(#grad1)" />
  <text x="320" y="200" font-family="Arial, sans-serif" font-size="24" fill="#333" text-anchor="middle">Simulated Mode</text>
  <text x="320" y="240" font-family="Arial, sans-serif" font-size="16" fill="#666" text-anchor="middle">Backend offline - detections are synthetic</text>
  <circle cx="100" cy="100" r="20" fill="#FF6B6B" opacity="0.7">
    <animate attributeName="cx" values="100;540;100" dur="4s" repeatCount="indefinite" />
  </circle>
  <circle cx="300" cy="150" r="15" fill="#4ECDC4" opacity="0.7">
    <animate attributeName="cy" values="150;350;150" dur="3s" repeatCount="indefinite" />
  </circle>
</svg>
"""


def placeholder_frame_url() -> str:
    """Static SVG placeholder encoded as a ``data:`` URL."""

    encoded = base64.b64encode(_PLACEHOLDER_SVG.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def resolve_frame_url(mode: Mode, backend_status: BackendStatus) -> str:
    """Pick the live MJPEG stream or the placeholder for the video surface."""

    if mode is Mode.SIMULATED or backend_status is BackendStatus.OFFLINE:
        return placeholder_frame_url()
    return LIVE_STREAM_URL
