"""Time-windowed, fading detection overlay renderer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from config.settings import DashboardSettings
from core.logging import logger
from core.scheduling import RepeatingTask, millis
from render.surface import Color, DrawSurface
from vision.buffer import DetectionBuffer
from vision.detections import Detection

DEFAULT_WINDOW_MS = 2000
LABEL_HEIGHT = 16
CONFIDENCE_BAR_HEIGHT = 4

PALETTE: tuple[Color, ...] = (
    (255, 99, 132),
    (54, 162, 235),
    (255, 205, 86),
    (75, 192, 192),
    (153, 102, 255),
    (255, 159, 64),
    (199, 199, 199),
    (83, 102, 255),
)


def label_hash(label: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, as a signed 32-bit int.

    Matches the web dashboard's hash so a label keeps its color across clients.
    """

    value = 0
    units = label.encode("utf-16-le")
    for index in range(0, len(units), 2):
        code = units[index] | (units[index + 1] << 8)
        value = ((value << 5) - value + code) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def class_color(label: str) -> Color:
    return PALETTE[abs(label_hash(label)) % len(PALETTE)]


@dataclass(frozen=True)
class RenderedDetection:
    detection: Detection
    age_ms: int
    alpha: float
    color: Color


def visible_detections(
    detections: Iterable[Detection], now_ms: int, window_ms: int = DEFAULT_WINDOW_MS
) -> list[RenderedDetection]:
    """Detections younger than ``window_ms`` with a linear fade-out alpha."""

    visible = []
    for detection in detections:
        age_ms = now_ms - detection.timestamp_ms
        if age_ms >= window_ms:
            continue
        alpha = min(1.0, max(0.0, 1.0 - age_ms / window_ms))
        visible.append(
            RenderedDetection(
                detection=detection,
                age_ms=age_ms,
                alpha=alpha,
                color=class_color(detection.label),
            )
        )
    return visible


class WindowedRenderer:
    """Redraw the overlay from a buffer snapshot on every display tick."""

    def __init__(
        self,
        buffer: DetectionBuffer,
        surface: DrawSurface,
        settings: Callable[[], DashboardSettings],
        *,
        window_ms: int = DEFAULT_WINDOW_MS,
        fps: int = 60,
        clock: Callable[[], int] = millis,
    ) -> None:
        self._buffer = buffer
        self._surface = surface
        self._settings = settings
        self._window_ms = int(window_ms)
        self._fps = max(int(fps), 1)
        self._clock = clock
        self._task: RepeatingTask | None = None
        self.frames_rendered = 0
        self.last_frame: list[RenderedDetection] = []

    @property
    def surface(self) -> DrawSurface:
        return self._surface

    def is_running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = RepeatingTask(
            1.0 / self._fps,
            self.render_frame,
            name="overlay-render",
            run_immediately=True,
        )
        self._task.start()
        logger.info("Overlay renderer started at %s fps (window=%sms)", self._fps, self._window_ms)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Overlay renderer stopped after %s frames", self.frames_rendered)

    def render_frame(self, now_ms: int | None = None) -> list[RenderedDetection]:
        now_ms = self._clock() if now_ms is None else now_ms
        surface = self._surface
        surface.clear()
        self.frames_rendered += 1

        settings = self._settings()
        if not settings.show_overlay:
            self.last_frame = []
            return self.last_frame

        frame = visible_detections(self._buffer.snapshot(), now_ms, self._window_ms)
        for item in frame:
            if settings.show_boxes:
                self._draw_box(item)
            if settings.show_labels:
                self._draw_label(item)
        self.last_frame = frame
        return frame

    def _draw_box(self, item: RenderedDetection) -> None:
        det = item.detection
        self._surface.stroke_rect(det.x, det.y, det.width, det.height, item.color, item.alpha)
        self._surface.fill_rect(
            det.x,
            det.y - CONFIDENCE_BAR_HEIGHT,
            det.width * det.confidence,
            CONFIDENCE_BAR_HEIGHT,
            item.color,
            item.alpha * 0.3,
        )

    def _draw_label(self, item: RenderedDetection) -> None:
        det = item.detection
        text = f"{det.label} {det.confidence * 100:.0f}%"
        chip_width = self._surface.measure_text(text) + 8
        chip_top = det.y - LABEL_HEIGHT - CONFIDENCE_BAR_HEIGHT
        self._surface.fill_rect(
            det.x, chip_top, chip_width, LABEL_HEIGHT, (0, 0, 0), item.alpha * 0.7
        )
        self._surface.fill_text(text, det.x + 4, chip_top + 2, (255, 255, 255), item.alpha)
