"""Recent-detections table helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from vision.detections import Detection

RECENT_WINDOW_MS = 10_000
RECENT_LIMIT = 100


@dataclass(frozen=True)
class DetectionRow:
    id: str
    label: str
    confidence_percent: int
    position: tuple[int, int]
    age: str


def format_time_ago(age_ms: float) -> str:
    if age_ms < 1000:
        return "now"
    if age_ms < 60_000:
        return f"{int(age_ms // 1000)}s"
    if age_ms < 3_600_000:
        return f"{int(age_ms // 60_000)}m"
    return f"{int(age_ms // 3_600_000)}h"


def recent_detections(
    detections: Iterable[Detection],
    now_ms: int,
    *,
    window_ms: int = RECENT_WINDOW_MS,
    limit: int = RECENT_LIMIT,
) -> list[Detection]:
    """Detections younger than ``window_ms``, newest first, capped at ``limit``."""

    recent = [det for det in detections if now_ms - det.timestamp_ms < window_ms]
    recent.sort(key=lambda det: det.timestamp_ms, reverse=True)
    return recent[:limit]


def table_rows(detections: Iterable[Detection], now_ms: int) -> list[DetectionRow]:
    return [
        DetectionRow(
            id=det.id,
            label=det.label,
            confidence_percent=round(det.confidence * 100),
            position=(round(det.x), round(det.y)),
            age=format_time_ago(now_ms - det.timestamp_ms),
        )
        for det in recent_detections(detections, now_ms)
    ]
