"""Detection model and normalization of inbound stream messages.

Bounding boxes are in frame-pixel units and represented as
``(x, y, width, height)``. Inbound messages follow this schema::

    {"detections": [{"bbox": [x, y, w, h], "confidence": 0.9,
                     "class_name": "Robin", "timestamp": 1700000000000}],
     "frame_id": "abc", "timestamp": 1700000000000}

``timestamp`` is optional at both levels; unknown fields are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import math
from numbers import Real
from typing import Any, Mapping


class MessageFormatError(ValueError):
    """Raised when an inbound stream message cannot be normalized."""


@dataclass(frozen=True)
class Detection:
    """One observed object instance at one point in time."""

    id: str
    x: float
    y: float
    width: float
    height: float
    confidence: float
    label: str
    timestamp_ms: int

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class DetectionMessage:
    """A normalized inbound message."""

    detections: list[Detection]
    timestamp_ms: int
    frame_id: str | None = None


def _is_number(value: Any) -> bool:
    if not isinstance(value, Real) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _timestamp(value: Any, fallback: int, where: str) -> int:
    if value is None or value == 0:
        return fallback
    if isinstance(value, Real) and not isinstance(value, bool) and not _is_number(value):
        raise MessageFormatError(f"{where} timestamp must be finite")
    return int(value) if _is_number(value) else fallback


def _parse_item(item: Any, index: int, message_ts: int) -> Detection:
    if not isinstance(item, Mapping):
        raise MessageFormatError(f"detection {index} is not an object")

    bbox = item.get("bbox")
    if not isinstance(bbox, (list, tuple)) or len(bbox) != 4:
        raise MessageFormatError(f"detection {index} bbox must have 4 values")
    if not all(_is_number(value) for value in bbox):
        raise MessageFormatError(f"detection {index} bbox values must be numbers")

    confidence = item.get("confidence")
    if not _is_number(confidence):
        raise MessageFormatError(f"detection {index} confidence must be a number")

    label = item.get("class_name")
    if not isinstance(label, str) or not label:
        raise MessageFormatError(f"detection {index} class_name must be non-empty text")

    timestamp_ms = _timestamp(item.get("timestamp"), message_ts, f"detection {index}")

    x, y, width, height = (float(value) for value in bbox)
    return Detection(
        id=f"{message_ts}-{index}",
        x=x,
        y=y,
        width=width,
        height=height,
        confidence=float(confidence),
        label=label,
        timestamp_ms=timestamp_ms,
    )


def normalize_message(payload: Any, arrival_ms: int) -> DetectionMessage:
    """Normalize a decoded message into detections.

    Each detection gets an identity combining the message timestamp and its
    index. Missing timestamps default to ``arrival_ms``.
    """

    if not isinstance(payload, Mapping):
        raise MessageFormatError("message must be an object")
    raw_detections = payload.get("detections")
    if not isinstance(raw_detections, list):
        raise MessageFormatError("message is missing a detections list")

    message_ts = _timestamp(payload.get("timestamp"), arrival_ms, "message")

    frame_id = payload.get("frame_id")
    try:
        detections = [
            _parse_item(item, index, message_ts) for index, item in enumerate(raw_detections)
        ]
    except MessageFormatError:
        raise
    except (ValueError, OverflowError) as exc:
        raise MessageFormatError(f"detection value out of range: {exc}") from exc
    return DetectionMessage(
        detections=detections,
        timestamp_ms=message_ts,
        frame_id=str(frame_id) if frame_id is not None else None,
    )


def parse_message(raw: str | bytes, arrival_ms: int) -> DetectionMessage:
    """Decode a text frame and normalize it."""

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MessageFormatError(f"invalid JSON: {exc}") from exc
    return normalize_message(payload, arrival_ms)
