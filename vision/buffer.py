"""Bounded, insertion-ordered store of detections."""

from __future__ import annotations

from collections import deque
import threading
from typing import Deque, Iterable

from vision.detections import Detection

DEFAULT_CAPACITY = 1000


class DetectionBuffer:
    """FIFO-evicting detection store shared by producers and the renderer.

    Each batch is appended under one lock acquisition, so a snapshot never
    observes a partially appended batch. Contents are not validated.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = max(int(capacity), 1)
        self._lock = threading.Lock()
        self._items: Deque[Detection] = deque(maxlen=self._capacity)
        self._appended_total = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def appended_total(self) -> int:
        return self._appended_total

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append_batch(self, events: Iterable[Detection]) -> None:
        batch = list(events)
        if not batch:
            return
        with self._lock:
            self._items.extend(batch)
            self._appended_total += len(batch)

    def snapshot(self) -> tuple[Detection, ...]:
        with self._lock:
            return tuple(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
