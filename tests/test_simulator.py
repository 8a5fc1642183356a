from __future__ import annotations

import asyncio
import random

from core.ops_models import BackendStatus, Mode
from vision.simulator import (
    BIRD_CLASSES,
    OTHER_CLASSES,
    SimulatedEventSource,
    SimulatorSettings,
    generate_detections,
    placeholder_frame_url,
    resolve_frame_url,
)


def test_generated_detections_stay_in_ranges() -> None:
    detections = generate_detections(200, now_ms=10_000, rng=random.Random(7))

    for index, det in enumerate(detections):
        assert 0 <= det.x <= 1600
        assert 0 <= det.y <= 800
        assert 50 <= det.width <= 200
        assert 50 <= det.height <= 200
        assert det.timestamp_ms == 10_000 + index
        if det.label in BIRD_CLASSES:
            assert 0.7 <= det.confidence <= 1.0
        else:
            assert det.label in OTHER_CLASSES
            assert 0.4 <= det.confidence <= 0.7


def test_generated_labels_are_mostly_birds() -> None:
    detections = generate_detections(2000, now_ms=0, rng=random.Random(3))

    bird_share = sum(det.label in BIRD_CLASSES for det in detections) / len(detections)

    assert 0.62 < bird_share < 0.78


def test_timestamps_strictly_increase_within_batch() -> None:
    detections = generate_detections(8, now_ms=500, rng=random.Random(1))

    stamps = [det.timestamp_ms for det in detections]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_start_emits_batches_until_stopped() -> None:
    async def scenario() -> tuple[int, int]:
        source = SimulatedEventSource(
            SimulatorSettings(interval_ms=10), rng=random.Random(5), clock=lambda: 1000
        )
        batches: list[int] = []
        source.start(lambda batch: batches.append(len(batch)))
        await asyncio.sleep(0.08)
        source.stop()
        emitted = len(batches)
        await asyncio.sleep(0.05)
        return emitted, len(batches)

    emitted, after_stop = asyncio.run(scenario())

    assert emitted >= 2
    assert after_stop == emitted


def test_batch_sizes_are_between_zero_and_eight() -> None:
    async def scenario() -> list[int]:
        source = SimulatedEventSource(SimulatorSettings(interval_ms=1), rng=random.Random(11))
        sizes: list[int] = []
        source.start(lambda batch: sizes.append(len(batch)))
        await asyncio.sleep(0.1)
        source.stop()
        return sizes

    sizes = asyncio.run(scenario())

    assert sizes
    assert all(0 <= size <= 8 for size in sizes)


def test_stop_without_start_is_noop() -> None:
    source = SimulatedEventSource()

    source.stop()

    assert source.is_running() is False


def test_frame_url_uses_placeholder_unless_live() -> None:
    assert resolve_frame_url(Mode.LIVE, BackendStatus.ONLINE) == "/stream"
    assert resolve_frame_url(Mode.SIMULATED, BackendStatus.ONLINE) == placeholder_frame_url()
    assert resolve_frame_url(Mode.LIVE, BackendStatus.OFFLINE).startswith("data:image/svg+xml;base64,")
