from __future__ import annotations

import json

import pytest

from vision.detections import MessageFormatError, parse_message


def test_single_detection_without_timestamps_uses_arrival_time() -> None:
    raw = '{"detections":[{"bbox":[10,20,30,40],"confidence":0.92,"class_name":"Robin"}]}'

    message = parse_message(raw, arrival_ms=1_700_000_000_000)

    assert len(message.detections) == 1
    det = message.detections[0]
    assert det.bbox == (10.0, 20.0, 30.0, 40.0)
    assert det.confidence == pytest.approx(0.92)
    assert det.label == "Robin"
    assert det.timestamp_ms == 1_700_000_000_000
    assert det.id == "1700000000000-0"
    assert message.timestamp_ms == 1_700_000_000_000


def test_message_timestamp_drives_identity_and_item_timestamp_wins() -> None:
    raw = json.dumps(
        {
            "frame_id": "f-7",
            "timestamp": 5000,
            "extra": {"ignored": True},
            "detections": [
                {"bbox": [0, 0, 1, 1], "confidence": 0.5, "class_name": "Crow"},
                {
                    "bbox": [1, 1, 2, 2],
                    "confidence": 0.6,
                    "class_name": "Hawk",
                    "timestamp": 4990,
                },
            ],
        }
    )

    message = parse_message(raw, arrival_ms=9999)

    assert [det.id for det in message.detections] == ["5000-0", "5000-1"]
    assert [det.timestamp_ms for det in message.detections] == [5000, 4990]
    assert message.frame_id == "f-7"
    assert message.timestamp_ms == 5000


def test_empty_detection_list_is_valid() -> None:
    message = parse_message('{"detections": []}', arrival_ms=1)

    assert message.detections == []


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        '{"frame_id": "x"}',
        '{"detections": [{"bbox": [1, 2, 3], "confidence": 0.5, "class_name": "Owl"}]}',
        '{"detections": [{"bbox": [1, 2, 3, "4"], "confidence": 0.5, "class_name": "Owl"}]}',
        '{"detections": [{"bbox": [1, 2, 3, 4], "confidence": "high", "class_name": "Owl"}]}',
        '{"detections": [{"bbox": [1, 2, 3, 4], "confidence": 0.5, "class_name": ""}]}',
        '{"detections": [], "timestamp": NaN}',
        '{"detections": [], "timestamp": Infinity}',
        '{"detections": [{"bbox": [1, 2, 3, 4], "confidence": 0.5,'
        ' "class_name": "Owl", "timestamp": -Infinity}]}',
        '{"detections": [{"bbox": [1, 2, 3, 4], "confidence": NaN, "class_name": "Owl"}]}',
        '{"detections": [{"bbox": [1, 2, 3, 1'
        + "0" * 400
        + '], "confidence": 0.5, "class_name": "Owl"}]}',
    ],
)
def test_malformed_messages_raise_format_error(raw: str) -> None:
    with pytest.raises(MessageFormatError):
        parse_message(raw, arrival_ms=1)


def test_zero_or_non_numeric_timestamps_fall_back() -> None:
    raw = json.dumps(
        {
            "timestamp": 0,
            "detections": [
                {"bbox": [0, 0, 1, 1], "confidence": 0.5, "class_name": "Crow", "timestamp": "late"}
            ],
        }
    )

    message = parse_message(raw, arrival_ms=4321)

    assert message.timestamp_ms == 4321
    assert message.detections[0].timestamp_ms == 4321
