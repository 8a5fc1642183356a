"""Vision package exports."""

from vision.buffer import DetectionBuffer
from vision.detections import Detection, DetectionMessage, MessageFormatError, parse_message
from vision.simulator import SimulatedEventSource, SimulatorSettings

__all__ = [
    "Detection",
    "DetectionBuffer",
    "DetectionMessage",
    "MessageFormatError",
    "SimulatedEventSource",
    "SimulatorSettings",
    "parse_message",
]
