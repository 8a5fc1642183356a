"""Control-plane, liveness and mode services."""

from services.control_plane import ControlPlaneClient, ControlPlaneError
from services.liveness import LivenessProber
from services.mode_controller import ModeController

__all__ = ["ControlPlaneClient", "ControlPlaneError", "LivenessProber", "ModeController"]
