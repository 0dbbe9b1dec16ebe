"""Capture module: frame source, throttling and the guided capture controller."""

from .camera import Camera, CameraFrame
from .throttle import FrameThrottler
from .controller import CaptureController, ControllerState, TickResult, TickStatus

__all__ = [
    "Camera",
    "CameraFrame",
    "FrameThrottler",
    "CaptureController",
    "ControllerState",
    "TickResult",
    "TickStatus",
]
