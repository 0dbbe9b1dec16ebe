"""
Chessboard Detection Strategies

FullRedetection searches every frame from scratch. TrackedDetection carries
the previous corner set forward with optical flow and only falls back to a
full search when tracking is lost or its per-point error is too large.
"""

import numpy as np
from typing import Optional, Protocol

from .pattern import PatternSpec
from .vision import CornerDetection, VisionBackend
from ..errors import ConfigurationError


class ChessboardDetector(Protocol):
    def detect(self, gray: np.ndarray, pattern: PatternSpec) -> CornerDetection: ...

    def reset(self) -> None: ...


class FullRedetection:
    """Corner search plus sub-pixel refinement on every frame."""

    def __init__(self, vision: VisionBackend, refine: bool = True):
        self.vision = vision
        self.refine = refine

    def detect(self, gray: np.ndarray, pattern: PatternSpec) -> CornerDetection:
        result = self.vision.detect_corners(gray, pattern.size)
        if not result.found:
            return result
        points = result.points
        if self.refine:
            points = self.vision.refine_subpixel(gray, points)
        return CornerDetection(found=True, points=points)

    def reset(self) -> None:
        pass


class TrackedDetection:
    """
    Optical-flow tracking with full redetection as fallback.

    A tracked corner set counts as a detection only if every corner was
    tracked and the largest per-point error is within max_tracking_error.

    Parameters:
        vision: Vision backend
        max_tracking_error: Largest accepted Lucas-Kanade error per point
        refine: Apply sub-pixel refinement to full detections
    """

    def __init__(self, vision: VisionBackend, max_tracking_error: float = 8.0, refine: bool = True):
        if not max_tracking_error > 0:
            raise ConfigurationError(f"max_tracking_error must be positive, got {max_tracking_error}")
        self.vision = vision
        self.max_tracking_error = float(max_tracking_error)
        self._full = FullRedetection(vision, refine=refine)
        self._prev_gray: Optional[np.ndarray] = None
        self._prev_points: Optional[np.ndarray] = None

    def detect(self, gray: np.ndarray, pattern: PatternSpec) -> CornerDetection:
        tracked = self._track(gray, pattern)
        if tracked is not None:
            result = tracked
        else:
            result = self._full.detect(gray, pattern)

        if result.found:
            self._prev_gray = gray
            self._prev_points = result.points
        else:
            self.reset()
        return result

    def _track(self, gray: np.ndarray, pattern: PatternSpec) -> Optional[CornerDetection]:
        if self._prev_gray is None or self._prev_points is None:
            return None
        if self._prev_gray.shape != gray.shape:
            return None

        points, status, errors = self.vision.track_corners(self._prev_gray, gray, self._prev_points)
        if points is None or len(points) != pattern.point_count:
            return None
        if not np.all(status == 1):
            return None
        if float(np.max(errors)) > self.max_tracking_error:
            return None
        return CornerDetection(found=True, points=points.astype(np.float32), tracked=True)

    def reset(self) -> None:
        self._prev_gray = None
        self._prev_points = None
