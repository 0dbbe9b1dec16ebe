"""
Shared test fixtures for calibguide testing.

Provides synthetic board views, a rendered chessboard, and scripted
stand-ins for the vision backend and the frame source.
"""

import pytest
import numpy as np
from collections import deque
from typing import List, Optional, Sequence, Tuple

from calibguide.calibration.pattern import PatternSpec, render_chessboard
from calibguide.calibration.pose import Pose, rotation_matrix_from_euler
from calibguide.calibration.vision import CalibrationResult, CornerDetection
from calibguide.capture.camera import CameraFrame
from calibguide.errors import CalibrationFailed


# ============================================================================
# Synthetic Camera Data
# ============================================================================

def generate_camera_intrinsics(
    width: int = 640,
    height: int = 480,
    focal: float = 800.0,
) -> np.ndarray:
    """Generate a camera intrinsic matrix with square pixels."""
    return np.array([
        [focal, 0, width / 2],
        [0, focal, height / 2],
        [0, 0, 1]
    ], dtype=np.float64)


def project_board(
    pattern: PatternSpec,
    pitch: float,
    yaw: float,
    roll: float,
    distance: float,
    intrinsics: np.ndarray,
) -> np.ndarray:
    """
    Project the pattern's object points for a board at the given pose.

    The board centre sits on the optical axis at `distance`.

    Returns:
        (N, 2) float32 image points
    """
    objp = pattern.object_points().astype(np.float64)
    center = objp.mean(axis=0)
    R = rotation_matrix_from_euler(pitch, yaw, roll)
    t = np.array([0.0, 0.0, distance]) - R @ center

    points_cam = (R @ objp.T).T + t
    projected = (intrinsics @ points_cam.T).T
    return (projected[:, :2] / projected[:, 2:3]).astype(np.float32)


def render_board_image(
    pattern: PatternSpec,
    canvas_size: Tuple[int, int] = (640, 480),
    square_px: int = 40,
    offset: Tuple[int, int] = (0, 0),
) -> np.ndarray:
    """Place a rendered fronto-parallel chessboard on a white BGR canvas."""
    board = render_chessboard(pattern, square_px=square_px, margin_px=square_px)
    width, height = canvas_size
    canvas = np.full((height, width), 255, dtype=np.uint8)

    bh, bw = board.shape
    y0 = (height - bh) // 2 + offset[1]
    x0 = (width - bw) // 2 + offset[0]
    canvas[y0:y0 + bh, x0:x0 + bw] = board
    return np.dstack([canvas, canvas, canvas])


# ============================================================================
# Scripted Collaborators
# ============================================================================

class FakeVision:
    """
    Scripted vision backend.

    Each entry of `script` describes one processed frame:
    - None: no corners found
    - Pose: corners found and the PnP solve yields this pose
    """

    def __init__(
        self,
        pattern: PatternSpec,
        script: Sequence[Optional[Pose]] = (),
        point_count: Optional[int] = None,
    ):
        self.pattern = pattern
        self.script = deque(script)
        self.point_count = pattern.point_count if point_count is None else point_count
        self.fail_calibration = False
        self.pose_failure = False
        self.calibrate_calls: List[int] = []
        self.refine_calls = 0
        self.track_result: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]] = None
        self._pending_pose: Optional[Pose] = None

    def feed(self, *entries: Optional[Pose]) -> None:
        self.script.extend(entries)

    def to_grayscale(self, image: np.ndarray) -> np.ndarray:
        return image if image.ndim == 2 else image[..., 0]

    def detect_corners(self, gray, pattern_size) -> CornerDetection:
        entry = self.script.popleft() if self.script else None
        if entry is None:
            return CornerDetection(found=False)
        self._pending_pose = entry
        points = np.zeros((self.point_count, 1, 2), dtype=np.float32)
        return CornerDetection(found=True, points=points)

    def refine_subpixel(self, gray, points):
        self.refine_calls += 1
        return points

    def track_corners(self, prev_gray, gray, prev_points):
        return self.track_result

    def estimate_pose(self, object_points, image_points, image_size) -> Optional[Pose]:
        if self.pose_failure:
            return None
        return self._pending_pose

    def calibrate(self, object_point_sets, image_point_sets, image_size) -> CalibrationResult:
        self.calibrate_calls.append(len(object_point_sets))
        if self.fail_calibration:
            raise CalibrationFailed("insufficient view diversity")
        return CalibrationResult(
            camera_matrix=generate_camera_intrinsics(),
            distortion_coeffs=np.zeros(5),
            rms_error=0.25,
            per_view_errors=[0.25] * len(object_point_sets),
            image_size=tuple(image_size),
            sample_count=len(object_point_sets),
        )


class FakeSource:
    """Frame source handing out a fresh CameraFrame per call."""

    def __init__(self, size: Tuple[int, int] = (640, 480), available: bool = True):
        self.size = size
        self.available = available
        self.frames: List[CameraFrame] = []

    def current_frame(self) -> Optional[CameraFrame]:
        if not self.available:
            return None
        width, height = self.size
        frame = CameraFrame(
            image=np.zeros((height, width, 3), dtype=np.uint8),
            timestamp=0.0,
            frame_number=len(self.frames) + 1,
        )
        self.frames.append(frame)
        return frame


def bootstrap_poses() -> List[Pose]:
    """Operator sweep that yields the first acceptance on its fourth view."""
    return [
        Pose(0, 0, 0, 1),
        Pose(15, 0, 0, 1),
        Pose(15, 15, 0, 1),
        Pose(15, 15, 15, 1),
    ]


def ramp_poses(count: int, start: float = 30.0, step: float = 15.0) -> List[Pose]:
    """Poses that each clear the novelty threshold against all earlier ones."""
    return [Pose(start + i * step, start + i * step, start + i * step, 1) for i in range(count)]


# ============================================================================
# Pytest Fixtures
# ============================================================================

@pytest.fixture
def pattern():
    """Provide the default 6x6 pattern."""
    return PatternSpec(columns=6, rows=6, square_size=1.0)


@pytest.fixture
def fake_vision(pattern):
    return FakeVision(pattern)


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def vision():
    """Provide an initialized OpenCV vision context."""
    from calibguide.calibration.vision import OpenCVVision

    with OpenCVVision() as ctx:
        yield ctx
