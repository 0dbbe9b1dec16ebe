"""
OpenCV Vision Context

Explicit owner of every OpenCV call the capture pipeline makes: grayscale
conversion, chessboard detection, sub-pixel refinement, optical-flow
tracking, PnP pose solving, Rodrigues conversion and the final multi-view
intrinsic calibration.

The surrounding application creates one context, calls init() before the
first tick and shutdown() on teardown.
"""

import cv2
import numpy as np
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from .pose import Pose, euler_from_rotation_matrix
from ..config import CameraIntrinsics
from ..errors import CalibrationFailed
from ..utils.logging import vision_log


@dataclass
class CornerDetection:
    """Result of a chessboard corner search."""
    found: bool
    points: Optional[np.ndarray] = None  # (N, 1, 2) float32
    tracked: bool = False  # True when carried over by optical flow


@dataclass
class CalibrationResult:
    """Intrinsic solve output with per-view residual diagnostics."""
    camera_matrix: np.ndarray
    distortion_coeffs: np.ndarray
    rms_error: float
    per_view_errors: List[float] = field(default_factory=list)
    image_size: Tuple[int, int] = (0, 0)
    sample_count: int = 0

    def to_intrinsics(self, camera_id: int = 0, camera_name: str = "") -> CameraIntrinsics:
        """Package the result for persistence."""
        return CameraIntrinsics(
            camera_id=camera_id,
            camera_name=camera_name or f"Camera {camera_id}",
            resolution=tuple(int(v) for v in self.image_size),
            camera_matrix=np.asarray(self.camera_matrix, dtype=np.float64).tolist(),
            distortion_coeffs=np.asarray(self.distortion_coeffs, dtype=np.float64).ravel().tolist(),
            reprojection_error=float(self.rms_error),
            per_view_errors=[float(e) for e in self.per_view_errors],
            sample_count=self.sample_count,
            calibration_date=datetime.now().isoformat(),
        )


class VisionBackend(Protocol):
    """Operations the capture controller needs from a vision library."""

    def to_grayscale(self, image: np.ndarray) -> np.ndarray: ...

    def detect_corners(self, gray: np.ndarray, pattern_size: Tuple[int, int]) -> CornerDetection: ...

    def refine_subpixel(self, gray: np.ndarray, points: np.ndarray) -> np.ndarray: ...

    def track_corners(
        self, prev_gray: np.ndarray, gray: np.ndarray, prev_points: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]: ...

    def estimate_pose(
        self,
        object_points: np.ndarray,
        image_points: np.ndarray,
        image_size: Tuple[int, int],
    ) -> Optional[Pose]: ...

    def calibrate(
        self,
        object_point_sets: Sequence[np.ndarray],
        image_point_sets: Sequence[np.ndarray],
        image_size: Tuple[int, int],
    ) -> CalibrationResult: ...


def initial_camera_matrix(image_size: Tuple[int, int]) -> np.ndarray:
    """
    Intrinsics guess used before any calibration exists.

    fx = fy = image height, principal point at the image centre.
    """
    width, height = image_size
    return np.array([
        [height, 0, width / 2],
        [0, height, height / 2],
        [0, 0, 1],
    ], dtype=np.float64)


class OpenCVVision:
    """
    OpenCV-backed implementation of VisionBackend.

    Args:
        subpix_window: Half-size of the cornerSubPix search window
        subpix_iterations: Max refinement iterations
        subpix_epsilon: Refinement convergence threshold
        flow_window: Lucas-Kanade window size
        flow_levels: Pyramid levels for optical flow
    """

    def __init__(
        self,
        subpix_window: int = 11,
        subpix_iterations: int = 30,
        subpix_epsilon: float = 0.001,
        flow_window: int = 21,
        flow_levels: int = 3,
    ):
        self.subpix_window = subpix_window
        self.subpix_criteria = (
            cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER,
            subpix_iterations,
            subpix_epsilon,
        )
        self.flow_window = flow_window
        self.flow_levels = flow_levels
        self.detect_flags = cv2.CALIB_CB_ADAPTIVE_THRESH | cv2.CALIB_CB_NORMALIZE_IMAGE
        self._ready = False

    def init(self) -> None:
        """Prepare the context for use."""
        if self._ready:
            return
        vision_log.info(f"OpenCV {cv2.__version__} ready")
        self._ready = True

    def shutdown(self) -> None:
        """Release the context; further calls raise until init() again."""
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def _require_ready(self) -> None:
        if not self._ready:
            raise RuntimeError("Vision context used before init()")

    def to_grayscale(self, image: np.ndarray) -> np.ndarray:
        self._require_ready()
        if image.ndim == 2:
            return image
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    def detect_corners(self, gray: np.ndarray, pattern_size: Tuple[int, int]) -> CornerDetection:
        """
        Find the inner chessboard corners in a grayscale image.

        Points are returned as (N, 1, 2) float32 whatever layout the
        installed OpenCV reports them in.
        """
        self._require_ready()
        found, corners = cv2.findChessboardCorners(gray, pattern_size, flags=self.detect_flags)
        if not found or corners is None:
            return CornerDetection(found=False)
        return CornerDetection(found=True, points=corners.reshape(-1, 1, 2).astype(np.float32))

    def refine_subpixel(self, gray: np.ndarray, points: np.ndarray) -> np.ndarray:
        self._require_ready()
        win = (self.subpix_window, self.subpix_window)
        refined = cv2.cornerSubPix(gray, points.reshape(-1, 1, 2).astype(np.float32), win, (-1, -1), self.subpix_criteria)
        return refined.reshape(-1, 1, 2)

    def track_corners(
        self, prev_gray: np.ndarray, gray: np.ndarray, prev_points: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Track corners from the previous frame with pyramidal Lucas-Kanade.

        Returns:
            (points (N,1,2), status (N,), errors (N,))
        """
        self._require_ready()
        points, status, errors = cv2.calcOpticalFlowPyrLK(
            prev_gray,
            gray,
            prev_points.reshape(-1, 1, 2).astype(np.float32),
            None,
            winSize=(self.flow_window, self.flow_window),
            maxLevel=self.flow_levels,
            criteria=(cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_COUNT, 30, 0.01),
        )
        return points.reshape(-1, 1, 2), status.ravel(), errors.ravel()

    def estimate_pose(
        self,
        object_points: np.ndarray,
        image_points: np.ndarray,
        image_size: Tuple[int, int],
        camera_matrix: Optional[np.ndarray] = None,
        distortion_coeffs: Optional[np.ndarray] = None,
    ) -> Optional[Pose]:
        """
        Solve the board pose and reduce it to pitch/yaw/roll/distance.

        Returns:
            Pose, or None if solvePnP did not converge
        """
        self._require_ready()
        if camera_matrix is None:
            camera_matrix = initial_camera_matrix(image_size)
        if distortion_coeffs is None:
            distortion_coeffs = np.zeros((1, 5), dtype=np.float64)

        ok, rvec, tvec = cv2.solvePnP(
            np.asarray(object_points, dtype=np.float32).reshape(-1, 1, 3),
            np.asarray(image_points, dtype=np.float32).reshape(-1, 1, 2),
            camera_matrix,
            distortion_coeffs,
        )
        if not ok:
            return None
        pitch, yaw, roll = self.rotation_to_euler(rvec)
        distance = float(np.linalg.norm(tvec))
        return Pose(pitch=pitch, yaw=yaw, roll=roll, distance=distance)

    def rotation_to_euler(self, rvec: np.ndarray) -> Tuple[float, float, float]:
        """Rotation vector to (pitch, yaw, roll) degrees, gimbal-lock safe."""
        R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64))
        return euler_from_rotation_matrix(R)

    def calibrate(
        self,
        object_point_sets: Sequence[np.ndarray],
        image_point_sets: Sequence[np.ndarray],
        image_size: Tuple[int, int],
    ) -> CalibrationResult:
        """
        Run the multi-view intrinsic calibration.

        Raises:
            CalibrationFailed: if the solver errors or returns a non-finite RMS
        """
        self._require_ready()
        if len(object_point_sets) == 0:
            raise CalibrationFailed("No samples to calibrate with")

        obj_points = [np.asarray(p, dtype=np.float32).reshape(-1, 3) for p in object_point_sets]
        img_points = [np.asarray(p, dtype=np.float32).reshape(-1, 1, 2) for p in image_point_sets]

        try:
            (
                rms, camera_matrix, dist_coeffs, _rvecs, _tvecs,
                _std_intrinsics, _std_extrinsics, per_view_errors,
            ) = cv2.calibrateCameraExtended(
                obj_points,
                img_points,
                tuple(int(v) for v in image_size),
                None,
                None,
            )
        except cv2.error as e:
            raise CalibrationFailed(f"Solver error: {e}") from e

        if not np.isfinite(rms):
            raise CalibrationFailed(f"Solver returned non-finite RMS error ({rms})")

        return CalibrationResult(
            camera_matrix=camera_matrix,
            distortion_coeffs=dist_coeffs,
            rms_error=float(rms),
            per_view_errors=[float(e) for e in np.asarray(per_view_errors).ravel()],
            image_size=tuple(int(v) for v in image_size),
            sample_count=len(obj_points),
        )

    def __enter__(self):
        self.init()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
