"""
Threaded Camera Capture

Reads frames on a background thread and hands the most recent one to the
capture controller on demand.
"""

import cv2
import numpy as np
import threading
import time
from typing import Optional, Protocol, Tuple
from dataclasses import dataclass

from ..utils.logging import camera_log


@dataclass
class CameraFrame:
    """A captured frame with metadata."""
    image: Optional[np.ndarray]
    timestamp: float  # Time of capture
    frame_number: int
    camera_id: int = 0

    @property
    def released(self) -> bool:
        return self.image is None

    @property
    def image_size(self) -> Tuple[int, int]:
        """(width, height) of the frame."""
        h, w = self.image.shape[:2]
        return (w, h)

    def release(self) -> None:
        """Drop this handle's reference to the pixel buffer."""
        self.image = None


class FrameSource(Protocol):
    def current_frame(self) -> Optional[CameraFrame]: ...


class Camera:
    """
    Threaded camera capture keeping only the latest frame.
    """

    def __init__(
        self,
        camera_id: int = 0,
        resolution: Tuple[int, int] = (1280, 720),
        fps: int = 30,
    ):
        """
        Initialize camera.

        Args:
            camera_id: OpenCV camera index
            resolution: (width, height) tuple
            fps: Device frame rate to request
        """
        self.camera_id = camera_id
        self.resolution = resolution
        self.target_fps = fps

        self._cap: Optional[cv2.VideoCapture] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._latest_image: Optional[np.ndarray] = None
        self._latest_timestamp = 0.0
        self._frame_lock = threading.Lock()
        self._frame_count = 0

    def start(self) -> bool:
        """Open the device and start the capture thread."""
        if self._running:
            return True

        self._cap = cv2.VideoCapture(self.camera_id)
        if not self._cap.isOpened():
            camera_log.error(f"Failed to open camera {self.camera_id}")
            self._cap = None
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
        self._cap.set(cv2.CAP_PROP_FPS, self.target_fps)

        # Reduce buffering for lower latency
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        actual_width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self._cap.get(cv2.CAP_PROP_FPS)
        camera_log.info(f"Camera {self.camera_id}: {actual_width}x{actual_height} @ {actual_fps:.1f} FPS")

        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self) -> None:
        """Stop the capture thread and release the device."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap:
            self._cap.release()
            self._cap = None
        with self._frame_lock:
            self._latest_image = None

    def _capture_loop(self) -> None:
        while self._running:
            if self._cap is None:
                break

            ret, frame = self._cap.read()
            if not ret:
                time.sleep(0.001)
                continue

            with self._frame_lock:
                self._frame_count += 1
                self._latest_image = frame
                self._latest_timestamp = time.time()

    def current_frame(self) -> Optional[CameraFrame]:
        """
        Get a handle to the most recent frame (non-blocking).

        Returns:
            CameraFrame, or None before the first frame arrives
        """
        with self._frame_lock:
            if self._latest_image is None:
                return None
            return CameraFrame(
                image=self._latest_image,
                timestamp=self._latest_timestamp,
                frame_number=self._frame_count,
                camera_id=self.camera_id,
            )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
