"""
Camera Frame Tests

No device is opened; these cover the frame handle and the idle camera.
"""

import numpy as np


class TestCameraFrame:

    def test_image_size(self):
        from calibguide.capture.camera import CameraFrame

        frame = CameraFrame(image=np.zeros((480, 640, 3), dtype=np.uint8), timestamp=0.0, frame_number=1)

        assert frame.image_size == (640, 480)
        assert frame.released is False

    def test_release(self):
        from calibguide.capture.camera import CameraFrame

        frame = CameraFrame(image=np.zeros((4, 4), dtype=np.uint8), timestamp=0.0, frame_number=1)
        frame.release()
        frame.release()

        assert frame.released
        assert frame.image is None


class TestCamera:

    def test_no_frame_before_start(self):
        from calibguide.capture.camera import Camera

        camera = Camera(camera_id=0)

        assert camera.current_frame() is None
        assert camera.is_running is False
        assert camera.frame_count == 0

    def test_stop_without_start(self):
        from calibguide.capture.camera import Camera

        camera = Camera(camera_id=0)
        camera.stop()

        assert camera.is_running is False
