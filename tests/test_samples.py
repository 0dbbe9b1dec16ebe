"""
Sample Accumulator Tests
"""

import pytest
import numpy as np


class TestSampleAccumulator:

    def test_accept_increments_count(self, pattern):
        from calibguide.calibration.samples import SampleAccumulator

        acc = SampleAccumulator(pattern)
        objp = pattern.object_points()
        imgp = np.random.rand(36, 2).astype(np.float32)

        assert acc.count == 0
        acc.accept(objp, imgp)
        acc.accept(objp, imgp)

        assert acc.count == 2
        assert len(acc) == 2

    def test_samples_keep_order(self, pattern):
        from calibguide.calibration.samples import SampleAccumulator

        acc = SampleAccumulator(pattern)
        objp = pattern.object_points()
        for i in range(3):
            acc.accept(objp, np.full((36, 2), i, dtype=np.float32))

        firsts = [float(s.image_points[0, 0]) for s in acc.samples]
        assert firsts == [0.0, 1.0, 2.0]
        assert len(acc.object_point_sets()) == 3
        assert len(acc.image_point_sets()) == 3

    def test_opencv_corner_shape_accepted(self, pattern):
        """Test (N, 1, 2) corner arrays from the detector are flattened."""
        from calibguide.calibration.samples import SampleAccumulator

        acc = SampleAccumulator(pattern)
        sample = acc.accept(pattern.object_points(), np.zeros((36, 1, 2), dtype=np.float32))

        assert sample.image_points.shape == (36, 2)
        assert sample.object_points.shape == (36, 3)
        assert len(sample) == 36

    def test_short_image_points(self, pattern):
        """Test 35 image points against a 36-point pattern."""
        from calibguide.calibration.samples import SampleAccumulator
        from calibguide.errors import DimensionMismatch

        acc = SampleAccumulator(pattern)
        with pytest.raises(DimensionMismatch) as excinfo:
            acc.accept(pattern.object_points(), np.zeros((35, 2), dtype=np.float32))

        assert excinfo.value.expected == 36
        assert excinfo.value.image_count == 35
        assert acc.count == 0

    def test_matching_lengths_but_wrong_pattern(self, pattern):
        from calibguide.calibration.samples import SampleAccumulator
        from calibguide.errors import DimensionMismatch

        acc = SampleAccumulator(pattern)
        with pytest.raises(DimensionMismatch):
            acc.accept(np.zeros((20, 3)), np.zeros((20, 2)))

    def test_ragged_points(self, pattern):
        from calibguide.calibration.samples import SampleAccumulator
        from calibguide.errors import DimensionMismatch

        acc = SampleAccumulator(pattern)
        with pytest.raises(DimensionMismatch):
            acc.accept(pattern.object_points(), np.zeros(71, dtype=np.float32))

    def test_samples_are_read_only(self, pattern):
        from calibguide.calibration.samples import SampleAccumulator

        acc = SampleAccumulator(pattern)
        imgp = np.zeros((36, 2), dtype=np.float32)
        sample = acc.accept(pattern.object_points(), imgp)

        with pytest.raises(ValueError):
            sample.image_points[0, 0] = 1.0

        # Caller's buffer stays independent
        imgp[0, 0] = 5.0
        assert sample.image_points[0, 0] == 0.0
