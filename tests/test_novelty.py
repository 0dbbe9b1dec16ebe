"""
Pose Novelty Tests

Tests the per-axis novelty gate and the guidance it produces.
"""

import pytest
import numpy as np
from conftest import bootstrap_poses


class TestEmptyHistory:

    @pytest.mark.parametrize("angles", [
        (0.0, 0.0, 0.0),
        (45.0, -30.0, 90.0),
        (-170.0, 170.0, 5.0),
    ])
    def test_first_pose_asks_for_vertical_movement(self, angles):
        """Test any pose against an empty history is rejected with pitch guidance."""
        from calibguide.calibration.novelty import Guidance, PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        decision = PoseNoveltyEvaluator().evaluate(Pose(*angles, distance=2.0), [])

        assert decision.accept is False
        assert decision.guidance == Guidance.VERTICAL


class TestAxisOrder:

    def test_bootstrap_sweep(self):
        """Test the pitch -> yaw -> roll sweep with a growing history."""
        from calibguide.calibration.novelty import Guidance, PoseNoveltyEvaluator

        evaluator = PoseNoveltyEvaluator(threshold=10)
        poses = bootstrap_poses()

        decisions = [evaluator.evaluate(p, poses[:i]) for i, p in enumerate(poses)]

        assert [d.accept for d in decisions] == [False, False, False, True]
        assert [d.guidance.value for d in decisions] == ["vertical", "horizontal", "rotate", "ok"]

    def test_pitch_checked_before_yaw(self):
        """Test pitch guidance wins when both pitch and yaw are too close."""
        from calibguide.calibration.novelty import Guidance, PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        decision = PoseNoveltyEvaluator().evaluate(Pose(1, 1, 50), [Pose(0, 0, 0)])

        assert decision.guidance == Guidance.VERTICAL

    def test_yaw_checked_before_roll(self):
        from calibguide.calibration.novelty import Guidance, PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        decision = PoseNoveltyEvaluator().evaluate(Pose(50, 1, 1), [Pose(0, 0, 0)])

        assert decision.guidance == Guidance.HORIZONTAL


class TestThreshold:

    def test_threshold_is_inclusive(self):
        """Test a difference of exactly the threshold is enough."""
        from calibguide.calibration.novelty import PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        decision = PoseNoveltyEvaluator(threshold=10).evaluate(Pose(10, -10, 10), [Pose(0, 0, 0)])

        assert decision.accept is True

    def test_just_below_threshold(self):
        from calibguide.calibration.novelty import Guidance, PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        decision = PoseNoveltyEvaluator(threshold=10).evaluate(Pose(10, 10, 9.99), [Pose(0, 0, 0)])

        assert decision.accept is False
        assert decision.guidance == Guidance.ROTATE

    def test_custom_threshold(self):
        from calibguide.calibration.novelty import PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        history = [Pose(0, 0, 0)]
        candidate = Pose(6, 6, 6)

        assert PoseNoveltyEvaluator(threshold=5).evaluate(candidate, history).accept is True
        assert PoseNoveltyEvaluator(threshold=10).evaluate(candidate, history).accept is False

    @pytest.mark.parametrize("threshold", [0, -5])
    def test_invalid_threshold(self, threshold):
        from calibguide.calibration.novelty import PoseNoveltyEvaluator
        from calibguide.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            PoseNoveltyEvaluator(threshold=threshold)

    def test_uses_largest_difference_over_history(self):
        """Test each axis is judged by its largest difference across the history."""
        from calibguide.calibration.novelty import PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        history = [Pose(0, 0, 0), Pose(20, 20, 20)]

        assert PoseNoveltyEvaluator().evaluate(Pose(20, 20, 20), history).accept is True

    def test_accepted_pose_clears_threshold_on_every_axis(self):
        """Test acceptance implies a per-axis difference of at least the threshold."""
        from calibguide.calibration.novelty import PoseNoveltyEvaluator, max_axis_difference
        from calibguide.calibration.pose import Pose

        rng = np.random.default_rng(7)
        evaluator = PoseNoveltyEvaluator()

        for _ in range(200):
            history = [Pose(*rng.uniform(-60, 60, 3)) for _ in range(rng.integers(0, 5))]
            candidate = Pose(*rng.uniform(-60, 60, 3))
            decision = evaluator.evaluate(candidate, history)
            if decision.accept:
                for axis in ("pitch", "yaw", "roll"):
                    assert max_axis_difference(candidate, history, axis) >= 10


class TestPurity:

    def test_history_not_modified(self):
        from calibguide.calibration.novelty import PoseNoveltyEvaluator
        from calibguide.calibration.pose import Pose

        history = [Pose(0, 0, 0)]
        PoseNoveltyEvaluator().evaluate(Pose(30, 30, 30), history)

        assert history == [Pose(0, 0, 0)]

    def test_every_guidance_has_a_message(self):
        from calibguide.calibration.novelty import Guidance

        for guidance in Guidance:
            assert guidance.message
