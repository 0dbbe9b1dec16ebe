"""Calibration module: pattern geometry, novelty gating, samples and the solver trigger."""

from .pattern import PatternSpec, render_chessboard
from .pose import Pose, euler_from_rotation_matrix
from .novelty import Guidance, NoveltyDecision, PoseNoveltyEvaluator
from .samples import CalibrationSample, SampleAccumulator
from .trigger import CalibrationOutcome, CalibrationTrigger, TriggerPolicy
from .vision import CalibrationResult, CornerDetection, OpenCVVision
from .detection import FullRedetection, TrackedDetection

__all__ = [
    "PatternSpec",
    "render_chessboard",
    "Pose",
    "euler_from_rotation_matrix",
    "Guidance",
    "NoveltyDecision",
    "PoseNoveltyEvaluator",
    "CalibrationSample",
    "SampleAccumulator",
    "CalibrationOutcome",
    "CalibrationTrigger",
    "TriggerPolicy",
    "CalibrationResult",
    "CornerDetection",
    "OpenCVVision",
    "FullRedetection",
    "TrackedDetection",
]
