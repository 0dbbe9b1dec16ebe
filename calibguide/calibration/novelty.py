"""
Pose Novelty Evaluation

Decides whether a candidate view adds angular diversity to the calibration
set and tells the operator which way to move next.

Axes are checked in a fixed order (pitch, then yaw, then roll). The first
axis whose largest difference against the history is below the threshold
determines the guidance; a view is accepted only when all three clear it.
An empty history yields zero difference on every axis, so the first pose
of a session is always answered with vertical-movement guidance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .pose import Pose
from ..errors import ConfigurationError


DEFAULT_NOVELTY_THRESHOLD = 10.0  # degrees


class Guidance(str, Enum):
    """Operator guidance emitted after each evaluated view."""
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    ROTATE = "rotate"
    OK = "ok"
    COMPLETE = "complete"

    @property
    def message(self) -> str:
        return GUIDANCE_MESSAGES[self]


GUIDANCE_MESSAGES = {
    Guidance.VERTICAL: "Move the camera or board vertically",
    Guidance.HORIZONTAL: "Move the camera or board horizontally",
    Guidance.ROTATE: "Rotate the camera or board",
    Guidance.OK: "Angle acceptable, continue capturing",
    Guidance.COMPLETE: "Capture complete, calibrating",
}


@dataclass(frozen=True)
class NoveltyDecision:
    """Outcome of evaluating one candidate pose."""
    accept: bool
    guidance: Guidance


def max_axis_difference(pose: Pose, history: Sequence[Pose], axis: str) -> float:
    """Largest absolute difference on one axis; 0.0 for an empty history."""
    value = getattr(pose, axis)
    return max((abs(value - getattr(h, axis)) for h in history), default=0.0)


class PoseNoveltyEvaluator:
    """
    Per-axis novelty gate.

    Parameters:
        threshold: Minimum angular difference in degrees, per axis.
    """

    AXIS_ORDER = (
        ("pitch", Guidance.VERTICAL),
        ("yaw", Guidance.HORIZONTAL),
        ("roll", Guidance.ROTATE),
    )

    def __init__(self, threshold: float = DEFAULT_NOVELTY_THRESHOLD):
        if not threshold > 0:
            raise ConfigurationError(f"novelty threshold must be positive, got {threshold}")
        self.threshold = float(threshold)

    def evaluate(self, pose: Pose, history: Sequence[Pose]) -> NoveltyDecision:
        """
        Evaluate a candidate pose against previously seen poses.

        Args:
            pose: Candidate pose, taken as-is
            history: Reference poses; not modified

        Returns:
            NoveltyDecision with acceptance flag and guidance
        """
        for axis, guidance in self.AXIS_ORDER:
            if max_axis_difference(pose, history, axis) < self.threshold:
                return NoveltyDecision(accept=False, guidance=guidance)
        return NoveltyDecision(accept=True, guidance=Guidance.OK)
