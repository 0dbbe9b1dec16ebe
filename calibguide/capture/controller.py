"""
Guided Capture Controller

Runs one step of the guided calibration capture per scheduler tick:

    throttle -> frame -> grayscale -> corners -> pose -> novelty
             -> (accepted) samples + history -> calibration trigger

The controller is single-threaded and must not be ticked concurrently.
Only the calibration solve may leave the tick path (background mode).
"""

import numpy as np
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Tuple

from .camera import CameraFrame, FrameSource
from .throttle import FrameThrottler, DEFAULT_FPS
from ..calibration.detection import ChessboardDetector, FullRedetection, TrackedDetection
from ..calibration.novelty import DEFAULT_NOVELTY_THRESHOLD, Guidance, PoseNoveltyEvaluator
from ..calibration.pattern import PatternSpec
from ..calibration.pose import Pose
from ..calibration.samples import CalibrationSample, SampleAccumulator
from ..calibration.trigger import (
    DEFAULT_MIN_SAMPLES,
    CalibrationOutcome,
    CalibrationTrigger,
    TriggerPolicy,
)
from ..calibration.vision import VisionBackend
from ..config import CalibGuideConfig
from ..utils.logging import capture_log, guidance_log


class ControllerState(Enum):
    IDLE = "idle"  # pattern or frame source missing
    ARMED = "armed"  # ready to process ticks


class TickStatus(Enum):
    """What happened during one tick."""
    IDLE = "idle"
    THROTTLED = "throttled"
    NO_FRAME = "no_frame"
    NO_CORNERS = "no_corners"
    NO_POSE = "no_pose"
    TRACKING = "tracking"


@dataclass
class TickResult:
    status: TickStatus
    guidance: Optional[Guidance] = None
    accepted: bool = False
    pose: Optional[Pose] = None
    tracked: bool = False
    sample_count: int = 0
    calibration: Optional[CalibrationOutcome] = None


class CaptureController:
    """
    Guided calibration capture for a single camera.

    Args:
        vision: Initialized vision context
        pattern: Chessboard pattern (controller stays IDLE until set)
        source: Frame source (controller stays IDLE until attached)
        fps: Capture pipeline rate
        novelty_threshold: Per-axis novelty threshold in degrees
        min_samples: Samples needed before calibrating
        trigger_policy: When to re-run calibration past the threshold
        background_calibration: Solve on a worker thread
        detector: Corner detection strategy (full redetection by default)
        bootstrap_trail_length: Poses remembered before the first acceptance
    """

    def __init__(
        self,
        vision: VisionBackend,
        pattern: Optional[PatternSpec] = None,
        source: Optional[FrameSource] = None,
        fps: float = DEFAULT_FPS,
        novelty_threshold: float = DEFAULT_NOVELTY_THRESHOLD,
        min_samples: int = DEFAULT_MIN_SAMPLES,
        trigger_policy: TriggerPolicy = TriggerPolicy.ONCE,
        background_calibration: bool = False,
        detector: Optional[ChessboardDetector] = None,
        bootstrap_trail_length: int = 300,
    ):
        self.vision = vision
        self.throttler = FrameThrottler(fps)
        self.evaluator = PoseNoveltyEvaluator(novelty_threshold)
        self.trigger = CalibrationTrigger(
            vision,
            min_samples=min_samples,
            policy=trigger_policy,
            background=background_calibration,
        )
        self.trigger.add_callback(self._on_calibration_outcome)
        self.detector: ChessboardDetector = detector or FullRedetection(vision)

        self._pattern: Optional[PatternSpec] = None
        self._object_points: Optional[np.ndarray] = None
        self._source: Optional[FrameSource] = None
        self._accumulator: Optional[SampleAccumulator] = None
        self._history: List[Pose] = []
        # Reference poses until the first acceptance
        self._trail: Deque[Pose] = deque(maxlen=bootstrap_trail_length)
        self._image_size: Optional[Tuple[int, int]] = None
        self.last_guidance: Optional[Guidance] = None

        self._guidance_callbacks: List[Callable[[Guidance], None]] = []
        self._calibration_callbacks: List[Callable[[CalibrationOutcome], None]] = []

        if pattern is not None:
            self.set_pattern(pattern)
        if source is not None:
            self.attach_source(source)

    @classmethod
    def from_config(
        cls,
        vision: VisionBackend,
        config: CalibGuideConfig,
        source: Optional[FrameSource] = None,
    ) -> "CaptureController":
        """Build a controller from the application configuration."""
        guidance = config.guidance
        detector = None
        if guidance.use_tracking:
            detector = TrackedDetection(vision, max_tracking_error=guidance.max_tracking_error)

        return cls(
            vision,
            pattern=config.pattern.to_pattern(),
            source=source,
            fps=guidance.fps,
            novelty_threshold=guidance.novelty_threshold,
            min_samples=guidance.min_samples,
            trigger_policy=TriggerPolicy(guidance.trigger_policy),
            background_calibration=guidance.background_calibration,
            detector=detector,
            bootstrap_trail_length=guidance.bootstrap_trail_length,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        if self._pattern is not None and self._source is not None:
            return ControllerState.ARMED
        return ControllerState.IDLE

    @property
    def pattern(self) -> Optional[PatternSpec]:
        return self._pattern

    @property
    def angle_history(self) -> Tuple[Pose, ...]:
        """Poses accepted in the current session, in order."""
        return tuple(self._history)

    @property
    def sample_count(self) -> int:
        return self._accumulator.count if self._accumulator is not None else 0

    @property
    def samples(self) -> Tuple[CalibrationSample, ...]:
        return self._accumulator.samples if self._accumulator is not None else ()

    @property
    def image_size(self) -> Optional[Tuple[int, int]]:
        return self._image_size

    @property
    def last_outcome(self) -> Optional[CalibrationOutcome]:
        return self.trigger.last_outcome

    def add_guidance_callback(self, callback: Callable[[Guidance], None]) -> None:
        """Add callback for guidance updates."""
        self._guidance_callbacks.append(callback)

    def add_calibration_callback(self, callback: Callable[[CalibrationOutcome], None]) -> None:
        """Add callback for calibration outcomes (may run on the worker thread)."""
        self._calibration_callbacks.append(callback)

    def set_pattern(self, pattern: PatternSpec) -> None:
        """
        Set the chessboard pattern. A changed pattern starts a new session,
        since earlier samples no longer match its point count.
        """
        if pattern == self._pattern:
            return
        self._pattern = pattern
        self._object_points = pattern.object_points()
        capture_log.info(
            f"Pattern set: {pattern.columns}x{pattern.rows} corners, square {pattern.square_size}"
        )
        self.reset_session()

    def attach_source(self, source: FrameSource) -> None:
        self._source = source
        self.throttler.reset()
        self.detector.reset()
        capture_log.info(f"Frame source attached, state: {self.state.value}")

    def detach_source(self) -> None:
        self._source = None
        self.detector.reset()

    def reset_session(self) -> None:
        """Discard history and samples and start collecting again."""
        self.trigger.reset()
        self.detector.reset()
        self.throttler.reset()
        self._history = []
        self._trail.clear()
        self._image_size = None
        self.last_guidance = None
        self._accumulator = SampleAccumulator(self._pattern) if self._pattern is not None else None
        capture_log.info("Calibration session started")

    def recalibrate(self) -> None:
        """Re-arm the trigger; the next accepted sample past threshold re-solves."""
        self.trigger.recalibrate()

    def finalize(self) -> Optional[CalibrationOutcome]:
        """
        Calibrate now with the samples collected so far.

        Returns:
            Outcome of an inline solve, or None when there is nothing to
            solve or the solve runs in the background
        """
        if self._accumulator is None or self._accumulator.count == 0 or self._image_size is None:
            capture_log.warn("Finalize requested with no samples")
            return None
        return self.trigger.finalize(self._accumulator, self._image_size)

    def shutdown(self) -> None:
        """Cancel pending work and detach from the frame source."""
        self.trigger.cancel()
        self.detach_source()
        capture_log.info("Controller shut down")

    # ------------------------------------------------------------------
    # Per-tick pipeline
    # ------------------------------------------------------------------

    def tick(self, now_ms: Optional[float] = None) -> TickResult:
        """
        Process one scheduler tick.

        Args:
            now_ms: Tick timestamp in milliseconds (monotonic clock if omitted)

        Returns:
            TickResult describing what happened
        """
        if self.state is not ControllerState.ARMED:
            return TickResult(TickStatus.IDLE)

        if not self.throttler.should_run(now_ms):
            return TickResult(TickStatus.THROTTLED, sample_count=self.sample_count)

        frame = self._source.current_frame()
        if frame is None:
            return TickResult(TickStatus.NO_FRAME, sample_count=self.sample_count)

        try:
            return self._process(frame)
        finally:
            frame.release()

    def _process(self, frame: CameraFrame) -> TickResult:
        gray = self.vision.to_grayscale(frame.image)
        height, width = gray.shape[:2]
        image_size = (width, height)

        detection = self.detector.detect(gray, self._pattern)
        if not detection.found:
            return TickResult(TickStatus.NO_CORNERS, sample_count=self.sample_count)

        pose = self.vision.estimate_pose(self._object_points, detection.points, image_size)
        if pose is None:
            return TickResult(TickStatus.NO_POSE, sample_count=self.sample_count)

        self._image_size = image_size
        decision = self.evaluator.evaluate(pose, self._reference_poses())

        if decision.accept:
            sample_number = self._accept(pose, detection.points)
            guidance_log.info(
                f"Sample {sample_number} accepted "
                f"(pitch {pose.pitch:.1f}, yaw {pose.yaw:.1f}, roll {pose.roll:.1f}, "
                f"distance {pose.distance:.2f})"
            )
        else:
            guidance_log.debug(
                f"Pose rejected ({decision.guidance.value}): "
                f"pitch {pose.pitch:.1f}, yaw {pose.yaw:.1f}, roll {pose.roll:.1f}"
            )
            if not self._history:
                self._trail.append(pose)

        self._emit_guidance(decision.guidance)

        calibration = None
        if decision.accept:
            calibration = self.trigger.maybe_calibrate(self._accumulator, image_size)

        return TickResult(
            TickStatus.TRACKING,
            guidance=decision.guidance,
            accepted=decision.accept,
            pose=pose,
            tracked=detection.tracked,
            sample_count=self.sample_count,
            calibration=calibration,
        )

    def _reference_poses(self) -> List[Pose]:
        if self._history:
            return self._history
        return list(self._trail)

    def _accept(self, pose: Pose, image_points: np.ndarray) -> int:
        # Accumulator first: a DimensionMismatch must leave history untouched
        self._accumulator.accept(self._object_points, image_points)
        self._history.append(pose)
        self._trail.clear()
        return self._accumulator.count

    def _emit_guidance(self, guidance: Guidance) -> None:
        self.last_guidance = guidance
        for callback in self._guidance_callbacks:
            try:
                callback(guidance)
            except Exception as e:
                guidance_log.error(f"Guidance callback error: {e}")

    def _on_calibration_outcome(self, outcome: CalibrationOutcome) -> None:
        if outcome.success:
            self._emit_guidance(Guidance.COMPLETE)
        for callback in self._calibration_callbacks:
            try:
                callback(outcome)
            except Exception as e:
                capture_log.error(f"Calibration callback error: {e}")
