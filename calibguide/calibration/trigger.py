"""
Calibration Trigger

Decides when the accumulated samples are enough to run the intrinsic
solve, and runs it either inline or on a background worker.

Policies:
- ONCE: fire on the threshold crossing, then stay quiet until
  recalibrate() re-arms the trigger.
- EVERY_SAMPLE: fire on every accepted sample at or past the threshold.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .samples import SampleAccumulator
from .vision import CalibrationResult, VisionBackend
from ..errors import CalibrationFailed, ConfigurationError
from ..utils.logging import calibration_log


DEFAULT_MIN_SAMPLES = 15


class TriggerPolicy(str, Enum):
    ONCE = "once"
    EVERY_SAMPLE = "every_sample"


@dataclass
class CalibrationOutcome:
    """Result of one solver invocation: either a result or a diagnostic."""
    sample_count: int
    result: Optional[CalibrationResult] = None
    error: Optional[str] = None
    forced: bool = False  # requested through finalize()

    @property
    def success(self) -> bool:
        return self.result is not None


class CalibrationTrigger:
    """
    Threshold-based calibration launcher.

    Args:
        vision: Backend providing calibrate()
        min_samples: Sample count that makes calibration worthwhile
        policy: TriggerPolicy (or its string value)
        background: Run the solve on a worker thread
    """

    def __init__(
        self,
        vision: VisionBackend,
        min_samples: int = DEFAULT_MIN_SAMPLES,
        policy: TriggerPolicy = TriggerPolicy.ONCE,
        background: bool = False,
    ):
        if int(min_samples) != min_samples or min_samples < 1:
            raise ConfigurationError(f"min_samples must be an integer >= 1, got {min_samples}")
        try:
            policy = TriggerPolicy(policy)
        except ValueError as e:
            raise ConfigurationError(f"Unknown trigger policy: {policy!r}") from e

        self.vision = vision
        self.min_samples = int(min_samples)
        self.policy = policy
        self.background = background

        self._fired = False
        self._generation = 0
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._callbacks: List[Callable[[CalibrationOutcome], None]] = []
        self.last_outcome: Optional[CalibrationOutcome] = None

    def add_callback(self, callback: Callable[[CalibrationOutcome], None]) -> None:
        """Add callback invoked with every delivered outcome."""
        self._callbacks.append(callback)

    @property
    def fired(self) -> bool:
        """True once a solve has been launched and not re-armed since."""
        return self._fired

    @property
    def busy(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def should_fire(self, sample_count: int) -> bool:
        if sample_count < self.min_samples:
            return False
        if self.policy == TriggerPolicy.EVERY_SAMPLE:
            return True
        return not self._fired

    def maybe_calibrate(
        self,
        accumulator: SampleAccumulator,
        image_size: Tuple[int, int],
    ) -> Optional[CalibrationOutcome]:
        """
        Run calibration if the policy allows it at the current sample count.

        Returns:
            The outcome for an inline solve; None if nothing ran or the
            solve was handed to the background worker.
        """
        if not self.should_fire(accumulator.count):
            return None
        return self._launch(accumulator, image_size, forced=False)

    def finalize(
        self,
        accumulator: SampleAccumulator,
        image_size: Tuple[int, int],
    ) -> Optional[CalibrationOutcome]:
        """Run calibration now with whatever samples exist."""
        return self._launch(accumulator, image_size, forced=True)

    def recalibrate(self) -> None:
        """Re-arm the trigger so the next accepted sample solves again."""
        with self._lock:
            self._fired = False

    def cancel(self) -> None:
        """Discard the result of any solve still running."""
        with self._lock:
            self._generation += 1

    def reset(self) -> None:
        """Forget all state for a new session."""
        with self._lock:
            self._generation += 1
            self._fired = False
            self.last_outcome = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a background solve to finish.

        Returns:
            True if no worker is running afterwards
        """
        worker = self._worker
        if worker is not None:
            worker.join(timeout=timeout)
        return not self.busy

    def _launch(
        self,
        accumulator: SampleAccumulator,
        image_size: Tuple[int, int],
        forced: bool,
    ) -> Optional[CalibrationOutcome]:
        # Snapshot: samples are immutable, only the list can grow
        object_sets = accumulator.object_point_sets()
        image_sets = accumulator.image_point_sets()

        if not self.background:
            with self._lock:
                self._fired = True
                generation = self._generation
            outcome = self._solve(object_sets, image_sets, image_size, forced)
            self._deliver(outcome, generation)
            return outcome

        # Stays unfired when skipped, so the next accepted sample tries again
        if self.busy:
            calibration_log.debug("Solve already running, skipping this trigger")
            return None

        with self._lock:
            self._fired = True
            generation = self._generation
        self._worker = threading.Thread(
            target=self._solve_in_background,
            args=(object_sets, image_sets, image_size, forced, generation),
            daemon=True,
        )
        self._worker.start()
        return None

    def _solve(
        self,
        object_sets: Sequence[np.ndarray],
        image_sets: Sequence[np.ndarray],
        image_size: Tuple[int, int],
        forced: bool,
    ) -> CalibrationOutcome:
        count = len(object_sets)
        calibration_log.info(f"Calibrating with {count} samples at {image_size[0]}x{image_size[1]}...")

        try:
            result = self.vision.calibrate(object_sets, image_sets, image_size)
        except CalibrationFailed as e:
            calibration_log.warn(f"Calibration failed: {e}")
            return CalibrationOutcome(sample_count=count, error=str(e), forced=forced)

        calibration_log.info(f"Calibration successful! Reprojection error: {result.rms_error:.4f} pixels")
        return CalibrationOutcome(sample_count=count, result=result, forced=forced)

    def _solve_in_background(self, object_sets, image_sets, image_size, forced, generation) -> None:
        outcome = self._solve(object_sets, image_sets, image_size, forced)
        self._deliver(outcome, generation)

    def _deliver(self, outcome: CalibrationOutcome, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                calibration_log.info("Session reset during calibration, result discarded")
                return
            # A failed solve re-arms so the next accepted sample tries again
            if not outcome.success:
                self._fired = False
            self.last_outcome = outcome

        for callback in self._callbacks:
            try:
                callback(outcome)
            except Exception as e:
                calibration_log.error(f"Calibration callback error: {e}")
