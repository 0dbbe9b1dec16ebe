"""
Frame Throttling

Gates the capture pipeline to a fixed rate regardless of how often the
caller ticks (typically once per display refresh).
"""

import time
from typing import Optional

from ..errors import ConfigurationError


DEFAULT_FPS = 10


class FrameThrottler:
    """
    Wall-clock rate limiter.

    A call is allowed through when more than 1000/fps milliseconds have
    passed since the last allowed call. The first call is always allowed.
    Rejected calls leave the state untouched.

    The boundary is exclusive: a call landing exactly 1000/fps ms after
    the last allowed one is rejected. With fps=10, calls at 0/50/100/150 ms
    give allowed/rejected/rejected/allowed. A caller ticking at exactly
    the interval therefore runs at half the target rate; tick faster than
    the target fps to reach it.

    Parameters:
        fps: Target pipeline rate, must be > 0
    """

    def __init__(self, fps: float = DEFAULT_FPS):
        if not fps > 0:
            raise ConfigurationError(f"fps must be positive, got {fps}")
        self.fps = float(fps)
        self.min_interval_ms = 1000.0 / self.fps
        self.last_fire_ms: Optional[float] = None

    @staticmethod
    def now_ms() -> float:
        return time.monotonic() * 1000.0

    def should_run(self, now_ms: Optional[float] = None) -> bool:
        """
        Check whether the pipeline may run at this time.

        Args:
            now_ms: Timestamp in milliseconds (monotonic clock if omitted)

        Returns:
            True if the call is allowed; the fire time is then updated
        """
        if now_ms is None:
            now_ms = self.now_ms()

        if self.last_fire_ms is not None and now_ms - self.last_fire_ms <= self.min_interval_ms:
            return False

        self.last_fire_ms = now_ms
        return True

    def reset(self) -> None:
        self.last_fire_ms = None
