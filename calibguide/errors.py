"""
calibguide Error Types

Configuration problems are fatal at construction, dimension mismatches are
contract violations, and solver failures are reported back as diagnostics.
"""


class CalibGuideError(Exception):
    """Base class for all calibguide errors."""


class ConfigurationError(CalibGuideError, ValueError):
    """Invalid construction parameter (fps, pattern dimensions, thresholds)."""


class DimensionMismatch(CalibGuideError, ValueError):
    """Sample shape does not match the session's pattern."""

    def __init__(self, expected: int, object_count: int, image_count: int):
        self.expected = expected
        self.object_count = object_count
        self.image_count = image_count
        super().__init__(
            f"Expected {expected} point pairs, got {object_count} object "
            f"points and {image_count} image points"
        )


class CalibrationFailed(CalibGuideError, RuntimeError):
    """The multi-view calibration solver could not produce a result."""
