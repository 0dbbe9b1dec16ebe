"""
Calibration Sample Storage

Accepted views are stored as index-aligned (object point, image point)
pairs. Samples are append-only for the lifetime of a session; a new
session starts with a new accumulator.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .pattern import PatternSpec
from ..errors import DimensionMismatch


@dataclass(frozen=True)
class CalibrationSample:
    """One accepted view: 3-D pattern points and their detected pixels."""
    object_points: np.ndarray  # (N, 3) float32, read-only
    image_points: np.ndarray  # (N, 2) float32, read-only

    def __len__(self) -> int:
        return len(self.object_points)


def _as_points(points, dims: int) -> Optional[np.ndarray]:
    arr = np.array(points, dtype=np.float32)
    if arr.size % dims != 0:
        return None
    return arr.reshape(-1, dims)


class SampleAccumulator:
    """
    Ordered, append-only store of calibration samples for one pattern.
    """

    def __init__(self, pattern: PatternSpec):
        self.pattern = pattern
        self._samples: List[CalibrationSample] = []

    def accept(self, object_points, image_points) -> CalibrationSample:
        """
        Append a new sample.

        Args:
            object_points: N 3-D points, shape (N, 3) or (N, 1, 3)
            image_points: N 2-D points, shape (N, 2) or (N, 1, 2)

        Returns:
            The stored sample

        Raises:
            DimensionMismatch: if either length differs from rows*columns
        """
        expected = self.pattern.point_count
        obj = _as_points(object_points, 3)
        img = _as_points(image_points, 2)

        obj_count = -1 if obj is None else len(obj)
        img_count = -1 if img is None else len(img)
        if obj_count != expected or img_count != expected:
            raise DimensionMismatch(expected, obj_count, img_count)

        obj.flags.writeable = False
        img.flags.writeable = False

        sample = CalibrationSample(object_points=obj, image_points=img)
        self._samples.append(sample)
        return sample

    @property
    def count(self) -> int:
        """Number of accepted samples."""
        return len(self._samples)

    @property
    def samples(self) -> Tuple[CalibrationSample, ...]:
        """Accepted samples in acceptance order."""
        return tuple(self._samples)

    def object_point_sets(self) -> List[np.ndarray]:
        return [s.object_points for s in self._samples]

    def image_point_sets(self) -> List[np.ndarray]:
        return [s.image_points for s in self._samples]

    def __len__(self) -> int:
        return len(self._samples)
