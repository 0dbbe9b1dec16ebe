"""
Board Pose Representation

Reduces a PnP solution (rotation vector + translation vector) to the
pitch/yaw/roll/distance summary the novelty evaluator works with.

Euler angles follow the camera frame convention (x right, y down,
z forward) and are reported in degrees.
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple


# Below this, the rotation is treated as gimbal-locked
SINGULARITY_EPS = 1e-6


@dataclass(frozen=True)
class Pose:
    """Camera-relative board orientation and distance for one view."""
    pitch: float  # degrees
    yaw: float  # degrees
    roll: float  # degrees
    distance: float = 0.0  # object-point units

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.pitch, self.yaw, self.roll, self.distance)


def euler_from_rotation_matrix(R: np.ndarray) -> Tuple[float, float, float]:
    """
    Convert a rotation matrix to (pitch, yaw, roll) in degrees.

    Args:
        R: 3x3 rotation matrix

    Returns:
        (pitch, yaw, roll) tuple in degrees
    """
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)

    sy = np.sqrt(R[0, 0] * R[0, 0] + R[1, 0] * R[1, 0])

    if sy < SINGULARITY_EPS:
        # Gimbal lock: roll is folded into pitch
        x = np.arctan2(-R[1, 2], R[1, 1])
        y = np.arctan2(-R[2, 0], sy)
        z = 0.0
    else:
        x = np.arctan2(R[2, 1], R[2, 2])
        y = np.arctan2(-R[2, 0], sy)
        z = np.arctan2(R[1, 0], R[0, 0])

    pitch, yaw, roll = np.degrees([x, y, z])
    return float(pitch), float(yaw), float(roll)


def rotation_matrix_from_euler(pitch: float, yaw: float, roll: float) -> np.ndarray:
    """
    Compose R = Rz(roll) @ Ry(yaw) @ Rx(pitch) from angles in degrees.

    Inverse of euler_from_rotation_matrix away from the singular case.
    """
    x, y, z = np.radians([pitch, yaw, roll])

    Rx = np.array([
        [1, 0, 0],
        [0, np.cos(x), -np.sin(x)],
        [0, np.sin(x), np.cos(x)],
    ])
    Ry = np.array([
        [np.cos(y), 0, np.sin(y)],
        [0, 1, 0],
        [-np.sin(y), 0, np.cos(y)],
    ])
    Rz = np.array([
        [np.cos(z), -np.sin(z), 0],
        [np.sin(z), np.cos(z), 0],
        [0, 0, 1],
    ])
    return Rz @ Ry @ Rx
