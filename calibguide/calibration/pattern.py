"""
Chessboard Pattern Definition

A pattern is described by its inner-corner grid (columns x rows) and the
edge length of one square. The object-point grid is planar (z = 0) and
ordered row-major, matching the order OpenCV reports detected corners in.
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple

from ..errors import ConfigurationError


@dataclass(frozen=True)
class PatternSpec:
    """Inner-corner layout of a chessboard calibration target."""
    columns: int
    rows: int
    square_size: float = 1.0

    def __post_init__(self):
        if int(self.columns) != self.columns or self.columns < 2:
            raise ConfigurationError(f"columns must be an integer >= 2, got {self.columns}")
        if int(self.rows) != self.rows or self.rows < 2:
            raise ConfigurationError(f"rows must be an integer >= 2, got {self.rows}")
        if not self.square_size > 0:
            raise ConfigurationError(f"square_size must be positive, got {self.square_size}")

    @property
    def size(self) -> Tuple[int, int]:
        """Pattern size as OpenCV expects it: (columns, rows)."""
        return (int(self.columns), int(self.rows))

    @property
    def point_count(self) -> int:
        return int(self.columns) * int(self.rows)

    def object_points(self) -> np.ndarray:
        """
        Build the 3-D object-point grid.

        Returns:
            (rows*columns, 3) float32 array; row i, column j maps to
            (j * square_size, i * square_size, 0).
        """
        cols, rows = self.size
        objp = np.zeros((rows * cols, 3), np.float32)
        objp[:, :2] = np.mgrid[0:cols, 0:rows].T.reshape(-1, 2)
        objp *= float(self.square_size)
        return objp


def render_chessboard(
    pattern: PatternSpec,
    square_px: int = 60,
    margin_px: int = 60,
) -> np.ndarray:
    """
    Render a printable chessboard for the given pattern.

    A pattern of C x R inner corners needs (C+1) x (R+1) squares.

    Args:
        pattern: Pattern to render
        square_px: Square edge length in pixels
        margin_px: White border around the board

    Returns:
        Grayscale uint8 image
    """
    cols, rows = pattern.size
    squares_x, squares_y = cols + 1, rows + 1

    board = np.full(
        (squares_y * square_px + 2 * margin_px, squares_x * square_px + 2 * margin_px),
        255,
        dtype=np.uint8,
    )
    for y in range(squares_y):
        for x in range(squares_x):
            if (x + y) % 2 == 0:
                y0 = margin_px + y * square_px
                x0 = margin_px + x * square_px
                board[y0:y0 + square_px, x0:x0 + square_px] = 0
    return board
