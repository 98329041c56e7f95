"""
Temporal filter primitives for pose stabilization.

- low_pass: exponential blend of a stored vector toward a new sample
- apply_deadband: zero out angles below a threshold
- max_displacement: stillness measure between two landmark snapshots
- AngleHistory: fixed-size sliding-window median over (pitch, yaw, roll)
"""

import numpy as np
from typing import Tuple
from numpy.typing import NDArray


def low_pass(
    previous: NDArray[np.float64],
    sample: NDArray[np.float64],
    alpha: float
) -> NDArray[np.float64]:
    """
    Component-wise exponential blend: previous * (1 - alpha) + sample * alpha.

    Lower alpha means heavier smoothing and slower tracking.
    """
    return (
        np.asarray(previous, dtype=np.float64) * (1.0 - alpha)
        + np.asarray(sample, dtype=np.float64) * alpha
    )


def apply_deadband(angle: float, threshold: float) -> float:
    """Return 0 if |angle| < threshold, else angle unchanged."""
    return 0.0 if abs(angle) < threshold else angle


def max_displacement(
    points: NDArray[np.float64],
    reference: NDArray[np.float64]
) -> float:
    """
    Largest Euclidean distance between matching points.

    Args:
        points: Current points, shape (N, 2)
        reference: Previous points, shape (N, 2)

    Returns:
        Maximum per-point displacement in pixels
    """
    deltas = np.asarray(points, dtype=np.float64) - np.asarray(reference, dtype=np.float64)
    return float(np.max(np.linalg.norm(deltas, axis=1)))


class AngleHistory:
    """
    Circular buffers of the last `window` (pitch, yaw, roll) samples.

    The three axes are always written together, so they share one write
    cursor and one wrapped flag. The median covers every sample written so
    far until the buffer wraps, and the full window afterwards.
    """

    def __init__(self, window: int = 15):
        if window < 1:
            raise ValueError(f"Median window must be >= 1, got {window}")
        self.window = window
        self.samples = np.zeros((3, window), dtype=np.float64)
        self.cursor = 0
        self.wrapped = False

    def __len__(self) -> int:
        """Number of valid samples."""
        return self.window if self.wrapped else self.cursor

    def push(self, pitch: float, yaw: float, roll: float) -> None:
        """Write one sample per axis at the cursor and advance it."""
        self.samples[:, self.cursor] = (pitch, yaw, roll)
        self.cursor = (self.cursor + 1) % self.window
        if self.cursor == 0:
            self.wrapped = True

    def median(self) -> Tuple[float, float, float]:
        """
        Per-axis median over the valid samples.

        Returns:
            (pitch, yaw, roll); zeros if nothing has been written yet
        """
        n = len(self)
        if n == 0:
            return 0.0, 0.0, 0.0
        med = np.median(self.samples[:, :n], axis=1)
        return float(med[0]), float(med[1]), float(med[2])

    def copy(self) -> "AngleHistory":
        other = AngleHistory(self.window)
        other.samples = self.samples.copy()
        other.cursor = self.cursor
        other.wrapped = self.wrapped
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AngleHistory):
            return NotImplemented
        return (
            self.window == other.window
            and self.cursor == other.cursor
            and self.wrapped == other.wrapped
            and np.array_equal(self.samples, other.samples)
        )

    def __repr__(self) -> str:
        return f"AngleHistory(window={self.window}, n={len(self)})"
