"""
Final per-axis shaping of stabilized angles.

Each axis gets its offset added first, then an optional clamp to [min, max].
Neutral frames pass through the same shaping, so every frame produces a
bounded output.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class AxisShaping:
    """Offset and optional clamp range for one axis, in degrees."""
    offset_deg: float = 0.0
    limit: bool = True
    range_deg: Tuple[float, float] = (-90.0, 90.0)

    def __post_init__(self):
        lo, hi = self.range_deg
        if lo > hi:
            raise ValueError(f"Clamp range min {lo} is greater than max {hi}")

    def apply(self, angle: float) -> float:
        value = angle + self.offset_deg
        if self.limit:
            lo, hi = self.range_deg
            value = min(max(value, lo), hi)
        return value


class AngleShaper:
    """Applies AxisShaping to pitch, yaw and roll."""

    def __init__(
        self,
        pitch: AxisShaping = AxisShaping(range_deg=(-60.0, 60.0)),
        yaw: AxisShaping = AxisShaping(range_deg=(-90.0, 90.0)),
        roll: AxisShaping = AxisShaping(range_deg=(-40.0, 40.0))
    ):
        self.pitch = pitch
        self.yaw = yaw
        self.roll = roll

    def shape(
        self,
        pitch: float,
        yaw: float,
        roll: float
    ) -> Tuple[float, float, float]:
        """Shape one (pitch, yaw, roll) triple."""
        return (
            self.pitch.apply(pitch),
            self.yaw.apply(yaw),
            self.roll.apply(roll),
        )
