"""
Pose consumers: receivers of the final shaped angles.

A consumer gets update_pose(pitch, yaw, roll) exactly once per processed
frame. NeckRotator drives a neck joint: it flips each axis by a configured
sign and composes the three single-axis rotations onto the joint's bind
orientation, pitch about local X first, then yaw about local Y, then roll
about local Z:

    local = bind * q_x(pitch) * q_y(yaw) * q_z(roll)

Rotation composition does not commute, so this order is part of the
contract.
"""

import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from .coordinates import (
    quaternion_from_axis_angle,
    quaternion_multiply,
    quaternion_to_rotation,
    rotation_to_quaternion_wxyz,
)

logger = logging.getLogger(__name__)

LOCAL_X = np.array([1.0, 0.0, 0.0])
LOCAL_Y = np.array([0.0, 1.0, 0.0])
LOCAL_Z = np.array([0.0, 0.0, 1.0])

IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0])


class PoseConsumer:
    """Interface for anything that accepts shaped head angles."""

    def update_pose(self, pitch_deg: float, yaw_deg: float, roll_deg: float) -> None:
        raise NotImplementedError


class NeckRotator(PoseConsumer):
    """
    Applies head angles to a neck joint relative to its bind pose.

    The current joint orientation is available as local_rotation
    (quaternion, w, x, y, z) and as a matrix via get_rotation_matrix().
    """

    def __init__(
        self,
        bind_rotation: Optional[Sequence] = None,
        pitch_sign: int = 1,
        yaw_sign: int = 1,
        roll_sign: int = 1
    ):
        """
        Initialize rotator.

        Args:
            bind_rotation: Joint rest orientation, either a quaternion
                          (w, x, y, z) or a 3x3 rotation matrix
                          If None, identity
            pitch_sign: +1 or -1
            yaw_sign: +1 or -1
            roll_sign: +1 or -1
        """
        for name, sign in (("pitch", pitch_sign), ("yaw", yaw_sign), ("roll", roll_sign)):
            if sign not in (1, -1):
                raise ValueError(f"{name}_sign must be +1 or -1, got {sign}")

        if bind_rotation is None:
            self.bind_rotation = IDENTITY_QUATERNION.copy()
        else:
            q = np.asarray(bind_rotation, dtype=np.float64)
            if q.shape == (3, 3):
                q = rotation_to_quaternion_wxyz(q)
            elif q.shape != (4,):
                raise ValueError(
                    f"bind_rotation must be a quaternion or a 3x3 matrix, got shape {q.shape}"
                )
            self.bind_rotation = q / np.linalg.norm(q)

        self.pitch_sign = pitch_sign
        self.yaw_sign = yaw_sign
        self.roll_sign = roll_sign
        self.local_rotation = self.bind_rotation.copy()

    def update_pose(self, pitch_deg: float, yaw_deg: float, roll_deg: float) -> None:
        q = quaternion_multiply(
            quaternion_multiply(
                quaternion_from_axis_angle(LOCAL_X, self.pitch_sign * pitch_deg),
                quaternion_from_axis_angle(LOCAL_Y, self.yaw_sign * yaw_deg),
            ),
            quaternion_from_axis_angle(LOCAL_Z, self.roll_sign * roll_deg),
        )
        self.local_rotation = quaternion_multiply(self.bind_rotation, q)
        logger.debug(
            "Neck update: pitch=%.2f yaw=%.2f roll=%.2f -> q=%s",
            pitch_deg, yaw_deg, roll_deg, np.round(self.local_rotation, 4)
        )

    def get_rotation_matrix(self) -> NDArray[np.float64]:
        """Current joint orientation as a 3x3 matrix."""
        return quaternion_to_rotation(self.local_rotation)
