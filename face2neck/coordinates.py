"""
Coordinate system definitions and rotation conversions.

This module pins down the axis convention shared by the 3D face model
(face.py) and the Euler extraction, and provides the conversion functions
used between the pose solver and the neck consumer.

Camera frame (OpenCV):
    +X: Right
    +Y: Down
    +Z: Forward (into the scene)

Face model frame:
    +X: Toward image right of a frontal face (subject's left)
    +Y: Up (toward forehead)
    +Z: Out of the face (toward the camera when frontal)

A frontal, upright face therefore has rotation NEUTRAL_ROTATION
(180° about X), and all Euler extraction is relative to it.

Coupling between model frame and extraction happens ONLY in
pose_to_euler(). Everything else treats rotations opaquely.
"""

import cv2
import numpy as np
from typing import Tuple
from numpy.typing import NDArray


class HeadCoordinates:
    """
    Documentation of the head angle convention produced by pose_to_euler().

    Angles are in degrees, all zero for a frontal upright face:
    - pitch: positive when the chin lifts (face turns toward camera -Y, up)
    - yaw: positive when the face turns toward image right
      (rotation about the model's +Y axis)
    - roll: positive when the head tilts so the model's +X axis moves
      toward camera +Y, image down (rotation about the model's -Z axis)

    Pitch and yaw come from the face's forward axis (third column of the
    rotation matrix); roll comes from its first column.
    """

    CAMERA_FORWARD = np.array([0.0, 0.0, 1.0])
    CAMERA_RIGHT = np.array([1.0, 0.0, 0.0])
    CAMERA_UP = np.array([0.0, -1.0, 0.0])


# Rotation of a frontal, upright face model in the camera frame
NEUTRAL_ROTATION = np.array([
    [1.0,  0.0,  0.0],
    [0.0, -1.0,  0.0],
    [0.0,  0.0, -1.0]
], dtype=np.float64)
NEUTRAL_ROTATION.setflags(write=False)


def rotation_vector_to_matrix(rvec: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Axis-angle exponential map (Rodrigues formula).

    Args:
        rvec: Rotation vector, shape (3,) or (3, 1)

    Returns:
        3x3 rotation matrix
    """
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
    return R


def rotation_matrix_to_vector(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Inverse of rotation_vector_to_matrix(); returns shape (3,)."""
    rvec, _ = cv2.Rodrigues(np.asarray(R, dtype=np.float64))
    return rvec.ravel()


def pose_to_euler(rvec: NDArray[np.float64]) -> Tuple[float, float, float]:
    """
    Extract (pitch, yaw, roll) in degrees from a head rotation vector.

    With R the rotation matrix of rvec:
        pitch = asin(-R[1, 2])            (argument clipped to [-1, 1])
        yaw   = atan2(R[0, 2], -R[2, 2])
        roll  = atan2(R[1, 0], R[0, 0])

    See HeadCoordinates for sign conventions. NEUTRAL_ROTATION maps to
    (0, 0, 0).

    Args:
        rvec: Rotation vector (model to camera), shape (3,)

    Returns:
        (pitch_deg, yaw_deg, roll_deg)
    """
    R = rotation_vector_to_matrix(rvec)

    pitch = np.arcsin(np.clip(-R[1, 2], -1.0, 1.0))
    yaw = np.arctan2(R[0, 2], -R[2, 2])
    roll = np.arctan2(R[1, 0], R[0, 0])

    return (
        float(np.degrees(pitch)),
        float(np.degrees(yaw)),
        float(np.degrees(roll)),
    )


def _axis_rotation(axis: int, angle_rad: float) -> NDArray[np.float64]:
    """Right-handed rotation about a single coordinate axis (0=X, 1=Y, 2=Z)."""
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    if axis == 0:
        return np.array([[1, 0, 0], [0, c, -s], [0, s, c]], dtype=np.float64)
    if axis == 1:
        return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]], dtype=np.float64)
    return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]], dtype=np.float64)


def head_rotation_matrix(
    pitch_deg: float = 0.0,
    yaw_deg: float = 0.0,
    roll_deg: float = 0.0
) -> NDArray[np.float64]:
    """
    Build a head rotation from angles in the HeadCoordinates convention.

    R = NEUTRAL_ROTATION @ Ry(yaw) @ Rx(-pitch) @ Rz(-roll), in model axes.

    pose_to_euler() recovers pitch and yaw exactly (|pitch| < 90). Roll is
    recovered exactly only when pitch and yaw are both zero.

    Returns:
        3x3 rotation matrix (model to camera)
    """
    return (
        NEUTRAL_ROTATION
        @ _axis_rotation(1, np.radians(yaw_deg))
        @ _axis_rotation(0, -np.radians(pitch_deg))
        @ _axis_rotation(2, -np.radians(roll_deg))
    )


def align_rotation_vector(
    rvec: NDArray[np.float64],
    reference: NDArray[np.float64]
) -> NDArray[np.float64]:
    """
    Pick the representation of rvec closest to a reference rotation vector.

    A rotation by angle theta about unit axis u is also a rotation by
    (theta - 2*pi) about u. Near 180° the solver can return either
    representation from one frame to the next, so component-wise blending
    needs both vectors on the same side.

    Args:
        rvec: Rotation vector to align, shape (3,)
        reference: Rotation vector to stay close to, shape (3,)

    Returns:
        Equivalent rotation vector, shape (3,)
    """
    rvec = np.asarray(rvec, dtype=np.float64).ravel()
    reference = np.asarray(reference, dtype=np.float64).ravel()

    angle = np.linalg.norm(rvec)
    if angle < 1e-12:
        return rvec

    alternate = rvec * (1.0 - 2.0 * np.pi / angle)
    if np.linalg.norm(alternate - reference) < np.linalg.norm(rvec - reference):
        return alternate
    return rvec


# =============================================================================
# Quaternions (w, x, y, z)
# =============================================================================

def quaternion_from_axis_angle(
    axis: NDArray[np.float64],
    angle_deg: float
) -> NDArray[np.float64]:
    """
    Quaternion for a right-handed rotation of angle_deg about axis.

    Returns:
        Quaternion as [w, x, y, z]
    """
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    half = np.radians(angle_deg) / 2.0
    return np.concatenate([[np.cos(half)], np.sin(half) * axis])


def quaternion_multiply(
    q1: NDArray[np.float64],
    q2: NDArray[np.float64]
) -> NDArray[np.float64]:
    """
    Hamilton product q1 * q2 (apply q2 first, then q1).

    Both quaternions in (w, x, y, z) order.
    """
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ], dtype=np.float64)


def quaternion_to_rotation(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert a (w, x, y, z) quaternion to a 3x3 rotation matrix.

    The quaternion is normalized first.
    """
    w, x, y, z = np.asarray(q, dtype=np.float64) / np.linalg.norm(q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
    ], dtype=np.float64)


def rotation_to_quaternion_wxyz(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert a 3x3 rotation matrix to a unit quaternion (w, x, y, z).

    Divides by the largest of |w|, |x|, |y|, |z|, which keeps half-turn
    rotations accurate. The result has w >= 0.
    """
    R = np.asarray(R, dtype=np.float64)
    m00, m11, m22 = R[0, 0], R[1, 1], R[2, 2]

    # Row k holds 4 * q_k * (w, x, y, z)
    wx = R[2, 1] - R[1, 2]
    wy = R[0, 2] - R[2, 0]
    wz = R[1, 0] - R[0, 1]
    xy = R[0, 1] + R[1, 0]
    xz = R[0, 2] + R[2, 0]
    yz = R[1, 2] + R[2, 1]
    products = np.array([
        [1.0 + m00 + m11 + m22, wx, wy, wz],
        [wx, 1.0 + m00 - m11 - m22, xy, xz],
        [wy, xy, 1.0 - m00 + m11 - m22, yz],
        [wz, xz, yz, 1.0 - m00 - m11 + m22],
    ])

    k = int(np.argmax(np.diag(products)))
    q = products[k] / (2.0 * np.sqrt(products[k, k]))
    if q[0] < 0:
        q = -q
    return q / np.linalg.norm(q)
