"""
Shared fixtures: synthetic faces projected through a known camera.
"""

import numpy as np
import pytest

from face2neck.camera import CameraIntrinsics
from face2neck.coordinates import head_rotation_matrix, rotation_matrix_to_vector
from face2neck.face import CORRESPONDENCE_INDICES, FACE_MODEL_3D

FACE_DISTANCE = np.array([0.0, 0.0, 600.0])


@pytest.fixture
def intrinsics():
    """1280x720 camera with the default 960 px focal length."""
    return CameraIntrinsics.from_resolution((1280, 720))


@pytest.fixture
def face_points(intrinsics):
    """
    Factory projecting the 6-point face model under a head pose.

    Returns (6, 2) image points for face_points(pitch, yaw, roll, tvec).
    """
    def _project(pitch=0.0, yaw=0.0, roll=0.0, tvec=FACE_DISTANCE):
        rvec = rotation_matrix_to_vector(head_rotation_matrix(pitch, yaw, roll))
        return intrinsics.project(FACE_MODEL_3D, rvec, tvec)
    return _project


@pytest.fixture
def face_landmarks(face_points):
    """
    Factory building a 68-point landmark array for a head pose.

    Only the correspondence indices carry real positions; the rest are zero.
    """
    def _landmarks(pitch=0.0, yaw=0.0, roll=0.0, tvec=FACE_DISTANCE):
        landmarks = np.zeros((68, 2), dtype=np.float64)
        landmarks[CORRESPONDENCE_INDICES] = face_points(pitch, yaw, roll, tvec)
        return landmarks
    return _landmarks
