"""
Face model geometry and 2D-3D correspondence selection.

This module provides:
- The 6-point 3D face model used for perspective pose solving
- The fixed 68-point landmark indices paired with that model
- Correspondence selection from a full landmark array
- FaceLandmarkIngest: Convert external face landmark formats to the 68-point layout

The 68 keypoints follow the iBUG 300-W / dlib convention (identical to
OpenPose Face 0-67):
  0-16:  Jawline contour (8 = chin)
  17-26: Eyebrows
  27-35: Nose (30 = nose tip)
  36-41: Subject's right eye (36 = outer corner, image left)
  42-47: Subject's left eye (45 = outer corner, image right)
  48-67: Lips (48 = right mouth corner, 54 = left mouth corner)
"""

import json
import logging
import numpy as np
from pathlib import Path
from typing import Tuple, List, Union
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class DegenerateLandmarksError(ValueError):
    """Landmark array too short for the fixed correspondence indices."""


# =============================================================================
# 3D Face Model (6 points)
# =============================================================================
# Coordinate system: face-centered, +X toward image right of a frontal face
# (subject's right eye is at -X), +Y up (toward forehead), +Z out of the face
# (toward the viewer). Units: approximately millimeters.
#
# A frontal, upright face in front of an OpenCV camera (+Z forward, +Y down)
# therefore solves to a 180° rotation about X. See coordinates.pose_to_euler.

FACE_MODEL_3D = np.array([
    (  0.0,   0.0,   0.0),  # nose tip
    (  0.0, -63.0, -12.0),  # chin
    (-35.0,  32.0, -26.0),  # right eye outer corner (image left)
    ( 35.0,  32.0, -26.0),  # left eye outer corner (image right)
    (-28.0, -28.0, -24.0),  # right mouth corner
    ( 28.0, -28.0, -24.0),  # left mouth corner
], dtype=np.float64)
FACE_MODEL_3D.setflags(write=False)


# =============================================================================
# Correspondence Indices
# =============================================================================
# Indices into the 68-point landmark array, in the same order as
# FACE_MODEL_3D:
#   Nose tip:              30
#   Chin:                   8
#   Right eye outer:       36
#   Left eye outer:        45
#   Right mouth corner:    48
#   Left mouth corner:     54

CORRESPONDENCE_INDICES = [30, 8, 36, 45, 48, 54]
CORRESPONDENCE_NAMES = [
    "nose_tip", "chin", "right_eye_outer", "left_eye_outer",
    "right_mouth", "left_mouth",
]

# Minimum landmark array length accepted by select_correspondences()
MIN_LANDMARK_COUNT = max(CORRESPONDENCE_INDICES) + 1


def select_correspondences(
    landmarks: Union[List[List[float]], NDArray[np.float64]]
) -> NDArray[np.float64]:
    """
    Pick the 6 image points matching FACE_MODEL_3D from a landmark array.

    Args:
        landmarks: Landmark points in pixels, shape (N, 2) or (N, 3) with
            N >= 55. Any third column is ignored.

    Returns:
        Image points, shape (6, 2), float64, ordered like FACE_MODEL_3D

    Raises:
        DegenerateLandmarksError: If the array is too short or not 2D
    """
    pts = np.asarray(landmarks, dtype=np.float64)

    if pts.ndim != 2 or pts.shape[1] < 2:
        raise DegenerateLandmarksError(
            f"Expected landmarks shape (N, 2), got {pts.shape}"
        )

    if pts.shape[0] < MIN_LANDMARK_COUNT:
        raise DegenerateLandmarksError(
            f"Landmark array has {pts.shape[0]} points, correspondence "
            f"indices require at least {MIN_LANDMARK_COUNT}"
        )

    return pts[CORRESPONDENCE_INDICES, :2].copy()


# =============================================================================
# Face Landmark Ingestion
# =============================================================================
# Converts external face landmark formats to the 68-point pixel layout.

# MediaPipe Face Mesh 478 → 68-point index mapping (MaixPy convention).
# Each entry is a single MediaPipe vertex index that maps to the
# corresponding 68-point keypoint.
MEDIAPIPE_TO_68 = [
    # Jawline 0-16
    162, 234, 93, 58, 172, 136, 149, 148, 152, 377, 378, 365, 397, 288, 323, 454, 389,
    # Right eyebrow 17-21
    71, 63, 105, 66, 107,
    # Left eyebrow 22-26
    336, 296, 334, 293, 301,
    # Nose bridge 27-30
    168, 197, 5, 4,
    # Nose bottom 31-35
    75, 97, 2, 326, 305,
    # Right eye 36-41
    33, 160, 158, 133, 153, 144,
    # Left eye 42-47
    362, 385, 387, 263, 373, 380,
    # Outer lip 48-59
    61, 39, 37, 0, 267, 269, 291, 405, 314, 17, 84, 181,
    # Inner lip 60-67
    78, 82, 13, 312, 308, 317, 14, 87,
]


class FaceLandmarkIngest:
    """
    Convert external face landmark formats to the 68-point layout.

    Supported input formats:
    - "mediapipe": MediaPipe Face Mesh (468 or 478 normalized landmarks)
    - "dlib68": 68 pixel-space points, already in the target layout

    The output is always (68, 2) float64 pixel coordinates.

    Usage:
        # From a JSON landmark file:
        landmarks = FaceLandmarkIngest.from_json("landmarks.json")

        # From raw MediaPipe landmarks (list of [x, y, z]):
        landmarks = FaceLandmarkIngest.from_mediapipe(mp_landmarks, (1280, 720))
    """

    @staticmethod
    def from_mediapipe(
        landmarks: Union[List[List[float]], NDArray[np.float32]],
        image_size: Tuple[int, int],
        offset: Tuple[float, float] = (0.0, 0.0),
    ) -> NDArray[np.float64]:
        """
        Convert MediaPipe Face Mesh landmarks to 68 pixel-space points.

        Args:
            landmarks: MediaPipe face landmarks, shape (N, 2) or (N, 3)
                where N is 468 or 478, normalized to [0, 1] of image_size.
            image_size: (width, height) of the image the landmarks were
                normalized against.
            offset: (x, y) added after denormalizing, for landmarks
                computed on a crop of a larger frame.

        Returns:
            68-point landmarks, shape (68, 2), float64.

        Raises:
            ValueError: If landmarks have wrong shape or too few points.
        """
        lm = np.asarray(landmarks, dtype=np.float64)

        if lm.ndim != 2 or lm.shape[1] not in (2, 3):
            raise ValueError(
                f"Expected landmarks shape (N, 3), got {lm.shape}"
            )

        n = lm.shape[0]
        if n < 468:
            raise ValueError(
                f"MediaPipe landmarks require at least 468 points, got {n}"
            )

        w, h = image_size
        points = lm[MEDIAPIPE_TO_68, :2] * np.array([w, h], dtype=np.float64)
        points += np.asarray(offset, dtype=np.float64)

        return points

    @staticmethod
    def from_json(filepath: Union[str, Path]) -> NDArray[np.float64]:
        """
        Load face landmarks from a JSON file and convert to 68 points.

        Auto-detects the source format from the JSON "source" field.

        Supported JSON formats:
        - MediaPipe: {"source": "mediapipe", "landmarks": [[x,y,z], ...],
                      "image_size": [w, h]}
        - dlib 68:   {"source": "dlib68", "landmarks": [[x,y], ...]}

        Args:
            filepath: Path to JSON file.

        Returns:
            68-point landmarks, shape (68, 2), float64.

        Raises:
            ValueError: If format is unrecognized or data is invalid.
            FileNotFoundError: If file does not exist.
        """
        filepath = Path(filepath)
        with open(filepath, 'r') as f:
            data = json.load(f)

        source = data.get("source", "").lower()
        raw_landmarks = data.get("landmarks")
        if raw_landmarks is None:
            raise ValueError(f"Landmark JSON missing 'landmarks' field in {filepath}")

        if source == "mediapipe":
            image_size = data.get("image_size")
            if image_size is None:
                raise ValueError(
                    f"MediaPipe JSON missing 'image_size' field in {filepath}"
                )
            logger.debug(
                "Loading MediaPipe JSON from %s: %d landmarks, image_size=%s",
                filepath, len(raw_landmarks), image_size
            )
            return FaceLandmarkIngest.from_mediapipe(
                raw_landmarks, image_size=tuple(image_size)
            )
        elif source == "dlib68":
            points = np.asarray(raw_landmarks, dtype=np.float64)
            if points.ndim != 2 or points.shape != (68, 2):
                raise ValueError(
                    f"dlib68 landmarks must have shape (68, 2), got {points.shape}"
                )
            return points
        else:
            raise ValueError(
                f"Unsupported face landmark source: '{source}' in {filepath}. "
                f"Supported: 'mediapipe', 'dlib68'"
            )


def landmark_bounds(
    landmarks: NDArray[np.float64]
) -> Tuple[int, int, int, int]:
    """
    Axis-aligned bounding box of a landmark set.

    Returns:
        (x, y, width, height) in whole pixels
    """
    x_min, y_min = np.floor(landmarks[:, :2].min(axis=0))
    x_max, y_max = np.ceil(landmarks[:, :2].max(axis=0))
    return int(x_min), int(y_min), int(x_max - x_min), int(y_max - y_min)
