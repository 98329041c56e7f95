"""
Camera intrinsics for perspective pose solving.

This module provides a CameraIntrinsics class that encapsulates the pinhole
parameters (focal length, principal point, image size) and lens distortion
used by the pose solver.

Intrinsics are fixed for a session and derived from the expected frame
resolution. The camera follows the OpenCV convention: +X right, +Y down,
looking down +Z.
"""

import cv2
import numpy as np
from typing import Tuple, Optional, Sequence
from numpy.typing import NDArray

# Focal length as a fraction of image width (960 px for a 1280 px frame)
DEFAULT_FOCAL_RATIO = 0.75


class CameraIntrinsics:
    """
    Pinhole camera intrinsics with optional lens distortion.

    - focal_length: (fx, fy) in pixels
    - principal_point: (cx, cy) in pixels (image center by default)
    - image_size: (width, height) in pixels
    - distortion: OpenCV distortion coefficients (k1, k2, p1, p2, k3),
      all zero for an idealized pinhole model
    """

    def __init__(
        self,
        focal_length: Tuple[float, float],
        image_size: Tuple[int, int],
        principal_point: Optional[Tuple[float, float]] = None,
        distortion: Optional[Sequence[float]] = None
    ):
        """
        Initialize intrinsics.

        Args:
            focal_length: (fx, fy) in pixels
            image_size: (width, height) in pixels
            principal_point: (cx, cy) in pixels
                            If None, defaults to image center
            distortion: Distortion coefficients
                       If None, defaults to five zeros
        """
        self.fx, self.fy = (float(f) for f in focal_length)
        self.width, self.height = image_size

        if principal_point is None:
            self.cx = self.width / 2.0
            self.cy = self.height / 2.0
        else:
            self.cx, self.cy = (float(c) for c in principal_point)

        if distortion is None:
            self.distortion = np.zeros(5, dtype=np.float64)
        else:
            self.distortion = np.asarray(distortion, dtype=np.float64).ravel()

    @classmethod
    def from_resolution(
        cls,
        image_size: Tuple[int, int],
        focal_length: Optional[float] = None,
        principal_point: Optional[Tuple[float, float]] = None,
        distortion: Optional[Sequence[float]] = None
    ) -> "CameraIntrinsics":
        """
        Create intrinsics for an expected frame resolution.

        Args:
            image_size: (width, height) in pixels
            focal_length: Focal length in pixels (square pixels)
                         If None, DEFAULT_FOCAL_RATIO * width
            principal_point: (cx, cy), default image center
            distortion: Distortion coefficients, default all zero

        Returns:
            CameraIntrinsics instance
        """
        if focal_length is None:
            focal_length = DEFAULT_FOCAL_RATIO * image_size[0]

        return cls(
            focal_length=(focal_length, focal_length),
            image_size=image_size,
            principal_point=principal_point,
            distortion=distortion
        )

    @classmethod
    def from_fov(
        cls,
        fov_deg: float,
        image_size: Tuple[int, int],
        is_horizontal_fov: bool = True,
        principal_point: Optional[Tuple[float, float]] = None,
        distortion: Optional[Sequence[float]] = None
    ) -> "CameraIntrinsics":
        """
        Create intrinsics from a lens field of view.

        Args:
            fov_deg: Field of view in degrees
            image_size: (width, height) in pixels
            is_horizontal_fov: If True, fov_deg spans the frame width
                              If False, fov_deg spans the frame height
            principal_point: (cx, cy), default image center
            distortion: Distortion coefficients, default all zero

        Returns:
            CameraIntrinsics instance
        """
        width, height = image_size
        span = width if is_horizontal_fov else height
        f = (span / 2.0) / np.tan(np.radians(fov_deg / 2.0))

        return cls(
            focal_length=(f, f),
            image_size=image_size,
            principal_point=principal_point,
            distortion=distortion
        )

    def get_intrinsics_matrix(self) -> NDArray[np.float64]:
        """
        Get camera intrinsics as 3x3 matrix.

        Returns:
            Intrinsic matrix K:
            [[fx,  0, cx],
             [ 0, fy, cy],
             [ 0,  0,  1]]
        """
        K = np.array([
            [self.fx, 0.0, self.cx],
            [0.0, self.fy, self.cy],
            [0.0, 0.0, 1.0]
        ], dtype=np.float64)
        return K

    def project(
        self,
        points_3d: NDArray[np.float64],
        rvec: NDArray[np.float64],
        tvec: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """
        Project model points into the image under a pose.

        Args:
            points_3d: Model points, shape (N, 3)
            rvec: Rotation vector (axis-angle), shape (3,)
            tvec: Translation vector, shape (3,)

        Returns:
            2D points in image coordinates, shape (N, 2)
        """
        projected, _ = cv2.projectPoints(
            np.asarray(points_3d, dtype=np.float64).reshape(-1, 1, 3),
            np.asarray(rvec, dtype=np.float64).reshape(3, 1),
            np.asarray(tvec, dtype=np.float64).reshape(3, 1),
            self.get_intrinsics_matrix(),
            self.distortion
        )
        return projected.reshape(-1, 2)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"CameraIntrinsics(focal=({self.fx:.1f}, {self.fy:.1f}), "
            f"center=({self.cx:.1f}, {self.cy:.1f}), "
            f"size=({self.width}, {self.height}))"
        )
