"""
Robust perspective pose solving.

Wraps OpenCV's RANSAC PnP solver: minimal subsets of the 2D-3D
correspondences are sampled (up to a fixed iteration cap), candidate poses
are scored by reprojection error, and the best pose is refined on its
inlier set. An optional seed pose (the previous frame's estimate) is used
as the initial guess, which biases the result toward temporal continuity
on near-planar, ambiguous geometry.

solve_pose() is a pure function: seeds are copied, never written back.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import cv2
import numpy as np
from numpy.typing import NDArray

from .camera import CameraIntrinsics

logger = logging.getLogger(__name__)

# Fewest inliers for a pose to count as a successful solve
MIN_INLIERS = 4


@dataclass
class PoseSolution:
    """Result of a single solve_pose() call."""
    rvec: NDArray[np.float64]
    tvec: NDArray[np.float64]
    success: bool
    inliers: NDArray[np.int64] = field(
        default_factory=lambda: np.zeros(0, dtype=np.int64)
    )

    @classmethod
    def failed(cls) -> "PoseSolution":
        return cls(rvec=np.zeros(3), tvec=np.zeros(3), success=False)


def solve_pose(
    model_points: NDArray[np.float64],
    image_points: NDArray[np.float64],
    intrinsics: CameraIntrinsics,
    seed_rvec: Optional[NDArray[np.float64]] = None,
    seed_tvec: Optional[NDArray[np.float64]] = None,
    seed_valid: bool = False,
    iterations: int = 100,
    reprojection_error: float = 4.0,
    confidence: float = 0.99
) -> PoseSolution:
    """
    Solve the model-to-camera pose from 2D-3D correspondences.

    Args:
        model_points: 3D model points, shape (N, 3), N >= 4
        image_points: Matching 2D image points in pixels, shape (N, 2)
        intrinsics: Camera intrinsics and distortion
        seed_rvec: Previous rotation vector, used when seed_valid
        seed_tvec: Previous translation vector, used when seed_valid
        seed_valid: Whether the seed holds a meaningful previous estimate
        iterations: RANSAC iteration cap
        reprojection_error: Inlier threshold in pixels
        confidence: Target probability of sampling an all-inlier subset

    Returns:
        PoseSolution. success is False when no candidate reaches
        MIN_INLIERS inliers or OpenCV rejects the input.
    """
    object_pts = np.ascontiguousarray(model_points, dtype=np.float64).reshape(-1, 1, 3)
    image_pts = np.ascontiguousarray(image_points, dtype=np.float64).reshape(-1, 1, 2)

    use_guess = bool(seed_valid and seed_rvec is not None and seed_tvec is not None)
    rvec_init = np.array(seed_rvec, dtype=np.float64).reshape(3, 1) if use_guess else None
    tvec_init = np.array(seed_tvec, dtype=np.float64).reshape(3, 1) if use_guess else None

    try:
        ok, rvec, tvec, inliers = cv2.solvePnPRansac(
            object_pts,
            image_pts,
            intrinsics.get_intrinsics_matrix(),
            intrinsics.distortion,
            rvec=rvec_init,
            tvec=tvec_init,
            useExtrinsicGuess=use_guess,
            iterationsCount=iterations,
            reprojectionError=reprojection_error,
            confidence=confidence,
            flags=cv2.SOLVEPNP_ITERATIVE
        )
    except cv2.error as e:
        logger.warning("Pose solver rejected input: %s", e)
        return PoseSolution.failed()

    if not ok or inliers is None or len(inliers) < MIN_INLIERS:
        logger.debug(
            "Pose solve failed: ok=%s, inliers=%s",
            ok, None if inliers is None else len(inliers)
        )
        return PoseSolution.failed()

    inlier_idx = np.asarray(inliers, dtype=np.int64).ravel()
    logger.debug("Pose solved with %d/%d inliers", len(inlier_idx), len(image_pts))

    return PoseSolution(
        rvec=np.asarray(rvec, dtype=np.float64).ravel(),
        tvec=np.asarray(tvec, dtype=np.float64).ravel(),
        success=True,
        inliers=inlier_idx
    )


def reprojection_errors(
    model_points: NDArray[np.float64],
    image_points: NDArray[np.float64],
    rvec: NDArray[np.float64],
    tvec: NDArray[np.float64],
    intrinsics: CameraIntrinsics
) -> NDArray[np.float64]:
    """
    Per-point pixel distance between observed and reprojected points.

    Returns:
        Errors in pixels, shape (N,)
    """
    projected = intrinsics.project(model_points, rvec, tvec)
    return np.linalg.norm(projected - np.asarray(image_points, dtype=np.float64), axis=1)
