"""
Temporal stabilization of per-frame head pose.

PoseStabilizer turns the 6 correspondence points of each frame into a
stabilized (pitch, yaw, roll) triple:

1. Stillness gate: if tracking and no point moved by stillness_px or more
   since the last attempted solve, emit (0, 0, 0) and change nothing.
2. Solve: robust PnP seeded with the stored pose. On failure emit
   (0, 0, 0) and leave the stored pose and history untouched.
3. Low-pass: the first successful solve is taken as-is (NO_PRIOR_POSE ->
   TRACKING); later solves are blended in with factor alpha.
4. Euler extraction of the blended rotation (coordinates.pose_to_euler).
5. Deadband per axis.
6. Sliding-window median per axis.

All retained state lives in a single StabilizerState owned by the
stabilizer, so tests can construct and inspect it directly.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .camera import CameraIntrinsics
from .coordinates import align_rotation_vector, pose_to_euler
from .face import FACE_MODEL_3D
from .filters import AngleHistory, apply_deadband, low_pass, max_displacement
from .solver import PoseSolution, solve_pose

logger = logging.getLogger(__name__)

NEUTRAL_ANGLES = (0.0, 0.0, 0.0)

Angles = Tuple[float, float, float]
PoseSolver = Callable[..., PoseSolution]


class TrackingState(Enum):
    """Whether the stored pose holds a meaningful estimate."""
    NO_PRIOR_POSE = "no_prior_pose"
    TRACKING = "tracking"


class FrameOutcome(Enum):
    """What happened to a frame. Only POSE updates the filter state."""
    POSE = "pose"
    STILL = "still"
    SOLVE_FAILED = "solve_failed"
    NO_FACE = "no_face"


@dataclass
class StabilizerState:
    """
    Filter state carried across frames.

    - mode: NO_PRIOR_POSE until the first successful solve, then TRACKING
      for good
    - rvec, tvec: low-passed pose (RawPose), camera coordinates
    - snapshot: correspondence points of the last attempted solve
    - history: median window of post-deadband angles
    """
    history: AngleHistory
    mode: TrackingState = TrackingState.NO_PRIOR_POSE
    rvec: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    tvec: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    snapshot: Optional[NDArray[np.float64]] = None

    @classmethod
    def initial(cls, median_window: int = 15) -> "StabilizerState":
        return cls(history=AngleHistory(median_window))

    def copy(self) -> "StabilizerState":
        return StabilizerState(
            history=self.history.copy(),
            mode=self.mode,
            rvec=self.rvec.copy(),
            tvec=self.tvec.copy(),
            snapshot=None if self.snapshot is None else self.snapshot.copy(),
        )


class PoseStabilizer:
    """
    Stillness gate, pose solve, low-pass, Euler, deadband and median chain.

    Example:
        stabilizer = PoseStabilizer(CameraIntrinsics.from_resolution((1280, 720)))
        angles, outcome = stabilizer.update(select_correspondences(landmarks))
    """

    def __init__(
        self,
        intrinsics: CameraIntrinsics,
        alpha: float = 0.2,
        deadband_deg: float = 0.4,
        median_window: int = 15,
        stillness_px: float = 1.0,
        iterations: int = 100,
        reprojection_error: float = 4.0,
        confidence: float = 0.99,
        model_points: NDArray[np.float64] = FACE_MODEL_3D,
        solver: PoseSolver = solve_pose,
        state: Optional[StabilizerState] = None
    ):
        """
        Initialize stabilizer.

        Args:
            intrinsics: Camera intrinsics for the pose solver
            alpha: Low-pass factor in (0, 1]; lower is smoother
            deadband_deg: Angles with smaller magnitude are zeroed
            median_window: Median filter window in frames
            stillness_px: Frames moving less than this are skipped
            iterations: RANSAC iteration cap
            reprojection_error: RANSAC inlier threshold in pixels
            confidence: RANSAC confidence
            model_points: 3D points matching the correspondence order
            solver: Pose solver, same signature as solve_pose()
            state: Initial filter state (default: fresh NO_PRIOR_POSE)
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")

        self.intrinsics = intrinsics
        self.alpha = alpha
        self.deadband_deg = deadband_deg
        self.stillness_px = stillness_px
        self.iterations = iterations
        self.reprojection_error = reprojection_error
        self.confidence = confidence
        self.model_points = np.asarray(model_points, dtype=np.float64)
        self._solve = solver
        self.state = state if state is not None else StabilizerState.initial(median_window)

    @property
    def tracking(self) -> bool:
        return self.state.mode is TrackingState.TRACKING

    def update(self, image_points: NDArray[np.float64]) -> Tuple[Angles, FrameOutcome]:
        """
        Process one frame's correspondence points.

        Args:
            image_points: Points matching model_points, shape (6, 2)

        Returns:
            ((pitch, yaw, roll) in degrees, outcome). Angles are
            NEUTRAL_ANGLES unless outcome is FrameOutcome.POSE.
        """
        state = self.state
        points = np.asarray(image_points, dtype=np.float64)

        if self.tracking and state.snapshot is not None:
            moved = max_displacement(points, state.snapshot)
            if moved < self.stillness_px:
                logger.debug("Still frame (max displacement %.3f px)", moved)
                return NEUTRAL_ANGLES, FrameOutcome.STILL

        state.snapshot = points.copy()

        solution = self._solve(
            self.model_points,
            points,
            self.intrinsics,
            seed_rvec=state.rvec,
            seed_tvec=state.tvec,
            seed_valid=self.tracking,
            iterations=self.iterations,
            reprojection_error=self.reprojection_error,
            confidence=self.confidence
        )
        if not solution.success:
            return NEUTRAL_ANGLES, FrameOutcome.SOLVE_FAILED

        self._blend(solution)

        pitch, yaw, roll = pose_to_euler(state.rvec)
        pitch = apply_deadband(pitch, self.deadband_deg)
        yaw = apply_deadband(yaw, self.deadband_deg)
        roll = apply_deadband(roll, self.deadband_deg)

        state.history.push(pitch, yaw, roll)
        angles = state.history.median()

        logger.debug(
            "Pose: raw=(%.2f, %.2f, %.2f) median=(%.2f, %.2f, %.2f)",
            pitch, yaw, roll, *angles
        )
        return angles, FrameOutcome.POSE

    def _blend(self, solution: PoseSolution) -> None:
        """Fold a successful solve into the stored pose."""
        state = self.state
        rvec = np.asarray(solution.rvec, dtype=np.float64).ravel()
        tvec = np.asarray(solution.tvec, dtype=np.float64).ravel()

        if state.mode is TrackingState.NO_PRIOR_POSE:
            state.rvec = rvec.copy()
            state.tvec = tvec.copy()
            state.mode = TrackingState.TRACKING
            logger.debug("First pose lock: rvec=%s tvec=%s", rvec, tvec)
            return

        rvec = align_rotation_vector(rvec, state.rvec)
        state.rvec = low_pass(state.rvec, rvec, self.alpha)
        state.tvec = low_pass(state.tvec, tvec, self.alpha)
