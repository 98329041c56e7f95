"""
face2neck - Drive a neck joint from a tracked face in a video stream.

This package turns per-frame 68-point face landmarks into a stable
(pitch, yaw, roll) head orientation:
- Robust 6-point pose solve against a generic 3D face model
- Stillness gate, low-pass, deadband and sliding median stabilization
- Per-axis offset and clamp
- Delivery to a neck joint relative to its bind pose

Example usage:
    from face2neck import Config, FacePosePipeline

    pipeline = FacePosePipeline.from_config(Config(), image_size=(1280, 720))
    result = pipeline.process_frame(frame)
    print(result.pitch, result.yaw, result.roll)
"""

__version__ = "0.1.0"

from .camera import CameraIntrinsics
from .config import Config
from .consumer import NeckRotator, PoseConsumer
from .coordinates import head_rotation_matrix, pose_to_euler
from .face import (
    FACE_MODEL_3D,
    DegenerateLandmarksError,
    FaceLandmarkIngest,
    select_correspondences,
)
from .pipeline import FacePosePipeline, FrameResult
from .shaper import AngleShaper, AxisShaping
from .solver import PoseSolution, solve_pose
from .stabilizer import FrameOutcome, PoseStabilizer, StabilizerState, TrackingState

__all__ = [
    "AngleShaper",
    "AxisShaping",
    "CameraIntrinsics",
    "Config",
    "DegenerateLandmarksError",
    "FACE_MODEL_3D",
    "FaceLandmarkIngest",
    "FacePosePipeline",
    "FrameOutcome",
    "FrameResult",
    "NeckRotator",
    "PoseConsumer",
    "PoseSolution",
    "PoseStabilizer",
    "StabilizerState",
    "TrackingState",
    "head_rotation_matrix",
    "pose_to_euler",
    "select_correspondences",
    "solve_pose",
]
