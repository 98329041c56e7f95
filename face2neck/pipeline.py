"""
High-level pipeline orchestrating all components.

This module provides the FacePosePipeline class which ties together, once
per video frame:
- Face detection (primary landmark source, then the coarse fallback)
- Correspondence selection
- Pose stabilization
- Angle shaping
- Delivery to the pose consumer

This is the main API for users of the library.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .camera import CameraIntrinsics
from .config import Config
from .consumer import NeckRotator, PoseConsumer
from .face import select_correspondences
from .landmarks import (
    FaceDetector,
    HaarFaceDetector,
    LandmarkSource,
    MediaPipeLandmarkSource,
)
from .shaper import AngleShaper, AxisShaping
from .stabilizer import NEUTRAL_ANGLES, FrameOutcome, PoseStabilizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """Shaped angles delivered for one frame, and why."""
    pitch: float
    yaw: float
    roll: float
    outcome: FrameOutcome

    @property
    def angles(self) -> Tuple[float, float, float]:
        return self.pitch, self.yaw, self.roll


class FacePosePipeline:
    """
    Per-frame face pose pipeline.

    Landmark source -> correspondences -> stabilizer -> shaper -> consumer.
    Every processed frame produces exactly one consumer update, including
    frames with no face, a failed solve or no motion; those deliver the
    neutral angles after offset and clamp. A landmark array too short for
    the correspondence indices raises DegenerateLandmarksError and the
    frame is dropped without a consumer update.

    Example:
        pipeline = FacePosePipeline.from_config(Config(), image_size=(1280, 720))
        result = pipeline.process_frame(frame)
        print(result.angles, result.outcome)
    """

    def __init__(
        self,
        stabilizer: PoseStabilizer,
        shaper: Optional[AngleShaper] = None,
        consumer: Optional[PoseConsumer] = None,
        source: Optional[LandmarkSource] = None,
        fallback: Optional[FaceDetector] = None
    ):
        """
        Initialize pipeline.

        Args:
            stabilizer: Pose stabilizer (owns all cross-frame state)
            shaper: Output shaping, default AngleShaper()
            consumer: Receiver of shaped angles, or None
            source: Primary face and landmark detector; required for
                process_frame(), unused by process_landmarks()
            fallback: Coarse face detector used when source finds no face
        """
        self.stabilizer = stabilizer
        self.shaper = shaper if shaper is not None else AngleShaper()
        self.consumer = consumer
        self.source = source
        self.fallback = fallback

    @classmethod
    def from_config(
        cls,
        config: Config,
        image_size: Optional[Tuple[int, int]] = None,
        source: Optional[LandmarkSource] = None,
        fallback: Optional[FaceDetector] = None,
        consumer: Optional[PoseConsumer] = None,
        detectors: bool = True
    ) -> "FacePosePipeline":
        """
        Create pipeline from configuration.

        Args:
            config: Complete configuration
            image_size: Actual (width, height) of frames
                       If None, config.capture.resolution
            source: Landmark source; if None, a MediaPipeLandmarkSource
                   is created from config.landmarks
            fallback: Fallback detector; if None and
                     config.landmarks.haar_fallback, a HaarFaceDetector
            consumer: Pose consumer; if None, a NeckRotator from config.neck
            detectors: If False, no default detectors are created; the
                      pipeline then only serves process_landmarks()

        Returns:
            FacePosePipeline instance
        """
        if image_size is None:
            image_size = config.capture.resolution

        if config.camera.focal_length is None and config.camera.fov_deg is not None:
            intrinsics = CameraIntrinsics.from_fov(
                config.camera.fov_deg,
                image_size,
                principal_point=config.camera.principal_point,
                distortion=config.camera.distortion
            )
        else:
            intrinsics = CameraIntrinsics.from_resolution(
                image_size,
                focal_length=config.camera.focal_length,
                principal_point=config.camera.principal_point,
                distortion=config.camera.distortion
            )
        logger.debug("Camera: %s", intrinsics)

        stabilizer = PoseStabilizer(
            intrinsics,
            alpha=config.filter.alpha,
            deadband_deg=config.filter.deadband_deg,
            median_window=config.filter.median_window,
            stillness_px=config.filter.stillness_px,
            iterations=config.solver.iterations,
            reprojection_error=config.solver.reprojection_error,
            confidence=config.solver.confidence
        )

        shaper = AngleShaper(
            pitch=AxisShaping(
                config.shaping.pitch.offset_deg,
                config.shaping.pitch.limit,
                tuple(config.shaping.pitch.range_deg)
            ),
            yaw=AxisShaping(
                config.shaping.yaw.offset_deg,
                config.shaping.yaw.limit,
                tuple(config.shaping.yaw.range_deg)
            ),
            roll=AxisShaping(
                config.shaping.roll.offset_deg,
                config.shaping.roll.limit,
                tuple(config.shaping.roll.range_deg)
            )
        )

        if consumer is None:
            consumer = NeckRotator(
                bind_rotation=config.neck.bind_rotation,
                pitch_sign=config.neck.pitch_sign,
                yaw_sign=config.neck.yaw_sign,
                roll_sign=config.neck.roll_sign
            )

        if source is None and detectors:
            source = MediaPipeLandmarkSource(
                model_path=config.landmarks.model_path,
                min_confidence=config.landmarks.min_confidence
            )

        if fallback is None and detectors and config.landmarks.haar_fallback:
            fallback = HaarFaceDetector(config.landmarks.haar_cascade)

        return cls(stabilizer, shaper, consumer, source, fallback)

    def process_frame(self, image: NDArray[np.uint8]) -> FrameResult:
        """
        Run the full pipeline on one video frame.

        Args:
            image: BGR frame, shape (H, W, 3)

        Returns:
            FrameResult with the shaped angles sent to the consumer

        Raises:
            DegenerateLandmarksError: If the landmark source returns too
                few points (no consumer update for this frame)
        """
        if self.source is None:
            raise ValueError("process_frame() requires a landmark source")

        faces = self.source.detect(image)
        if not faces and self.fallback is not None:
            faces = self.fallback.detect(image)
            if faces:
                logger.debug("Fallback detector found face at %s", faces[0])

        if not faces:
            logger.debug("No face detected")
            return self._deliver(NEUTRAL_ANGLES, FrameOutcome.NO_FACE)

        landmarks = self.source.landmarks(image, faces[0])
        if landmarks is None:
            logger.debug("No landmarks for face at %s", faces[0])
            return self._deliver(NEUTRAL_ANGLES, FrameOutcome.NO_FACE)

        return self.process_landmarks(landmarks)

    def process_landmarks(self, landmarks: NDArray[np.float64]) -> FrameResult:
        """
        Run the pipeline from an already extracted landmark array.

        Args:
            landmarks: 68-point landmarks in pixels, shape (N, 2)

        Returns:
            FrameResult with the shaped angles sent to the consumer

        Raises:
            DegenerateLandmarksError: If the array is too short
        """
        points = select_correspondences(landmarks)
        angles, outcome = self.stabilizer.update(points)
        return self._deliver(angles, outcome)

    def _deliver(
        self,
        angles: Tuple[float, float, float],
        outcome: FrameOutcome
    ) -> FrameResult:
        pitch, yaw, roll = self.shaper.shape(*angles)
        if self.consumer is not None:
            self.consumer.update_pose(pitch, yaw, roll)
        return FrameResult(pitch, yaw, roll, outcome)

    def close(self) -> None:
        """Release detector resources."""
        if self.source is not None:
            self.source.close()
