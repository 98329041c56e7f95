"""
Configuration management for face2neck.

Handles:
- Command-line argument parsing
- YAML config file loading
- Configuration validation
- Merging configs with defaults
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, List, Dict, Any, Sequence
import argparse

import numpy as np
import yaml


@dataclass
class CaptureConfig:
    """Video capture configuration."""
    source: str = "0"  # Camera index or video file path
    resolution: Tuple[int, int] = (1280, 720)
    max_frames: Optional[int] = None  # None = run until stream ends


@dataclass
class CameraConfig:
    """Camera intrinsics configuration."""
    focal_length: Optional[float] = None  # None = from fov_deg, else 0.75 * frame width
    fov_deg: Optional[float] = None  # Horizontal field of view; ignored if focal_length is set
    principal_point: Optional[Tuple[float, float]] = None  # None = image center
    distortion: List[float] = field(default_factory=lambda: [0.0] * 5)


@dataclass
class SolverConfig:
    """RANSAC pose solver configuration."""
    iterations: int = 100
    reprojection_error: float = 4.0
    confidence: float = 0.99


@dataclass
class FilterConfig:
    """Temporal stabilizer configuration."""
    alpha: float = 0.2
    deadband_deg: float = 0.4
    median_window: int = 15
    stillness_px: float = 1.0


@dataclass
class AxisConfig:
    """Offset and clamp for one output axis."""
    offset_deg: float = 0.0
    limit: bool = True
    range_deg: Tuple[float, float] = (-90.0, 90.0)


@dataclass
class ShapingConfig:
    """Per-axis output shaping."""
    pitch: AxisConfig = field(default_factory=lambda: AxisConfig(range_deg=(-60.0, 60.0)))
    yaw: AxisConfig = field(default_factory=lambda: AxisConfig(range_deg=(-90.0, 90.0)))
    roll: AxisConfig = field(default_factory=lambda: AxisConfig(range_deg=(-40.0, 40.0)))


@dataclass
class NeckConfig:
    """Neck joint consumer configuration."""
    pitch_sign: int = 1
    yaw_sign: int = 1
    roll_sign: int = 1
    bind_rotation: Sequence = (1.0, 0.0, 0.0, 0.0)  # w, x, y, z or 3x3 rows


@dataclass
class LandmarkConfig:
    """Face and landmark detector configuration."""
    model_path: Optional[str] = None  # None = download MediaPipe model to cache
    min_confidence: float = 0.5
    haar_fallback: bool = True
    haar_cascade: Optional[str] = None  # None = OpenCV's bundled cascade


_AXIS_DEFAULTS = {
    "pitch": (-60.0, 60.0),
    "yaw": (-90.0, 90.0),
    "roll": (-40.0, 40.0),
}


@dataclass
class Config:
    """Complete configuration."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    shaping: ShapingConfig = field(default_factory=ShapingConfig)
    neck: NeckConfig = field(default_factory=NeckConfig)
    landmarks: LandmarkConfig = field(default_factory=LandmarkConfig)

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: Naming the first invalid field
        """
        if not 0.0 < self.filter.alpha <= 1.0:
            raise ValueError(f"filter.alpha must be in (0, 1], got {self.filter.alpha}")
        if self.filter.median_window < 1:
            raise ValueError(f"filter.median_window must be >= 1, got {self.filter.median_window}")
        if self.filter.deadband_deg < 0:
            raise ValueError(f"filter.deadband_deg must be >= 0, got {self.filter.deadband_deg}")
        if self.filter.stillness_px < 0:
            raise ValueError(f"filter.stillness_px must be >= 0, got {self.filter.stillness_px}")
        if self.solver.iterations < 1:
            raise ValueError(f"solver.iterations must be >= 1, got {self.solver.iterations}")
        if not 0.0 < self.solver.confidence < 1.0:
            raise ValueError(f"solver.confidence must be in (0, 1), got {self.solver.confidence}")
        if self.solver.reprojection_error <= 0:
            raise ValueError(
                f"solver.reprojection_error must be > 0, got {self.solver.reprojection_error}"
            )

        if self.camera.fov_deg is not None and not 0.0 < self.camera.fov_deg < 180.0:
            raise ValueError(f"camera.fov_deg must be in (0, 180), got {self.camera.fov_deg}")
        bind = np.asarray(self.neck.bind_rotation, dtype=np.float64)
        if bind.shape not in ((4,), (3, 3)):
            raise ValueError(
                f"neck.bind_rotation must be a quaternion [w, x, y, z] or a 3x3 matrix, "
                f"got shape {bind.shape}"
            )

        w, h = self.capture.resolution
        if w <= 0 or h <= 0:
            raise ValueError(f"capture.resolution must be positive, got {w}x{h}")

        for name in ("pitch", "yaw", "roll"):
            lo, hi = getattr(self.shaping, name).range_deg
            if lo > hi:
                raise ValueError(f"shaping.{name}.range_deg min {lo} is greater than max {hi}")
            sign = getattr(self.neck, f"{name}_sign")
            if sign not in (1, -1):
                raise ValueError(f"neck.{name}_sign must be +1 or -1, got {sign}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        """
        Create config from parsed command-line arguments.

        Loads config file if specified, then applies command-line overrides.

        Args:
            args: Parsed arguments from argparse

        Returns:
            Validated Config instance

        Raises:
            ValueError: If any value is malformed or out of range
        """
        if args.config:
            config = cls.from_yaml(args.config)
        else:
            config = cls()

        # Capture overrides
        if args.source:
            config.capture.source = args.source
        if args.resolution:
            try:
                w, h = args.resolution.lower().split('x')
                config.capture.resolution = (int(w), int(h))
            except ValueError:
                raise ValueError(f"Invalid resolution format: {args.resolution}. Use WxH (e.g., 1280x720)")
        if args.max_frames is not None:
            config.capture.max_frames = args.max_frames

        # Camera overrides
        if args.focal_length is not None:
            config.camera.focal_length = args.focal_length
        if args.fov is not None:
            config.camera.fov_deg = args.fov

        # Filter overrides
        if args.alpha is not None:
            config.filter.alpha = args.alpha
        if args.deadband is not None:
            config.filter.deadband_deg = args.deadband
        if args.median_window is not None:
            config.filter.median_window = args.median_window
        if args.stillness is not None:
            config.filter.stillness_px = args.stillness

        # Shaping overrides
        if args.pitch_offset is not None:
            config.shaping.pitch.offset_deg = args.pitch_offset
        if args.yaw_offset is not None:
            config.shaping.yaw.offset_deg = args.yaw_offset
        if args.roll_offset is not None:
            config.shaping.roll.offset_deg = args.roll_offset
        if args.no_limits:
            config.shaping.pitch.limit = False
            config.shaping.yaw.limit = False
            config.shaping.roll.limit = False

        # Neck overrides
        if args.flip_pitch:
            config.neck.pitch_sign = -config.neck.pitch_sign
        if args.flip_yaw:
            config.neck.yaw_sign = -config.neck.yaw_sign
        if args.flip_roll:
            config.neck.roll_sign = -config.neck.roll_sign

        # Landmark overrides
        if args.landmark_model:
            config.landmarks.model_path = args.landmark_model
        if args.min_confidence is not None:
            config.landmarks.min_confidence = args.min_confidence
        if args.no_haar_fallback:
            config.landmarks.haar_fallback = False

        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """
        Build config from a nested dictionary (as loaded from YAML).

        Missing keys take their defaults.
        """
        # Parse capture config
        capture_data = data.get('capture', {})
        capture = CaptureConfig(
            source=str(capture_data.get('source', '0')),
            resolution=tuple(capture_data.get('resolution', [1280, 720])),
            max_frames=capture_data.get('max_frames')
        )

        # Parse camera config
        camera_data = data.get('camera', {})
        principal_point = camera_data.get('principal_point')
        camera = CameraConfig(
            focal_length=camera_data.get('focal_length'),
            fov_deg=camera_data.get('fov_deg'),
            principal_point=tuple(principal_point) if principal_point is not None else None,
            distortion=list(camera_data.get('distortion', [0.0] * 5))
        )

        # Parse solver config
        solver_data = data.get('solver', {})
        solver = SolverConfig(
            iterations=solver_data.get('iterations', 100),
            reprojection_error=solver_data.get('reprojection_error', 4.0),
            confidence=solver_data.get('confidence', 0.99)
        )

        # Parse filter config
        filter_data = data.get('filter', {})
        filter_config = FilterConfig(
            alpha=filter_data.get('alpha', 0.2),
            deadband_deg=filter_data.get('deadband_deg', 0.4),
            median_window=filter_data.get('median_window', 15),
            stillness_px=filter_data.get('stillness_px', 1.0)
        )

        # Parse shaping config, one block per axis
        shaping_data = data.get('shaping', {})
        axes = {}
        for name, default_range in _AXIS_DEFAULTS.items():
            axis_data = shaping_data.get(name, {})
            axes[name] = AxisConfig(
                offset_deg=axis_data.get('offset_deg', 0.0),
                limit=axis_data.get('limit', True),
                range_deg=tuple(axis_data.get('range_deg', list(default_range)))
            )
        shaping = ShapingConfig(**axes)

        # Parse neck config
        neck_data = data.get('neck', {})
        neck = NeckConfig(
            pitch_sign=neck_data.get('pitch_sign', 1),
            yaw_sign=neck_data.get('yaw_sign', 1),
            roll_sign=neck_data.get('roll_sign', 1),
            bind_rotation=tuple(neck_data.get('bind_rotation', [1.0, 0.0, 0.0, 0.0]))
        )

        # Parse landmark config
        landmark_data = data.get('landmarks', {})
        landmarks = LandmarkConfig(
            model_path=landmark_data.get('model_path'),
            min_confidence=landmark_data.get('min_confidence', 0.5),
            haar_fallback=landmark_data.get('haar_fallback', True),
            haar_cascade=landmark_data.get('haar_cascade')
        )

        return cls(
            capture=capture,
            camera=camera,
            solver=solver,
            filter=filter_config,
            shaping=shaping,
            neck=neck,
            landmarks=landmarks
        )

    @classmethod
    def from_yaml(cls, filepath: str) -> "Config":
        """
        Load config from YAML file.

        Args:
            filepath: Path to YAML config file

        Returns:
            Config instance
        """
        with open(filepath, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Nested plain-Python representation, the inverse of from_dict()."""
        def axis(a: AxisConfig) -> Dict[str, Any]:
            return {
                'offset_deg': a.offset_deg,
                'limit': a.limit,
                'range_deg': list(a.range_deg)
            }

        return {
            'capture': {
                'source': self.capture.source,
                'resolution': list(self.capture.resolution),
                'max_frames': self.capture.max_frames
            },
            'camera': {
                'focal_length': self.camera.focal_length,
                'fov_deg': self.camera.fov_deg,
                'principal_point': (
                    list(self.camera.principal_point)
                    if self.camera.principal_point is not None else None
                ),
                'distortion': list(self.camera.distortion)
            },
            'solver': {
                'iterations': self.solver.iterations,
                'reprojection_error': self.solver.reprojection_error,
                'confidence': self.solver.confidence
            },
            'filter': {
                'alpha': self.filter.alpha,
                'deadband_deg': self.filter.deadband_deg,
                'median_window': self.filter.median_window,
                'stillness_px': self.filter.stillness_px
            },
            'shaping': {
                'pitch': axis(self.shaping.pitch),
                'yaw': axis(self.shaping.yaw),
                'roll': axis(self.shaping.roll)
            },
            'neck': {
                'pitch_sign': self.neck.pitch_sign,
                'yaw_sign': self.neck.yaw_sign,
                'roll_sign': self.neck.roll_sign,
                'bind_rotation': np.asarray(self.neck.bind_rotation, dtype=float).tolist()
            },
            'landmarks': {
                'model_path': self.landmarks.model_path,
                'min_confidence': self.landmarks.min_confidence,
                'haar_fallback': self.landmarks.haar_fallback,
                'haar_cascade': self.landmarks.haar_cascade
            }
        }

    def to_yaml(self, filepath: str) -> None:
        """
        Save config to YAML file.

        Args:
            filepath: Path to save YAML config file
        """
        with open(filepath, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def generate_default_config_template() -> str:
        """
        Generate a default configuration template with comments.

        Returns:
            YAML string with comments explaining each option
        """
        return """# face2neck Configuration File
#
# Tracks a face from a video stream and drives a neck joint with
# stabilized pitch/yaw/roll. Command-line arguments override values here.

# Video capture
capture:
  # Camera index (e.g. "0") or path to a video file
  source: "0"

  # Requested frame size [width, height]
  resolution: [1280, 720]

  # Stop after this many frames (null = until the stream ends)
  max_frames: null

# Camera intrinsics
camera:
  # Focal length in pixels (null = 0.75 x frame width, 960 for 1280x720)
  focal_length: null

  # Horizontal field of view in degrees, used when focal_length is null
  fov_deg: null

  # Principal point [cx, cy] in pixels (null = image center)
  principal_point: null

  # OpenCV distortion coefficients [k1, k2, p1, p2, k3]
  distortion: [0.0, 0.0, 0.0, 0.0, 0.0]

# Robust pose solver (RANSAC PnP)
solver:
  # Maximum RANSAC iterations per frame
  iterations: 100

  # Inlier threshold in pixels
  reprojection_error: 4.0

  # Target confidence
  confidence: 0.99

# Temporal stabilizer
filter:
  # Low-pass factor in (0, 1]: 0 = heavy smoothing, 1 = no smoothing
  alpha: 0.2

  # Angles smaller than this (degrees) are forced to 0
  deadband_deg: 0.4

  # Sliding median window in frames
  median_window: 15

  # Frames where no landmark moved this many pixels are skipped
  stillness_px: 1.0

# Output shaping: offset is added first, then the optional clamp
shaping:
  pitch:
    offset_deg: 0.0
    limit: true
    range_deg: [-60.0, 60.0]
  yaw:
    offset_deg: 0.0
    limit: true
    range_deg: [-90.0, 90.0]
  roll:
    offset_deg: 0.0
    limit: true
    range_deg: [-40.0, 40.0]

# Neck joint
neck:
  # Per-axis sign flip (+1 or -1)
  pitch_sign: 1
  yaw_sign: 1
  roll_sign: 1

  # Rest orientation of the joint: quaternion [w, x, y, z]
  # or a 3x3 rotation matrix given as three rows
  bind_rotation: [1.0, 0.0, 0.0, 0.0]

# Face and landmark detection
landmarks:
  # MediaPipe FaceLandmarker .task model (null = download to ~/.cache/face2neck)
  model_path: null

  # Minimum detection confidence (0-1)
  min_confidence: 0.5

  # Use an OpenCV Haar cascade when the landmarker finds no face
  haar_fallback: true

  # Haar cascade XML (null = OpenCV's haarcascade_frontalface_alt.xml)
  haar_cascade: null
"""


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create command-line argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="face2neck",
        description="Track a face in a video stream and drive a neck joint with stabilized head pose",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog="Configuration file (YAML) can be used to set all options. Command-line arguments override config file values."
    )

    # Config file
    parser.add_argument(
        "--config", "-c",
        help="Path to YAML configuration file"
    )

    # Input
    parser.add_argument(
        "source",
        nargs='?',
        help="Camera index (e.g. 0) or video file path"
    )
    parser.add_argument(
        "--landmarks",
        nargs='+',
        metavar="JSON",
        help="Replay recorded landmark JSON files, one per frame, instead of reading video"
    )

    # Generate default config
    parser.add_argument(
        "--save-config",
        metavar="PATH",
        help="Save default configuration to YAML file and exit"
    )

    # Capture options
    capture_group = parser.add_argument_group("Capture Options")
    capture_group.add_argument(
        "--resolution",
        type=str,
        metavar="WxH",
        help="Requested frame size (e.g., 1280x720)"
    )
    capture_group.add_argument(
        "--max-frames",
        type=int,
        metavar="N",
        help="Stop after N frames"
    )
    capture_group.add_argument(
        "--focal-length",
        type=float,
        metavar="PIXELS",
        help="Focal length in pixels (default: 0.75 x frame width)"
    )
    capture_group.add_argument(
        "--fov",
        type=float,
        metavar="DEGREES",
        help="Horizontal field of view, used when no focal length is given"
    )

    # Filter options
    filter_group = parser.add_argument_group("Filter Options")
    filter_group.add_argument(
        "--alpha",
        type=float,
        help="Low-pass factor in (0, 1]; lower is smoother"
    )
    filter_group.add_argument(
        "--deadband",
        type=float,
        metavar="DEGREES",
        help="Angles below this magnitude are zeroed"
    )
    filter_group.add_argument(
        "--median-window",
        type=int,
        metavar="FRAMES",
        help="Sliding median window size"
    )
    filter_group.add_argument(
        "--stillness",
        type=float,
        metavar="PIXELS",
        help="Skip frames whose landmarks moved less than this"
    )

    # Shaping options
    shaping_group = parser.add_argument_group("Output Shaping Options")
    shaping_group.add_argument(
        "--pitch-offset",
        type=float,
        metavar="DEGREES",
        help="Offset added to pitch"
    )
    shaping_group.add_argument(
        "--yaw-offset",
        type=float,
        metavar="DEGREES",
        help="Offset added to yaw"
    )
    shaping_group.add_argument(
        "--roll-offset",
        type=float,
        metavar="DEGREES",
        help="Offset added to roll"
    )
    shaping_group.add_argument(
        "--no-limits",
        action="store_true",
        help="Disable clamping on all axes"
    )

    # Neck options
    neck_group = parser.add_argument_group("Neck Options")
    neck_group.add_argument(
        "--flip-pitch",
        action="store_true",
        help="Invert pitch on the joint"
    )
    neck_group.add_argument(
        "--flip-yaw",
        action="store_true",
        help="Invert yaw on the joint"
    )
    neck_group.add_argument(
        "--flip-roll",
        action="store_true",
        help="Invert roll on the joint"
    )

    # Landmark options
    landmark_group = parser.add_argument_group("Landmark Options")
    landmark_group.add_argument(
        "--landmark-model",
        metavar="PATH",
        help="MediaPipe FaceLandmarker .task model (auto-downloaded if not specified)"
    )
    landmark_group.add_argument(
        "--min-confidence",
        type=float,
        help="Minimum face detection confidence 0-1"
    )
    landmark_group.add_argument(
        "--no-haar-fallback",
        action="store_true",
        help="Do not fall back to the Haar cascade when no face is found"
    )

    # Other options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )

    return parser
