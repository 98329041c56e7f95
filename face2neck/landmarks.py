"""
Landmark source adapters: face detection and 68-point landmark extraction.

Two collaborators feed the pose pipeline:
- LandmarkSource: primary detector. detect() returns face rectangles and
  landmarks() returns an ordered 68-point array for a rectangle.
- FaceDetector: coarse fallback that only returns rectangles. Used when
  the primary source finds nothing.

MediaPipeLandmarkSource runs MediaPipe FaceLandmarker (Tasks API) and maps
its mesh to the 68-point layout. HaarFaceDetector wraps an OpenCV Haar
cascade.

On first use, the FaceLandmarker model (~4MB) is downloaded automatically
to ~/.cache/face2neck/face_landmarker.task.
"""

import logging
import urllib.request
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

import cv2
import numpy as np
from numpy.typing import NDArray

from .face import FaceLandmarkIngest, landmark_bounds

logger = logging.getLogger(__name__)

LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "face_landmarker/face_landmarker/float16/1/face_landmarker.task"
)
MODEL_CACHE_DIR = Path.home() / ".cache" / "face2neck"
LANDMARKER_MODEL_PATH = MODEL_CACHE_DIR / "face_landmarker.task"

HAAR_CASCADE_NAME = "haarcascade_frontalface_alt.xml"


class FaceRect(NamedTuple):
    """Face bounding box in pixels."""
    x: int
    y: int
    width: int
    height: int


class FaceDetector:
    """Interface for a coarse face rectangle detector."""

    def detect(self, image: NDArray[np.uint8]) -> List[FaceRect]:
        raise NotImplementedError


class LandmarkSource(FaceDetector):
    """Interface for a face detector that also extracts landmarks."""

    def landmarks(
        self,
        image: NDArray[np.uint8],
        region: FaceRect
    ) -> Optional[NDArray[np.float64]]:
        """
        Extract ordered landmarks for the face inside region.

        Returns:
            Landmarks in pixels, shape (N, 2), or None if no face was found
        """
        raise NotImplementedError

    def close(self) -> None:
        pass


def _ensure_model(url: str, path: Path) -> Path:
    """Download a model file if not cached."""
    if path.exists():
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s to %s", url, path)
    urllib.request.urlretrieve(url, str(path))
    return path


def crop_to_region(
    image: NDArray[np.uint8],
    region: FaceRect,
    padding: float = 0.5
) -> Tuple[NDArray[np.uint8], int, int]:
    """
    Crop image to a face rectangle with padding.

    Args:
        image: Full image (H, W, C)
        region: Face rectangle
        padding: Fraction of face size to add as padding on each side

    Returns:
        (crop, x1, y1) - cropped array and its top-left corner in the image
    """
    height, width = image.shape[:2]
    x, y, w, h = region

    pad_x = int(w * padding)
    pad_y = int(h * padding)

    x1 = max(0, x - pad_x)
    y1 = max(0, y - pad_y)
    x2 = min(width, x + w + pad_x)
    y2 = min(height, y + h + pad_y)

    crop = np.ascontiguousarray(image[y1:y2, x1:x2])
    return crop, x1, y1


class MediaPipeLandmarkSource(LandmarkSource):
    """
    68-point landmarks from MediaPipe FaceLandmarker.

    detect() runs the landmarker on the whole frame and remembers the
    result, so the following landmarks() call for the returned rectangle
    costs nothing. For any other rectangle (e.g. one from the fallback
    detector) the landmarker is re-run on a padded crop and the points are
    mapped back to full-frame pixels.

    Images are BGR, as delivered by cv2.VideoCapture.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        min_confidence: float = 0.5,
        crop_padding: float = 0.5
    ):
        try:
            import mediapipe as mp
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError:
            raise ImportError(
                "mediapipe is required for landmark detection. "
                "Install with: pip install face2neck[mediapipe]"
            )

        if model_path is None:
            model_path = str(_ensure_model(LANDMARKER_MODEL_URL, LANDMARKER_MODEL_PATH))

        options = vision.FaceLandmarkerOptions(
            base_options=python.BaseOptions(model_asset_path=model_path),
            min_face_detection_confidence=min_confidence,
            min_face_presence_confidence=min_confidence,
            num_faces=1,
        )
        self._mp = mp
        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        self.crop_padding = crop_padding
        self._last: Optional[Tuple[FaceRect, NDArray[np.float64]]] = None

    def _run(self, bgr: NDArray[np.uint8]) -> Optional[NDArray[np.float64]]:
        """Run the landmarker; returns normalized (N, 3) or None."""
        rgb = np.ascontiguousarray(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect(image)
        if not result.face_landmarks:
            return None
        face = result.face_landmarks[0]
        return np.array([[lm.x, lm.y, lm.z] for lm in face], dtype=np.float64)

    def detect(self, image: NDArray[np.uint8]) -> List[FaceRect]:
        self._last = None
        raw = self._run(image)
        if raw is None:
            return []

        height, width = image.shape[:2]
        points = FaceLandmarkIngest.from_mediapipe(raw, image_size=(width, height))
        rect = FaceRect(*landmark_bounds(points))
        self._last = (rect, points)
        return [rect]

    def landmarks(
        self,
        image: NDArray[np.uint8],
        region: FaceRect
    ) -> Optional[NDArray[np.float64]]:
        if self._last is not None and self._last[0] == region:
            return self._last[1]

        crop, x1, y1 = crop_to_region(image, region, self.crop_padding)
        if crop.size == 0:
            return None

        raw = self._run(crop)
        if raw is None:
            logger.debug("No landmarks inside region %s", region)
            return None

        crop_h, crop_w = crop.shape[:2]
        return FaceLandmarkIngest.from_mediapipe(
            raw, image_size=(crop_w, crop_h), offset=(x1, y1)
        )

    def close(self) -> None:
        self._landmarker.close()


class HaarFaceDetector(FaceDetector):
    """Coarse frontal face detector using an OpenCV Haar cascade."""

    def __init__(
        self,
        cascade_path: Optional[str] = None,
        scale_factor: float = 1.1,
        min_neighbors: int = 3
    ):
        if not hasattr(cv2, "CascadeClassifier"):
            raise ImportError(
                "This OpenCV build has no CascadeClassifier. "
                "Install with: pip install \"opencv-python>=4.5,<5\", "
                "or run with --no-haar-fallback"
            )

        if cascade_path is None:
            cascade_path = str(Path(cv2.data.haarcascades) / HAAR_CASCADE_NAME)

        self.classifier = cv2.CascadeClassifier(cascade_path)
        if self.classifier.empty():
            raise FileNotFoundError(f"Could not load Haar cascade: {cascade_path}")

        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors

    def detect(self, image: NDArray[np.uint8]) -> List[FaceRect]:
        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        rects = self.classifier.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors
        )
        return [FaceRect(int(x), int(y), int(w), int(h)) for (x, y, w, h) in rects]
