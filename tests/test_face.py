"""
Tests for face model and landmark ingestion.

Tests model data integrity, correspondence selection, and format conversion.
"""

import json

import numpy as np
import pytest

from face2neck.face import (
    CORRESPONDENCE_INDICES,
    CORRESPONDENCE_NAMES,
    FACE_MODEL_3D,
    MEDIAPIPE_TO_68,
    MIN_LANDMARK_COUNT,
    DegenerateLandmarksError,
    FaceLandmarkIngest,
    landmark_bounds,
    select_correspondences,
)


class TestFaceModel:
    """Test integrity of the 6-point face model."""

    def test_shape(self):
        """Model should be (6, 3) float64."""
        assert FACE_MODEL_3D.shape == (6, 3)
        assert FACE_MODEL_3D.dtype == np.float64

    def test_read_only(self):
        """Model array must not be writable."""
        with pytest.raises(ValueError):
            FACE_MODEL_3D[0, 0] = 1.0

    def test_nose_tip_at_origin(self):
        assert np.array_equal(FACE_MODEL_3D[0], [0.0, 0.0, 0.0])

    def test_symmetry(self):
        """Eye and mouth corner pairs should mirror about X=0."""
        for right, left in [(2, 3), (4, 5)]:
            assert FACE_MODEL_3D[right, 0] == -FACE_MODEL_3D[left, 0]
            assert FACE_MODEL_3D[right, 1] == FACE_MODEL_3D[left, 1]
            assert FACE_MODEL_3D[right, 2] == FACE_MODEL_3D[left, 2]

    def test_not_coplanar(self):
        """Points must span 3D for a well-posed solve."""
        centered = FACE_MODEL_3D - FACE_MODEL_3D.mean(axis=0)
        assert np.linalg.matrix_rank(centered) == 3

    def test_nose_tip_protrudes(self):
        """Nose tip should be the point closest to the viewer (+Z)."""
        assert FACE_MODEL_3D[0, 2] == FACE_MODEL_3D[:, 2].max()


class TestCorrespondenceSelection:
    """Test select_correspondences()."""

    def test_indices(self):
        assert CORRESPONDENCE_INDICES == [30, 8, 36, 45, 48, 54]
        assert len(CORRESPONDENCE_NAMES) == len(CORRESPONDENCE_INDICES)
        assert MIN_LANDMARK_COUNT == 55

    def test_picks_points_in_model_order(self):
        landmarks = np.arange(68 * 2, dtype=np.float64).reshape(68, 2)
        result = select_correspondences(landmarks)

        assert result.shape == (6, 2)
        for row, idx in enumerate(CORRESPONDENCE_INDICES):
            np.testing.assert_array_equal(result[row], landmarks[idx])

    def test_returns_copy(self):
        landmarks = np.ones((68, 2))
        result = select_correspondences(landmarks)
        result[0] = 99.0
        assert landmarks[30, 0] == 1.0

    def test_ignores_third_column(self):
        landmarks = np.random.RandomState(0).rand(68, 3)
        result = select_correspondences(landmarks)
        np.testing.assert_array_equal(result, landmarks[CORRESPONDENCE_INDICES, :2])

    def test_accepts_list_input(self):
        landmarks = [[float(i), float(i)] for i in range(68)]
        result = select_correspondences(landmarks)
        assert result[0, 0] == 30.0

    def test_minimum_length_accepted(self):
        """55 points reach index 54, the largest correspondence index."""
        result = select_correspondences(np.zeros((55, 2)))
        assert result.shape == (6, 2)

    def test_too_short_raises(self):
        with pytest.raises(DegenerateLandmarksError, match="at least 55"):
            select_correspondences(np.zeros((54, 2)))

    def test_wrong_dimensions_raise(self):
        with pytest.raises(DegenerateLandmarksError):
            select_correspondences(np.zeros(136))
        with pytest.raises(DegenerateLandmarksError):
            select_correspondences(np.zeros((68, 1)))

    def test_error_is_value_error(self):
        """Callers catching ValueError also catch degenerate input."""
        assert issubclass(DegenerateLandmarksError, ValueError)


class TestFaceLandmarkIngestFromMediaPipe:
    """Test FaceLandmarkIngest.from_mediapipe()."""

    def _make_fake_mediapipe_478(self):
        """Create fake 478-landmark array for testing."""
        rng = np.random.RandomState(42)
        return rng.rand(478, 3).astype(np.float32)

    def test_output_shape(self):
        """Should produce (68, 2) float64."""
        result = FaceLandmarkIngest.from_mediapipe(self._make_fake_mediapipe_478(), (640, 480))
        assert result.shape == (68, 2)
        assert result.dtype == np.float64

    def test_accepts_468(self):
        mp = np.random.RandomState(1).rand(468, 3)
        result = FaceLandmarkIngest.from_mediapipe(mp, (640, 480))
        assert result.shape == (68, 2)

    def test_denormalize_with_image_size(self):
        """x scaled by width, y by height."""
        mp = self._make_fake_mediapipe_478()
        w, h = 800, 1200
        result = FaceLandmarkIngest.from_mediapipe(mp, (w, h))

        for i, mp_idx in enumerate(MEDIAPIPE_TO_68):
            np.testing.assert_allclose(result[i, 0], mp[mp_idx, 0] * w, rtol=1e-6)
            np.testing.assert_allclose(result[i, 1], mp[mp_idx, 1] * h, rtol=1e-6)

    def test_offset(self):
        """Crop offsets shift every point."""
        mp = self._make_fake_mediapipe_478()
        base = FaceLandmarkIngest.from_mediapipe(mp, (100, 100))
        shifted = FaceLandmarkIngest.from_mediapipe(mp, (100, 100), offset=(10, 20))
        np.testing.assert_allclose(shifted - base, np.tile([10.0, 20.0], (68, 1)))

    def test_mapping_covers_correspondences(self):
        """Every correspondence index needs a MediaPipe vertex."""
        assert len(MEDIAPIPE_TO_68) == 68
        assert MEDIAPIPE_TO_68[30] == 4    # nose tip
        assert MEDIAPIPE_TO_68[8] == 152   # chin

    def test_rejects_too_few_landmarks(self):
        mp = np.random.rand(100, 3)
        with pytest.raises(ValueError, match="at least 468"):
            FaceLandmarkIngest.from_mediapipe(mp, (640, 480))

    def test_rejects_wrong_dimensions(self):
        mp = np.random.rand(478, 4)
        with pytest.raises(ValueError, match="shape"):
            FaceLandmarkIngest.from_mediapipe(mp, (640, 480))


class TestFaceLandmarkIngestFromJSON:
    """Test FaceLandmarkIngest.from_json()."""

    def _write(self, tmp_path, data):
        path = tmp_path / "landmarks.json"
        path.write_text(json.dumps(data))
        return path

    def test_loads_mediapipe_json(self, tmp_path):
        rng = np.random.RandomState(42)
        path = self._write(tmp_path, {
            "source": "mediapipe",
            "image_size": [640, 480],
            "landmarks": rng.rand(478, 3).tolist()
        })

        result = FaceLandmarkIngest.from_json(path)
        assert result.shape == (68, 2)
        assert result[:, 0].max() <= 640
        assert result[:, 1].max() <= 480

    def test_loads_dlib68_json(self, tmp_path):
        points = np.arange(136, dtype=np.float64).reshape(68, 2)
        path = self._write(tmp_path, {"source": "dlib68", "landmarks": points.tolist()})

        result = FaceLandmarkIngest.from_json(str(path))
        np.testing.assert_array_equal(result, points)

    def test_mediapipe_requires_image_size(self, tmp_path):
        path = self._write(tmp_path, {
            "source": "mediapipe",
            "landmarks": np.zeros((478, 3)).tolist()
        })
        with pytest.raises(ValueError, match="image_size"):
            FaceLandmarkIngest.from_json(path)

    def test_dlib68_wrong_shape(self, tmp_path):
        path = self._write(tmp_path, {"source": "dlib68", "landmarks": np.zeros((60, 2)).tolist()})
        with pytest.raises(ValueError, match="68, 2"):
            FaceLandmarkIngest.from_json(path)

    def test_missing_landmarks(self, tmp_path):
        path = self._write(tmp_path, {"source": "dlib68"})
        with pytest.raises(ValueError, match="landmarks"):
            FaceLandmarkIngest.from_json(path)

    def test_unknown_source(self, tmp_path):
        path = self._write(tmp_path, {"source": "openpose", "landmarks": []})
        with pytest.raises(ValueError, match="Unsupported"):
            FaceLandmarkIngest.from_json(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FaceLandmarkIngest.from_json(tmp_path / "nope.json")


class TestLandmarkBounds:
    """Test landmark_bounds()."""

    def test_integer_box_contains_points(self):
        points = np.array([[10.2, 20.7], [30.5, 25.1], [15.0, 40.9]])
        x, y, w, h = landmark_bounds(points)

        assert (x, y) == (10, 20)
        assert (x + w, y + h) == (31, 41)
        assert all(isinstance(v, int) for v in (x, y, w, h))
