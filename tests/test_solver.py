"""
Tests for the robust pose solver.

Uses synthetic correspondences from projecting the face model under known
poses, so the expected answer is exact.
"""

import numpy as np
import pytest

from face2neck.coordinates import head_rotation_matrix, pose_to_euler, rotation_matrix_to_vector
from face2neck.face import FACE_MODEL_3D
from face2neck.solver import MIN_INLIERS, PoseSolution, reprojection_errors, solve_pose


class TestPoseSolution:
    """Test PoseSolution container."""

    def test_failed(self):
        solution = PoseSolution.failed()
        assert not solution.success
        assert solution.inliers.size == 0
        np.testing.assert_array_equal(solution.rvec, np.zeros(3))
        np.testing.assert_array_equal(solution.tvec, np.zeros(3))


class TestSolvePose:
    """Test solve_pose() on synthetic faces."""

    @pytest.mark.parametrize("pitch,yaw,roll", [
        (0.0, 0.0, 0.0),
        (10.0, 0.0, 0.0),
        (0.0, 20.0, 0.0),
        (0.0, 0.0, -15.0),
        (-12.0, 30.0, 8.0),
    ])
    def test_zero_noise_recovers_pose(self, intrinsics, face_points, pitch, yaw, roll):
        """Exact correspondences solve with near-zero reprojection error."""
        image_points = face_points(pitch, yaw, roll)

        solution = solve_pose(FACE_MODEL_3D, image_points, intrinsics)

        assert solution.success
        assert len(solution.inliers) == 6
        errors = reprojection_errors(
            FACE_MODEL_3D, image_points, solution.rvec, solution.tvec, intrinsics
        )
        assert errors.max() < 1e-3

        p, y, _ = pose_to_euler(solution.rvec)
        assert np.isclose(p, pitch, atol=0.05)
        assert np.isclose(y, yaw, atol=0.05)
        np.testing.assert_allclose(solution.tvec, [0.0, 0.0, 600.0], atol=0.5)

    def test_output_shapes(self, intrinsics, face_points):
        solution = solve_pose(FACE_MODEL_3D, face_points(), intrinsics)
        assert solution.rvec.shape == (3,)
        assert solution.tvec.shape == (3,)
        assert solution.inliers.dtype == np.int64

    def test_seeded_solve(self, intrinsics, face_points):
        """A seed near the answer converges to the same pose."""
        image_points = face_points(5.0, -10.0, 0.0)
        truth = solve_pose(FACE_MODEL_3D, image_points, intrinsics)

        seed_rvec = truth.rvec + 0.01
        seed_tvec = truth.tvec + 1.0
        solution = solve_pose(
            FACE_MODEL_3D, image_points, intrinsics,
            seed_rvec=seed_rvec, seed_tvec=seed_tvec, seed_valid=True
        )

        assert solution.success
        errors = reprojection_errors(
            FACE_MODEL_3D, image_points, solution.rvec, solution.tvec, intrinsics
        )
        assert errors.max() < 1e-3

    def test_seed_not_modified(self, intrinsics, face_points):
        seed_rvec = rotation_matrix_to_vector(head_rotation_matrix(0.0, 5.0, 0.0))
        seed_tvec = np.array([0.0, 0.0, 600.0])
        rvec_before = seed_rvec.copy()
        tvec_before = seed_tvec.copy()

        solve_pose(
            FACE_MODEL_3D, face_points(0.0, 15.0, 0.0), intrinsics,
            seed_rvec=seed_rvec, seed_tvec=seed_tvec, seed_valid=True
        )

        np.testing.assert_array_equal(seed_rvec, rvec_before)
        np.testing.assert_array_equal(seed_tvec, tvec_before)

    def test_rejects_outlier(self, intrinsics, face_points):
        """One grossly displaced landmark is excluded from the inlier set."""
        image_points = face_points(8.0, -20.0, 0.0)
        image_points[2] += [80.0, -60.0]

        solution = solve_pose(FACE_MODEL_3D, image_points, intrinsics)

        assert solution.success
        assert 2 not in solution.inliers
        assert len(solution.inliers) == 5
        p, y, _ = pose_to_euler(solution.rvec)
        assert np.isclose(p, 8.0, atol=0.5)
        assert np.isclose(y, -20.0, atol=0.5)

    def test_mismatched_counts_fail(self, intrinsics, face_points):
        """OpenCV rejects the input; the solver reports failure instead."""
        solution = solve_pose(FACE_MODEL_3D, face_points()[:5], intrinsics)
        assert not solution.success

    def test_too_few_points_fail(self, intrinsics, face_points):
        solution = solve_pose(FACE_MODEL_3D[:3], face_points()[:3], intrinsics)
        assert not solution.success

    def test_min_inliers(self):
        assert MIN_INLIERS == 4


class TestReprojectionErrors:
    """Test reprojection_errors()."""

    def test_exact_pose_has_zero_error(self, intrinsics, face_points):
        rvec = rotation_matrix_to_vector(head_rotation_matrix(10.0, 10.0, 0.0))
        tvec = np.array([0.0, 0.0, 600.0])
        image_points = face_points(10.0, 10.0, 0.0)

        errors = reprojection_errors(FACE_MODEL_3D, image_points, rvec, tvec, intrinsics)
        assert errors.shape == (6,)
        assert errors.max() < 1e-9

    def test_shifted_point_error(self, intrinsics, face_points):
        rvec = rotation_matrix_to_vector(head_rotation_matrix())
        tvec = np.array([0.0, 0.0, 600.0])
        image_points = face_points()
        image_points[0] += [3.0, 4.0]

        errors = reprojection_errors(FACE_MODEL_3D, image_points, rvec, tvec, intrinsics)
        assert np.isclose(errors[0], 5.0)
        assert errors[1:].max() < 1e-9
