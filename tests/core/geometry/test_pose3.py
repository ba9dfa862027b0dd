"""Tests for 3D rotations and poses."""

import numpy as np
import pytest

from mapgraph.core.geometry import Pose3, Rot3
from mapgraph.core.math.jacobians import numerical_derivative


class TestRot3:
    """Test Rot3 operations."""

    def test_rz(self):
        R = Rot3.Rz(np.pi / 2)
        np.testing.assert_allclose(R.rotate(np.array([1.0, 0.0, 0.0])), [0.0, 1.0, 0.0], atol=1e-12)

    def test_ypr(self):
        R = Rot3.ypr(0.1, 0.2, 0.3)
        expected = Rot3.Rz(0.1).matrix() @ Rot3.Ry(0.2).matrix() @ Rot3.Rx(0.3).matrix()
        np.testing.assert_allclose(R.matrix(), expected, atol=1e-12)

    def test_quaternion_round_trip(self):
        R = Rot3.ypr(0.4, -0.3, 1.1)
        assert Rot3.from_quaternion(R.quaternion()).equals(R, 1e-10)

    def test_rotate_unrotate(self):
        R = Rot3.ypr(0.4, -0.3, 1.1)
        p = np.array([1.0, 2.0, 3.0])
        np.testing.assert_allclose(R.unrotate(R.rotate(p)), p, atol=1e-12)

    def test_retract_local_inverse(self):
        R = Rot3.ypr(0.4, -0.3, 1.1)
        omega = np.array([0.2, -0.1, 0.05])
        np.testing.assert_allclose(R.local_coordinates(R.retract(omega)), omega, atol=1e-10)

    def test_invalid_matrix(self):
        with pytest.raises(ValueError):
            Rot3(np.eye(2))


class TestPose3:
    """Test Pose3 group and manifold operations."""

    def setup_method(self):
        self.p1 = Pose3(Rot3.ypr(0.3, -0.2, 0.1), np.array([1.0, 2.0, 3.0]))
        self.p2 = Pose3(Rot3.ypr(-1.0, 0.4, 0.7), np.array([-2.0, 0.5, 1.0]))

    def test_compose_inverse(self):
        assert self.p1.compose(self.p1.inverse()).equals(Pose3(), 1e-12)

    def test_between(self):
        assert (self.p1 * self.p1.between(self.p2)).equals(self.p2, 1e-12)

    def test_matrix_round_trip(self):
        assert Pose3.from_matrix(self.p1.matrix()).equals(self.p1, 1e-12)

    def test_transform_round_trip(self):
        p = np.array([0.3, -4.0, 2.0])
        np.testing.assert_allclose(self.p1.transform_to(self.p1.transform_from(p)), p, atol=1e-12)

    @pytest.mark.parametrize("xi", [
        np.array([0.1, -0.2, 0.3, 1.0, 2.0, 3.0]),
        np.zeros(6),
        np.array([0.0, 0.0, 0.0, -1.0, 0.5, 0.2]),
        np.array([1.0, 1.5, -0.5, 0.2, 0.1, 0.0]),
    ])
    def test_retract_local_inverse(self, xi):
        """local_coordinates(p, retract(p, v)) == v."""
        np.testing.assert_allclose(self.p1.local_coordinates(self.p1.retract(xi)), xi, atol=1e-9)

    @pytest.mark.parametrize("angle", [2e-6, 3e-5, 5e-4, 4e-3])
    def test_local_coordinates_small_rotation(self, angle):
        xi = np.array([angle, 0.0, 0.0, 0.0, 50.0, 0.0])
        np.testing.assert_allclose(self.p1.local_coordinates(self.p1.retract(xi)), xi, rtol=1e-6, atol=1e-10)

    def test_local_retract_inverse(self):
        assert self.p1.retract(self.p1.local_coordinates(self.p2)).equals(self.p2, 1e-9)

    def test_retract_translation_in_body_frame(self):
        """The translational tangent moves along the body axes."""
        moved = self.p1.retract(np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0]))
        expected = self.p1.translation() + self.p1.rotation().matrix()[:, 0]
        np.testing.assert_allclose(moved.translation(), expected, atol=1e-12)

    def test_between_jacobians(self):
        _, (H1, H2) = self.p1.between_with_jacobians(self.p2)

        f = lambda a, b: a.between(b)
        np.testing.assert_allclose(H1, numerical_derivative(f, [self.p1, self.p2], 0), atol=1e-6)
        np.testing.assert_allclose(H2, numerical_derivative(f, [self.p1, self.p2], 1), atol=1e-6)

    def test_adjoint_map(self):
        """Ad(T) xi equals Log(T Exp(xi) T^-1) to first order."""
        xi = 1e-6 * np.array([1.0, -2.0, 0.5, 3.0, 1.0, -1.0])
        conjugated = Pose3.logmap(self.p1 * Pose3.expmap(xi) * self.p1.inverse())
        np.testing.assert_allclose(conjugated, self.p1.adjoint_map() @ xi, atol=1e-10)

    def test_range_jacobians(self):
        point = np.array([4.0, -1.0, 2.0])
        f = lambda a, b: a.range(b)

        _, (H_pose, H_point) = self.p1.range_with_jacobians(point)
        np.testing.assert_allclose(H_pose, numerical_derivative(f, [self.p1, point], 0), atol=1e-6)
        np.testing.assert_allclose(H_point, numerical_derivative(f, [self.p1, point], 1), atol=1e-6)

        _, (H1, H2) = self.p1.range_with_jacobians(self.p2)
        np.testing.assert_allclose(H1, numerical_derivative(f, [self.p1, self.p2], 0), atol=1e-6)
        np.testing.assert_allclose(H2, numerical_derivative(f, [self.p1, self.p2], 1), atol=1e-6)

    def test_invalid_matrix(self):
        with pytest.raises(ValueError):
            Pose3.from_matrix(np.eye(3))
