"""SE(2) planar poses."""

import numpy as np
from typing import Any

from .manifold import Manifold, WithJacobians, as_point


def wrap_angle(theta: float) -> float:
    """Wrap an angle to (-pi, pi]."""
    wrapped = np.arctan2(np.sin(theta), np.cos(theta))
    return float(np.pi if wrapped == -np.pi else wrapped)


def _rot2(theta: float) -> np.ndarray:
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])


class Pose2(Manifold):
    """Planar pose (x, y, theta).

    Tangent vectors are ordered [vx, vy, omega]; ``retract`` composes with the
    exponential map on the right.
    """

    def __init__(self, x: float = 0.0, y: float = 0.0, theta: float = 0.0):
        self._t = np.array([float(x), float(y)])
        self._theta = wrap_angle(theta)

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "Pose2":
        v = as_point(v, 3, "Pose2 vector")
        return cls(v[0], v[1], v[2])

    @staticmethod
    def Dim() -> int:
        return 3

    def dim(self) -> int:
        return 3

    def x(self) -> float:
        return float(self._t[0])

    def y(self) -> float:
        return float(self._t[1])

    def theta(self) -> float:
        return self._theta

    def translation(self) -> np.ndarray:
        return self._t.copy()

    def rotation_matrix(self) -> np.ndarray:
        return _rot2(self._theta)

    def vector(self) -> np.ndarray:
        return np.array([self._t[0], self._t[1], self._theta])

    def matrix(self) -> np.ndarray:
        """Homogeneous 3x3 transform."""
        T = np.eye(3)
        T[:2, :2] = self.rotation_matrix()
        T[:2, 2] = self._t
        return T

    # Group operations

    def compose(self, other: "Pose2") -> "Pose2":
        t = self._t + self.rotation_matrix() @ other._t
        return Pose2(t[0], t[1], self._theta + other._theta)

    def __mul__(self, other: "Pose2") -> "Pose2":
        return self.compose(other)

    def inverse(self) -> "Pose2":
        t = -self.rotation_matrix().T @ self._t
        return Pose2(t[0], t[1], -self._theta)

    def between(self, other: "Pose2") -> "Pose2":
        return self.inverse().compose(other)

    def between_with_jacobians(self, other: "Pose2") -> WithJacobians:
        """``self^-1 * other`` with Jacobians w.r.t. self and other."""
        hx = self.between(other)
        return WithJacobians(hx, (-hx.inverse().adjoint_map(), np.eye(3)))

    def adjoint_map(self) -> np.ndarray:
        c, s = np.cos(self._theta), np.sin(self._theta)
        x, y = self._t
        return np.array([
            [c, -s, y],
            [s, c, -x],
            [0.0, 0.0, 1.0],
        ])

    @staticmethod
    def expmap(xi: np.ndarray) -> "Pose2":
        vx, vy, w = as_point(xi, 3, "Pose2 tangent")
        if abs(w) < 1e-10:
            return Pose2(vx, vy, w)
        s, c = np.sin(w), np.cos(w)
        V = np.array([[s, -(1 - c)], [1 - c, s]]) / w
        t = V @ np.array([vx, vy])
        return Pose2(t[0], t[1], w)

    @staticmethod
    def logmap(pose: "Pose2") -> np.ndarray:
        w = pose.theta()
        tx, ty = pose._t
        if abs(w) < 1e-10:
            return np.array([tx, ty, w])
        # V^-1 for the planar exponential
        half = 0.5 * w
        half_cot = half * np.cos(half) / np.sin(half)
        V_inv = np.array([[half_cot, half], [-half, half_cot]])
        v = V_inv @ np.array([tx, ty])
        return np.array([v[0], v[1], w])

    # Manifold

    def retract(self, delta: np.ndarray) -> "Pose2":
        return self.compose(Pose2.expmap(self._check_delta(delta)))

    def local_coordinates(self, other: "Pose2") -> np.ndarray:
        return Pose2.logmap(self.between(other))

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if not isinstance(other, Pose2):
            return False
        return bool(
            np.allclose(self._t, other._t, atol=tol, rtol=0)
            and abs(wrap_angle(self._theta - other._theta)) <= tol
        )

    # Points and measurements

    def transform_from(self, point: np.ndarray) -> np.ndarray:
        """Local point to world frame."""
        return self.rotation_matrix() @ as_point(point, 2) + self._t

    def transform_to(self, point: np.ndarray) -> np.ndarray:
        """World point to local frame."""
        return self.rotation_matrix().T @ (as_point(point, 2) - self._t)

    def bearing(self, point: np.ndarray) -> float:
        d = self.transform_to(point)
        return float(np.arctan2(d[1], d[0]))

    def bearing_with_jacobians(self, point: np.ndarray) -> WithJacobians:
        d = self.transform_to(point)
        x, y = d
        d2 = x * x + y * y
        if d2 < 1e-18:
            raise ValueError("Bearing undefined for a point at the pose origin")
        H_pose = np.array([[y / d2, -x / d2, -1.0]])
        H_point = np.array([[-y / d2, x / d2]]) @ self.rotation_matrix().T
        return WithJacobians(float(np.arctan2(y, x)), (H_pose, H_point))

    def range(self, target: Any) -> float:
        return float(np.linalg.norm(self._target_translation(target) - self._t))

    def range_with_jacobians(self, target: Any) -> WithJacobians:
        """Range to a point or pose with Jacobians (1x3 for the pose)."""
        d = self._target_translation(target) - self._t
        r = float(np.linalg.norm(d))
        if r < 1e-12:
            raise ValueError("Range Jacobian undefined for coincident positions")
        direction = d / r
        H_self = np.zeros((1, 3))
        H_self[0, :2] = -direction @ self.rotation_matrix()
        if isinstance(target, Pose2):
            H_target = np.zeros((1, 3))
            H_target[0, :2] = direction @ target.rotation_matrix()
        else:
            H_target = direction.reshape(1, 2)
        return WithJacobians(r, (H_self, H_target))

    def _target_translation(self, target: Any) -> np.ndarray:
        if isinstance(target, Pose2):
            return target._t
        return as_point(target, 2, "target")

    def __repr__(self) -> str:
        return f"Pose2(x={self._t[0]:.6g}, y={self._t[1]:.6g}, theta={self._theta:.6g})"
