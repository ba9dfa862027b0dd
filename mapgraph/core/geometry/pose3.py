"""SO(3) rotations and SE(3) poses."""

import numpy as np
from typing import Any, Optional

from ..math.quaternions import matrix_to_quat, quat_to_matrix
from ..math.se3 import skew_symmetric, so3_exp, so3_log, se3_exp, se3_log
from .manifold import Manifold, WithJacobians, as_point


class Rot3(Manifold):
    """3D rotation stored as an orthonormal matrix.

    ``retract`` multiplies by ``Exp(omega)`` on the right.
    """

    def __init__(self, R: Optional[np.ndarray] = None):
        if R is None:
            R = np.eye(3)
        R = np.asarray(R, dtype=float)
        if R.shape != (3, 3):
            raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")
        self._R = R

    @classmethod
    def from_columns(cls, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> "Rot3":
        return cls(np.column_stack([x, y, z]))

    @classmethod
    def from_quaternion(cls, q: np.ndarray) -> "Rot3":
        return cls(quat_to_matrix(np.asarray(q, dtype=float)))

    @classmethod
    def Rx(cls, angle: float) -> "Rot3":
        return cls(so3_exp(np.array([angle, 0.0, 0.0])))

    @classmethod
    def Ry(cls, angle: float) -> "Rot3":
        return cls(so3_exp(np.array([0.0, angle, 0.0])))

    @classmethod
    def Rz(cls, angle: float) -> "Rot3":
        return cls(so3_exp(np.array([0.0, 0.0, angle])))

    @classmethod
    def ypr(cls, yaw: float, pitch: float, roll: float) -> "Rot3":
        """Rz(yaw) * Ry(pitch) * Rx(roll)."""
        return cls(cls.Rz(yaw)._R @ cls.Ry(pitch)._R @ cls.Rx(roll)._R)

    @staticmethod
    def expmap(omega: np.ndarray) -> "Rot3":
        return Rot3(so3_exp(as_point(omega, 3, "omega")))

    @staticmethod
    def logmap(R: "Rot3") -> np.ndarray:
        return so3_log(R._R)

    @staticmethod
    def Dim() -> int:
        return 3

    def dim(self) -> int:
        return 3

    def matrix(self) -> np.ndarray:
        return self._R.copy()

    def quaternion(self) -> np.ndarray:
        """Unit quaternion [w, x, y, z]."""
        return matrix_to_quat(self._R)

    def transpose(self) -> np.ndarray:
        return self._R.T.copy()

    def compose(self, other: "Rot3") -> "Rot3":
        return Rot3(self._R @ other._R)

    def __mul__(self, other: "Rot3") -> "Rot3":
        return self.compose(other)

    def inverse(self) -> "Rot3":
        return Rot3(self._R.T)

    def between(self, other: "Rot3") -> "Rot3":
        return Rot3(self._R.T @ other._R)

    def rotate(self, p: np.ndarray) -> np.ndarray:
        return self._R @ as_point(p, 3)

    def unrotate(self, p: np.ndarray) -> np.ndarray:
        return self._R.T @ as_point(p, 3)

    def retract(self, delta: np.ndarray) -> "Rot3":
        return Rot3(self._R @ so3_exp(self._check_delta(delta)))

    def local_coordinates(self, other: "Rot3") -> np.ndarray:
        return so3_log(self._R.T @ other._R)

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        return isinstance(other, Rot3) and bool(np.allclose(self._R, other._R, atol=tol, rtol=0))

    def __repr__(self) -> str:
        return f"Rot3(omega={Rot3.logmap(self).round(6).tolist()})"


class Pose3(Manifold):
    """3D pose (R, t) mapping body coordinates to world coordinates.

    Tangent vectors are ordered [omega, v]. ``retract`` is
    ``self * Expmap(xi)`` with the full SE(3) exponential and
    ``local_coordinates`` its exact inverse.
    """

    def __init__(self, rotation: Any = None, translation: Optional[np.ndarray] = None):
        if rotation is None:
            rotation = Rot3()
        elif not isinstance(rotation, Rot3):
            rotation = Rot3(rotation)
        self._rot = rotation
        self._t = np.zeros(3) if translation is None else as_point(translation, 3, "translation").copy()

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Pose3":
        T = np.asarray(T, dtype=float)
        if T.shape != (4, 4):
            raise ValueError(f"T must be 4x4 matrix, got shape {T.shape}")
        return cls(Rot3(T[:3, :3]), T[:3, 3])

    @staticmethod
    def expmap(xi: np.ndarray) -> "Pose3":
        R, t = se3_exp(as_point(xi, 6, "xi"))
        return Pose3(Rot3(R), t)

    @staticmethod
    def logmap(pose: "Pose3") -> np.ndarray:
        return se3_log(pose._rot._R, pose._t)

    @staticmethod
    def Dim() -> int:
        return 6

    def dim(self) -> int:
        return 6

    def rotation(self) -> Rot3:
        return self._rot

    def translation(self) -> np.ndarray:
        return self._t.copy()

    def matrix(self) -> np.ndarray:
        T = np.eye(4)
        T[:3, :3] = self._rot._R
        T[:3, 3] = self._t
        return T

    # Group operations

    def compose(self, other: "Pose3") -> "Pose3":
        R = self._rot._R
        return Pose3(Rot3(R @ other._rot._R), R @ other._t + self._t)

    def __mul__(self, other: "Pose3") -> "Pose3":
        return self.compose(other)

    def inverse(self) -> "Pose3":
        Rt = self._rot._R.T
        return Pose3(Rot3(Rt), -Rt @ self._t)

    def between(self, other: "Pose3") -> "Pose3":
        return self.inverse().compose(other)

    def between_with_jacobians(self, other: "Pose3") -> WithJacobians:
        """``self^-1 * other`` with Jacobians w.r.t. self and other."""
        hx = self.between(other)
        return WithJacobians(hx, (-hx.inverse().adjoint_map(), np.eye(6)))

    def adjoint_map(self) -> np.ndarray:
        R = self._rot._R
        Ad = np.zeros((6, 6))
        Ad[:3, :3] = R
        Ad[3:, 3:] = R
        Ad[3:, :3] = skew_symmetric(self._t) @ R
        return Ad

    # Manifold

    def retract(self, delta: np.ndarray) -> "Pose3":
        return self.compose(Pose3.expmap(self._check_delta(delta)))

    def local_coordinates(self, other: "Pose3") -> np.ndarray:
        return Pose3.logmap(self.between(other))

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if not isinstance(other, Pose3):
            return False
        return self._rot.equals(other._rot, tol) and bool(np.allclose(self._t, other._t, atol=tol, rtol=0))

    # Points and measurements

    def transform_from(self, point: np.ndarray) -> np.ndarray:
        """Body point to world frame."""
        return self._rot._R @ as_point(point, 3) + self._t

    def transform_to(self, point: np.ndarray) -> np.ndarray:
        """World point to body frame."""
        return self._rot._R.T @ (as_point(point, 3) - self._t)

    def range(self, target: Any) -> float:
        return float(np.linalg.norm(self._target_translation(target) - self._t))

    def range_with_jacobians(self, target: Any) -> WithJacobians:
        """Range to a point or pose; pose Jacobians are 1x6, point 1x3."""
        d = self._target_translation(target) - self._t
        r = float(np.linalg.norm(d))
        if r < 1e-12:
            raise ValueError("Range Jacobian undefined for coincident positions")
        direction = d / r
        H_self = np.zeros((1, 6))
        H_self[0, 3:] = -direction @ self._rot._R
        if isinstance(target, Pose3):
            H_target = np.zeros((1, 6))
            H_target[0, 3:] = direction @ target._rot._R
        else:
            H_target = direction.reshape(1, 3)
        return WithJacobians(r, (H_self, H_target))

    def _target_translation(self, target: Any) -> np.ndarray:
        if isinstance(target, Pose3):
            return target._t
        return as_point(target, 3, "target")

    def __repr__(self) -> str:
        return f"Pose3(R={Rot3.logmap(self._rot).round(6).tolist()}, t={self._t.round(6).tolist()})"
