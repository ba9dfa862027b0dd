"""Pinhole camera models with closed-form projection Jacobians.

Cameras look down their local +Z axis; image x grows along local +X and
image y along local +Y. A camera's pose maps camera coordinates to world
coordinates.

Two variants share the module-level projection helpers:

- ``CalibratedCamera``: pose only (dim 6), projects to normalized
  (intrinsic) coordinates.
- ``PinholeCamera``: pose plus ``Cal3_S2`` intrinsics (dim 11), projects to
  pixels. The calibration tangent is appended after the pose tangent.
"""

import numpy as np
from typing import Any, Optional, Union

from ..errors import CheiralityError
from .manifold import Manifold, WithJacobians, as_point
from .pose2 import Pose2
from .pose3 import Pose3, Rot3


class Cal3_S2(Manifold):
    """Five-parameter calibration: focal lengths, skew and principal point."""

    def __init__(self, fx: float = 1.0, fy: float = 1.0, s: float = 0.0, u0: float = 0.0, v0: float = 0.0):
        self._k = np.array([fx, fy, s, u0, v0], dtype=float)

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "Cal3_S2":
        return cls(*as_point(v, 5, "calibration vector"))

    @classmethod
    def from_fov(cls, fov_degrees: float, width: int, height: int) -> "Cal3_S2":
        """Square-pixel calibration from a horizontal field of view."""
        f = 0.5 * width / np.tan(np.radians(fov_degrees) / 2)
        return cls(f, f, 0.0, width / 2, height / 2)

    @staticmethod
    def Dim() -> int:
        return 5

    def dim(self) -> int:
        return 5

    def vector(self) -> np.ndarray:
        return self._k.copy()

    def fx(self) -> float:
        return float(self._k[0])

    def fy(self) -> float:
        return float(self._k[1])

    def skew(self) -> float:
        return float(self._k[2])

    def principal_point(self) -> np.ndarray:
        return self._k[3:].copy()

    def K(self) -> np.ndarray:
        fx, fy, s, u0, v0 = self._k
        return np.array([[fx, s, u0], [0.0, fy, v0], [0.0, 0.0, 1.0]])

    def uncalibrate(self, p: np.ndarray) -> np.ndarray:
        """Intrinsic (normalized) coordinates to pixels."""
        fx, fy, s, u0, v0 = self._k
        x, y = as_point(p, 2)
        return np.array([fx * x + s * y + u0, fy * y + v0])

    def uncalibrate_with_jacobians(self, p: np.ndarray) -> WithJacobians:
        """Pixels with Jacobians w.r.t. calibration (2x5) and point (2x2)."""
        fx, fy, s, _, _ = self._k
        x, y = as_point(p, 2)
        Dcal = np.array([[x, 0.0, y, 1.0, 0.0], [0.0, y, 0.0, 0.0, 1.0]])
        Dp = np.array([[fx, s], [0.0, fy]])
        return WithJacobians(self.uncalibrate(p), (Dcal, Dp))

    def calibrate(self, pixel: np.ndarray) -> np.ndarray:
        """Pixels to intrinsic coordinates."""
        fx, fy, s, u0, v0 = self._k
        u, v = as_point(pixel, 2, "pixel")
        y = (v - v0) / fy
        return np.array([(u - u0 - s * y) / fx, y])

    def retract(self, delta: np.ndarray) -> "Cal3_S2":
        return Cal3_S2.from_vector(self._k + self._check_delta(delta))

    def local_coordinates(self, other: "Cal3_S2") -> np.ndarray:
        return other._k - self._k

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        return isinstance(other, Cal3_S2) and bool(np.allclose(self._k, other._k, atol=tol, rtol=0))

    def __repr__(self) -> str:
        return "Cal3_S2(fx={:.6g}, fy={:.6g}, s={:.6g}, u0={:.6g}, v0={:.6g})".format(*self._k)


# Shared pinhole helpers

def project_to_camera(P: np.ndarray) -> np.ndarray:
    """Project a point in camera coordinates to intrinsic coordinates."""
    if P[2] <= 0:
        raise CheiralityError(float(P[2]))
    return np.array([P[0] / P[2], P[1] / P[2]])


def backproject_from_camera(p: np.ndarray, depth: float) -> np.ndarray:
    """Intrinsic coordinates and depth back to camera coordinates."""
    return np.array([p[0] * depth, p[1] * depth, depth])


def calculate_dpose(pn: np.ndarray, d: float, Dpi_pn: Optional[np.ndarray] = None) -> np.ndarray:
    """2x6 Jacobian of the projection w.r.t. the camera pose.

    Args:
        pn: Projection in intrinsic coordinates (u, v)
        d: Inverse depth of the point in the camera frame
        Dpi_pn: Derivative of the calibration map w.r.t. ``pn`` (identity if None)
    """
    u, v = pn
    uv, uu, vv = u * v, u * u, v * v
    Dpn_pose = np.array([
        [uv, -1 - uu, v, -d, 0.0, d * u],
        [1 + vv, -uv, -u, 0.0, -d, d * v],
    ])
    return Dpn_pose if Dpi_pn is None else Dpi_pn @ Dpn_pose


def calculate_dpoint(pn: np.ndarray, d: float, R: np.ndarray, Dpi_pn: Optional[np.ndarray] = None) -> np.ndarray:
    """2x3 Jacobian of the projection w.r.t. the world point."""
    u, v = pn
    Dpn_point = d * np.array([
        [R[0, 0] - u * R[0, 2], R[1, 0] - u * R[1, 2], R[2, 0] - u * R[2, 2]],
        [R[0, 1] - v * R[0, 2], R[1, 1] - v * R[1, 2], R[2, 1] - v * R[2, 2]],
    ])
    return Dpn_point if Dpi_pn is None else Dpi_pn @ Dpn_point


def level_pose(pose2: Pose2, height: float) -> Pose3:
    """Camera pose at a 2D pose and height, looking horizontally.

    ``theta == 0`` looks along world +X; image y points down (world -Z).
    """
    st, ct = np.sin(pose2.theta()), np.cos(pose2.theta())
    x = np.array([st, -ct, 0.0])
    y = np.array([0.0, 0.0, -1.0])
    z = np.array([ct, st, 0.0])
    return Pose3(Rot3.from_columns(x, y, z), np.array([pose2.x(), pose2.y(), height]))


def lookat_pose(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> Pose3:
    """Camera pose at ``eye`` looking at ``target``.

    ``up`` need not be orthogonal to the viewing direction, but must not be
    parallel to it.
    """
    eye = as_point(eye, 3, "eye")
    forward = as_point(target, 3, "target") - eye
    norm = np.linalg.norm(forward)
    if norm < 1e-12:
        raise ValueError("lookat_pose: eye and target coincide")
    zc = forward / norm
    xc = np.cross(-as_point(up, 3, "up"), zc)
    xnorm = np.linalg.norm(xc)
    if xnorm < 1e-12:
        raise ValueError("lookat_pose: up vector is parallel to the viewing direction")
    xc = xc / xnorm
    yc = np.cross(zc, xc)
    return Pose3(Rot3.from_columns(xc, yc, zc), eye)


def _range_target(target: Any) -> Any:
    if isinstance(target, (CalibratedCamera, PinholeCamera)):
        return target.pose()
    return target


class CalibratedCamera(Manifold):
    """Camera with known calibration K = I; only the pose is unknown."""

    kind = "calibrated"

    def __init__(self, pose: Optional[Pose3] = None):
        self._pose = Pose3() if pose is None else pose

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "CalibratedCamera":
        """Camera at ``Pose3.expmap(v)``."""
        return cls(Pose3.expmap(v))

    @classmethod
    def level(cls, pose2: Pose2, height: float) -> "CalibratedCamera":
        return cls(level_pose(pose2, height))

    @classmethod
    def lookat(cls, eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> "CalibratedCamera":
        return cls(lookat_pose(eye, target, up))

    @staticmethod
    def Dim() -> int:
        return 6

    def dim(self) -> int:
        return 6

    def pose(self) -> Pose3:
        return self._pose

    def retract(self, delta: np.ndarray) -> "CalibratedCamera":
        return CalibratedCamera(self._pose.retract(self._check_delta(delta)))

    def local_coordinates(self, other: "CalibratedCamera") -> np.ndarray:
        return self._pose.local_coordinates(other._pose)

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        return isinstance(other, CalibratedCamera) and self._pose.equals(other._pose, tol)

    def project(self, point: np.ndarray) -> np.ndarray:
        """Project a world point to intrinsic coordinates."""
        return project_to_camera(self._pose.transform_to(point))

    def project_with_jacobians(self, point: np.ndarray) -> WithJacobians:
        """Projection with Jacobians w.r.t. pose (2x6) and point (2x3)."""
        q = self._pose.transform_to(point)
        pn = project_to_camera(q)
        d = 1.0 / q[2]
        R = self._pose.rotation().matrix()
        return WithJacobians(pn, (calculate_dpose(pn, d), calculate_dpoint(pn, d, R)))

    def backproject(self, p: np.ndarray, depth: float) -> np.ndarray:
        """World point at ``depth`` along the ray through intrinsic point ``p``."""
        return self._pose.transform_from(backproject_from_camera(as_point(p, 2), depth))

    def range(self, target: Any) -> float:
        return self._pose.range(_range_target(target))

    def range_with_jacobians(self, target: Any) -> WithJacobians:
        r, (H_pose, H_target) = self._pose.range_with_jacobians(_range_target(target))
        if isinstance(target, PinholeCamera):
            H_target = np.hstack([H_target, np.zeros((1, 5))])
        return WithJacobians(r, (H_pose, H_target))

    def __repr__(self) -> str:
        return f"CalibratedCamera({self._pose!r})"


class PinholeCamera(Manifold):
    """Camera with a pose and estimated ``Cal3_S2`` intrinsics."""

    kind = "pinhole"

    def __init__(self, pose: Optional[Pose3] = None, calibration: Optional[Cal3_S2] = None):
        self._pose = Pose3() if pose is None else pose
        self._K = Cal3_S2() if calibration is None else calibration

    @classmethod
    def level(cls, calibration: Cal3_S2, pose2: Pose2, height: float) -> "PinholeCamera":
        return cls(level_pose(pose2, height), calibration)

    @classmethod
    def lookat(cls, eye: np.ndarray, target: np.ndarray, up: np.ndarray, calibration: Cal3_S2) -> "PinholeCamera":
        return cls(lookat_pose(eye, target, up), calibration)

    @staticmethod
    def Dim() -> int:
        return 11

    def dim(self) -> int:
        return 11

    def pose(self) -> Pose3:
        return self._pose

    def calibration(self) -> Cal3_S2:
        return self._K

    def retract(self, delta: np.ndarray) -> "PinholeCamera":
        delta = self._check_delta(delta)
        return PinholeCamera(self._pose.retract(delta[:6]), self._K.retract(delta[6:]))

    def local_coordinates(self, other: "PinholeCamera") -> np.ndarray:
        return np.concatenate([
            self._pose.local_coordinates(other._pose),
            self._K.local_coordinates(other._K),
        ])

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        return (
            isinstance(other, PinholeCamera)
            and self._pose.equals(other._pose, tol)
            and self._K.equals(other._K, tol)
        )

    def project(self, point: np.ndarray) -> np.ndarray:
        """Project a world point to pixels."""
        return self._K.uncalibrate(project_to_camera(self._pose.transform_to(point)))

    def project_with_jacobians(self, point: np.ndarray) -> WithJacobians:
        """Projection with Jacobians w.r.t. camera (2x11) and point (2x3)."""
        q = self._pose.transform_to(point)
        pn = project_to_camera(q)
        d = 1.0 / q[2]
        pixel, (Dcal, Dpi_pn) = self._K.uncalibrate_with_jacobians(pn)
        R = self._pose.rotation().matrix()
        Dcamera = np.hstack([calculate_dpose(pn, d, Dpi_pn), Dcal])
        return WithJacobians(pixel, (Dcamera, calculate_dpoint(pn, d, R, Dpi_pn)))

    def project_with_pose_jacobians(self, point: np.ndarray) -> WithJacobians:
        """Projection with Jacobians w.r.t. pose only (2x6) and point (2x3)."""
        pixel, (Dcamera, Dpoint) = self.project_with_jacobians(point)
        return WithJacobians(pixel, (Dcamera[:, :6], Dpoint))

    def backproject(self, pixel: np.ndarray, depth: float) -> np.ndarray:
        """World point at ``depth`` along the ray through ``pixel``."""
        pn = self._K.calibrate(pixel)
        return self._pose.transform_from(backproject_from_camera(pn, depth))

    def range(self, target: Any) -> float:
        return self._pose.range(_range_target(target))

    def range_with_jacobians(self, target: Any) -> WithJacobians:
        """Range Jacobians; the camera block is padded with zero intrinsics columns."""
        r, (H_pose, H_target) = self._pose.range_with_jacobians(_range_target(target))
        H_camera = np.hstack([H_pose, np.zeros((1, 5))])
        if isinstance(target, PinholeCamera):
            H_target = np.hstack([H_target, np.zeros((1, 5))])
        return WithJacobians(r, (H_camera, H_target))

    def __repr__(self) -> str:
        return f"PinholeCamera({self._pose!r}, {self._K!r})"


def camera_depth(camera: Any, point: np.ndarray) -> float:
    """Depth of a world point in the camera frame (positive in front)."""
    return float(camera.pose().transform_to(point)[2])


Camera = Union[CalibratedCamera, PinholeCamera]

CAMERA_KINDS = {cls.kind: cls for cls in (CalibratedCamera, PinholeCamera)}
