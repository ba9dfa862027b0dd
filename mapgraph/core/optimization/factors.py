"""Measurement factors for pose graphs, bearing/range SLAM and bundle adjustment."""

import numpy as np
from typing import Any, Optional

from ..errors import TypeMismatchError
from ..geometry import manifold
from ..geometry.camera import Cal3_S2, CalibratedCamera, PinholeCamera
from ..geometry.manifold import WithJacobians, as_point
from ..geometry.pose2 import Pose2, wrap_angle
from ..geometry.pose3 import Pose3
from .factor_graph import NoiseModelFactor
from .keys import Key
from .noise import NoiseModel


def _check_noise_dim(factor: NoiseModelFactor, expected: int) -> None:
    if factor.dim() != expected:
        raise ValueError(f"{type(factor).__name__}: noise model has dim {factor.dim()}, measurement has {expected}")


class PriorFactor(NoiseModelFactor):
    """Unary factor pulling a variable towards a known value.

    Residual is ``local_coordinates(prior, x)``.
    """

    def __init__(self, key: Key, prior: Any, noise_model: NoiseModel):
        super().__init__(noise_model, [key])
        self.prior = prior
        _check_noise_dim(self, manifold.dim(prior))

    def evaluate_error(self, x: Any) -> np.ndarray:
        return manifold.local_coordinates(self.prior, x)

    def evaluate_error_with_jacobians(self, x: Any) -> WithJacobians:
        # Exact for vector spaces; first-order exact at zero error on groups
        return WithJacobians(self.evaluate_error(x), (np.eye(self.dim()),))


class BetweenFactor(NoiseModelFactor):
    """Relative measurement (odometry) between two variables.

    For poses the prediction is ``x1^-1 * x2`` and the residual is
    ``local_coordinates(measured, prediction)``; for vectors it is
    ``(x2 - x1) - measured``. Pose Jacobians neglect the derivative of the
    logarithm, which is exact at zero error.
    """

    def __init__(self, key1: Key, key2: Key, measured: Any, noise_model: NoiseModel):
        super().__init__(noise_model, [key1, key2])
        self.measured = measured
        _check_noise_dim(self, manifold.dim(measured))

    def evaluate_error(self, x1: Any, x2: Any) -> np.ndarray:
        if manifold.is_vector_value(x1):
            return np.atleast_1d(np.asarray(x2, dtype=float) - np.asarray(x1, dtype=float) - self.measured)
        return manifold.local_coordinates(self.measured, x1.between(x2))

    def evaluate_error_with_jacobians(self, x1: Any, x2: Any) -> WithJacobians:
        if manifold.is_vector_value(x1):
            n = self.dim()
            return WithJacobians(self.evaluate_error(x1, x2), (-np.eye(n), np.eye(n)))
        if not isinstance(x1, (Pose2, Pose3)):
            raise TypeMismatchError(f"BetweenFactor does not support {type(x1).__name__}")
        hx, (H1, H2) = x1.between_with_jacobians(x2)
        return WithJacobians(manifold.local_coordinates(self.measured, hx), (H1, H2))


class GenericProjectionFactor(NoiseModelFactor):
    """Pixel (or intrinsic-coordinate) observation of a point from a pose.

    With ``calibration=None`` the measurement is in intrinsic coordinates
    and a CalibratedCamera is used; otherwise pixels through PinholeCamera
    with the fixed calibration.
    """

    def __init__(
        self,
        measured: np.ndarray,
        noise_model: NoiseModel,
        pose_key: Key,
        point_key: Key,
        calibration: Optional[Cal3_S2] = None
    ):
        super().__init__(noise_model, [pose_key, point_key])
        self.measured = as_point(measured, 2, "measured")
        self.calibration = calibration
        _check_noise_dim(self, 2)

    def _camera(self, pose: Pose3) -> Any:
        if self.calibration is None:
            return CalibratedCamera(pose)
        return PinholeCamera(pose, self.calibration)

    def evaluate_error(self, pose: Pose3, point: np.ndarray) -> np.ndarray:
        return self._camera(pose).project(point) - self.measured

    def evaluate_error_with_jacobians(self, pose: Pose3, point: np.ndarray) -> WithJacobians:
        camera = self._camera(pose)
        if camera.kind == "calibrated":
            projected, (Dpose, Dpoint) = camera.project_with_jacobians(point)
        elif camera.kind == "pinhole":
            projected, (Dpose, Dpoint) = camera.project_with_pose_jacobians(point)
        else:
            raise TypeMismatchError(f"Unknown camera kind {camera.kind}")
        return WithJacobians(projected - self.measured, (Dpose, Dpoint))


class CameraProjectionFactor(NoiseModelFactor):
    """Observation of a point by a camera variable (pose and, for pinhole
    cameras, intrinsics are both estimated)."""

    def __init__(self, measured: np.ndarray, noise_model: NoiseModel, camera_key: Key, point_key: Key):
        super().__init__(noise_model, [camera_key, point_key])
        self.measured = as_point(measured, 2, "measured")
        _check_noise_dim(self, 2)

    def evaluate_error(self, camera: Any, point: np.ndarray) -> np.ndarray:
        return camera.project(point) - self.measured

    def evaluate_error_with_jacobians(self, camera: Any, point: np.ndarray) -> WithJacobians:
        kind = getattr(camera, "kind", None)
        if kind not in ("calibrated", "pinhole"):
            raise TypeMismatchError(f"CameraProjectionFactor expects a camera, got {type(camera).__name__}")
        projected, (Dcamera, Dpoint) = camera.project_with_jacobians(point)
        return WithJacobians(projected - self.measured, (Dcamera, Dpoint))


class RangeFactor(NoiseModelFactor):
    """Measured distance from a pose or camera to a point or another pose."""

    def __init__(self, key1: Key, key2: Key, measured: float, noise_model: NoiseModel):
        super().__init__(noise_model, [key1, key2])
        self.measured = float(measured)
        _check_noise_dim(self, 1)

    def evaluate_error(self, x1: Any, x2: Any) -> np.ndarray:
        return np.array([x1.range(x2) - self.measured])

    def evaluate_error_with_jacobians(self, x1: Any, x2: Any) -> WithJacobians:
        r, (H1, H2) = x1.range_with_jacobians(x2)
        return WithJacobians(np.array([r - self.measured]), (H1, H2))


class BearingRangeFactor2D(NoiseModelFactor):
    """Planar bearing and range from a Pose2 to a 2D landmark.

    Residual is ``[wrap(bearing - measured_bearing), range - measured_range]``.
    """

    def __init__(self, pose_key: Key, point_key: Key, bearing: float, range_: float, noise_model: NoiseModel):
        super().__init__(noise_model, [pose_key, point_key])
        self.measured_bearing = wrap_angle(bearing)
        self.measured_range = float(range_)
        _check_noise_dim(self, 2)

    def evaluate_error(self, pose: Pose2, point: np.ndarray) -> np.ndarray:
        return np.array([
            wrap_angle(pose.bearing(point) - self.measured_bearing),
            pose.range(point) - self.measured_range,
        ])

    def evaluate_error_with_jacobians(self, pose: Pose2, point: np.ndarray) -> WithJacobians:
        b, (Hb_pose, Hb_point) = pose.bearing_with_jacobians(point)
        r, (Hr_pose, Hr_point) = pose.range_with_jacobians(point)
        error = np.array([wrap_angle(b - self.measured_bearing), r - self.measured_range])
        return WithJacobians(error, (np.vstack([Hb_pose, Hr_pose]), np.vstack([Hb_point, Hr_point])))
