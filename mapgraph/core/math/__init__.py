"""Math primitives for mapgraph."""

from .se3 import se3_exp, se3_log, so3_exp, so3_log, skew_symmetric, compose, invert
from .quaternions import quat_normalize, quat_from_axis_angle, quat_to_matrix, matrix_to_quat
from .robust import huber_loss, cauchy_loss, apply_robust_loss
from .jacobians import finite_difference_jacobian, numerical_derivative, check_jacobian, JacobianTester

__all__ = [
    "se3_exp",
    "se3_log",
    "so3_exp",
    "so3_log",
    "skew_symmetric",
    "compose",
    "invert",
    "quat_normalize",
    "quat_from_axis_angle",
    "quat_to_matrix",
    "matrix_to_quat",
    "huber_loss",
    "cauchy_loss",
    "apply_robust_loss",
    "finite_difference_jacobian",
    "numerical_derivative",
    "check_jacobian",
    "JacobianTester",
]
