"""SO(3) and SE(3) exponential and logarithm maps.

Tangent vectors of SE(3) are ordered rotation first, ``xi = [omega, v]``,
matching the pose Jacobians used by the camera model.
"""

import numpy as np
from typing import Tuple

from .quaternions import quat_from_axis_angle, quat_to_matrix

_SMALL_ANGLE = 1e-6
_SERIES_ANGLE = 1e-3


def skew_symmetric(v: np.ndarray) -> np.ndarray:
    """Create skew-symmetric matrix from 3D vector."""
    if v.shape != (3,):
        raise ValueError(f"v must be 3-element vector, got shape {v.shape}")

    return np.array([
        [0, -v[2], v[1]],
        [v[2], 0, -v[0]],
        [-v[1], v[0], 0]
    ])


def vee(Omega: np.ndarray) -> np.ndarray:
    """Inverse of skew_symmetric."""
    return np.array([Omega[2, 1], Omega[0, 2], Omega[1, 0]])


def so3_exp(phi: np.ndarray) -> np.ndarray:
    """Rotation vector to rotation matrix."""
    if phi.shape != (3,):
        raise ValueError(f"phi must be 3-element vector, got shape {phi.shape}")

    theta = np.linalg.norm(phi)
    if theta < _SMALL_ANGLE:
        Phi = skew_symmetric(phi)
        return np.eye(3) + Phi + 0.5 * Phi @ Phi

    return quat_to_matrix(quat_from_axis_angle(phi / theta, theta))


def so3_log(R: np.ndarray) -> np.ndarray:
    """Rotation matrix to rotation vector, with |phi| in [0, pi]."""
    if R.shape != (3, 3):
        raise ValueError(f"R must be 3x3 matrix, got shape {R.shape}")

    cos_theta = np.clip((np.trace(R) - 1) / 2, -1.0, 1.0)
    theta = np.arccos(cos_theta)

    if theta < _SMALL_ANGLE:
        return 0.5 * vee(R - R.T)

    if np.pi - theta < 1e-4:
        # Near pi the antisymmetric part vanishes; recover the axis from the
        # symmetric part using the largest diagonal entry.
        k = int(np.argmax(np.diag(R)))
        axis = R[:, k].copy()
        axis[k] += 1.0
        axis /= np.sqrt(2.0 * (1.0 + R[k, k]))
        # Pick the sign that agrees with the (small) antisymmetric part
        if np.dot(axis, vee(R - R.T)) < 0:
            axis = -axis
        return theta * axis

    return theta / (2 * np.sin(theta)) * vee(R - R.T)


def _v_matrix(phi: np.ndarray) -> np.ndarray:
    theta = np.linalg.norm(phi)
    Phi = skew_symmetric(phi)
    if theta < _SMALL_ANGLE:
        return np.eye(3) + 0.5 * Phi + Phi @ Phi / 6.0

    s, half = np.sin(theta), np.sin(theta / 2)
    return np.eye(3) + 2 * half**2 / theta**2 * Phi + (theta - s) / theta**3 * Phi @ Phi


def _v_inverse(phi: np.ndarray) -> np.ndarray:
    theta = np.linalg.norm(phi)
    Phi = skew_symmetric(phi)
    if theta < _SERIES_ANGLE:
        return np.eye(3) - 0.5 * Phi + Phi @ Phi / 12.0

    half = theta / 2
    return np.eye(3) - 0.5 * Phi + (1 - half / np.tan(half)) / theta**2 * Phi @ Phi


def se3_exp(xi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Convert se(3) algebra element to SE(3) group (R, t).

    Args:
        xi: 6-element vector [omega, v], rotation part first

    Returns:
        Tuple of (R, t) where R is 3x3 rotation matrix, t is 3-element translation
    """
    if xi.shape != (6,):
        raise ValueError(f"xi must be 6-element vector, got shape {xi.shape}")

    phi = xi[:3]
    rho = xi[3:]
    return so3_exp(phi), _v_matrix(phi) @ rho


def se3_log(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Convert SE(3) group element (R, t) to se(3) algebra [omega, v]."""
    if t.shape != (3,):
        raise ValueError(f"t must be 3-element vector, got shape {t.shape}")

    phi = so3_log(R)
    return np.concatenate([phi, _v_inverse(phi) @ t])


def compose(R1: np.ndarray, t1: np.ndarray, R2: np.ndarray, t2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Compose two SE(3) transformations: T1 * T2."""
    return R1 @ R2, R1 @ t2 + t1


def invert(R: np.ndarray, t: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Invert SE(3) transformation."""
    R_inv = R.T
    return R_inv, -R_inv @ t
