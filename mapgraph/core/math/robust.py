"""Robust loss functions for reweighting whitened residuals.

Each loss is evaluated on the norm of a whitened residual and returns
``(rho, weight)``: the robust cost replacing ``0.5 * r**2`` and the
iteratively-reweighted least squares weight ``rho'(r) / r``.
"""

import numpy as np
from typing import Tuple


def huber_loss(residual: np.ndarray, delta: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Huber robust loss function.

    Args:
        residual: Residual values (typically whitened error norms)
        delta: Threshold parameter

    Returns:
        Tuple of (rho, weights)
    """
    abs_residual = np.abs(residual)
    is_inlier = abs_residual <= delta

    rho = np.where(
        is_inlier,
        0.5 * residual**2,
        delta * (abs_residual - 0.5 * delta)
    )
    weights = np.where(is_inlier, 1.0, delta / np.maximum(abs_residual, 1e-12))

    return rho, weights


def cauchy_loss(residual: np.ndarray, sigma: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Cauchy robust loss function.

    Args:
        residual: Residual values
        sigma: Scale parameter

    Returns:
        Tuple of (rho, weights)
    """
    sigma2 = sigma**2
    r2_over_sigma2 = residual**2 / sigma2

    rho = 0.5 * sigma2 * np.log1p(r2_over_sigma2)
    weights = 1.0 / (1 + r2_over_sigma2)

    return rho, weights


def no_loss(residual: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Plain least squares: rho = 0.5 * r**2, weight = 1."""
    return 0.5 * residual**2, np.ones_like(residual)


ROBUST_LOSSES = ("none", "huber", "cauchy")


def apply_robust_loss(residual: np.ndarray, loss_type: str = "huber", k: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Apply a robust loss by name.

    Args:
        residual: Residual values
        loss_type: One of ROBUST_LOSSES
        k: Threshold (Huber) or scale (Cauchy) parameter

    Returns:
        Tuple of (rho, weights)
    """
    if loss_type == "none":
        return no_loss(residual)
    elif loss_type == "huber":
        return huber_loss(residual, k)
    elif loss_type == "cauchy":
        return cauchy_loss(residual, k)
    else:
        raise ValueError(f"Unknown loss type: {loss_type}")
