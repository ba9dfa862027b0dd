"""Noise models: whitening of residuals and Jacobians."""

import numpy as np
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

from ..math.robust import ROBUST_LOSSES, apply_robust_loss


class NoiseModel(ABC):
    """Base class for measurement noise models."""

    def __init__(self, dim: int):
        if dim <= 0:
            raise ValueError(f"Noise model dimension must be positive, got {dim}")
        self._dim = dim

    def dim(self) -> int:
        return self._dim

    @abstractmethod
    def whiten(self, v: np.ndarray) -> np.ndarray:
        """Scale a residual to unit covariance."""

    @abstractmethod
    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        """Scale the rows of a Jacobian block like ``whiten``."""

    def distance(self, v: np.ndarray) -> float:
        """Squared Mahalanobis norm of ``v``."""
        w = self.whiten(v)
        return float(w @ w)

    def loss(self, v: np.ndarray) -> float:
        """Contribution of residual ``v`` to the graph error."""
        return 0.5 * self.distance(v)

    def whiten_system(self, A: Sequence[np.ndarray], b: np.ndarray) -> Tuple[List[np.ndarray], np.ndarray]:
        """Whiten Jacobian blocks and right-hand side together."""
        self._check(b)
        return [self.whiten_matrix(Ai) for Ai in A], self.whiten(b)

    def _check(self, v: np.ndarray) -> None:
        if np.shape(v)[0] != self._dim:
            raise ValueError(f"{type(self).__name__}: expected {self._dim} rows, got {np.shape(v)[0]}")


class Gaussian(NoiseModel):
    """Full-covariance Gaussian noise, stored as upper-triangular sqrt information R.

    ``whiten(v) = R @ v`` with ``R^T R = inverse(covariance)``.
    """

    def __init__(self, sqrt_information: np.ndarray):
        R = np.atleast_2d(np.asarray(sqrt_information, dtype=float))
        if R.shape[0] != R.shape[1]:
            raise ValueError(f"Square root information must be square, got shape {R.shape}")
        super().__init__(R.shape[0])
        self._R = R

    @classmethod
    def from_sqrt_information(cls, R: np.ndarray) -> "Gaussian":
        return cls(R)

    @classmethod
    def from_information(cls, information: np.ndarray) -> "Gaussian":
        L = np.linalg.cholesky(np.asarray(information, dtype=float))
        return cls(L.T)

    @classmethod
    def from_covariance(cls, covariance: np.ndarray) -> "Gaussian":
        covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
        return cls.from_information(np.linalg.inv(covariance))

    def R(self) -> np.ndarray:
        return self._R.copy()

    def sqrt_information(self) -> np.ndarray:
        return self.R()

    def covariance(self) -> np.ndarray:
        R_inv = np.linalg.inv(self._R)
        return R_inv @ R_inv.T

    def whiten(self, v: np.ndarray) -> np.ndarray:
        self._check(v)
        return self._R @ v

    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        self._check(H)
        return self._R @ H

    def __repr__(self) -> str:
        return f"Gaussian(dim={self._dim})"


class Diagonal(Gaussian):
    """Independent noise per residual component."""

    def __init__(self, sigmas: np.ndarray):
        sigmas = np.atleast_1d(np.asarray(sigmas, dtype=float))
        if np.any(sigmas <= 0):
            raise ValueError("Diagonal noise sigmas must be positive")
        self._sigmas = sigmas
        self._inv_sigmas = 1.0 / sigmas
        super().__init__(np.diag(self._inv_sigmas))

    @classmethod
    def from_sigmas(cls, sigmas: Sequence[float]) -> "Diagonal":
        return cls(np.asarray(sigmas, dtype=float))

    @classmethod
    def from_variances(cls, variances: Sequence[float]) -> "Diagonal":
        return cls(np.sqrt(np.asarray(variances, dtype=float)))

    @classmethod
    def from_precisions(cls, precisions: Sequence[float]) -> "Diagonal":
        return cls(1.0 / np.sqrt(np.asarray(precisions, dtype=float)))

    def sigmas(self) -> np.ndarray:
        return self._sigmas.copy()

    def variances(self) -> np.ndarray:
        return self._sigmas ** 2

    def whiten(self, v: np.ndarray) -> np.ndarray:
        self._check(v)
        return self._inv_sigmas * v

    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        self._check(H)
        return self._inv_sigmas[:, None] * H

    def __repr__(self) -> str:
        return f"Diagonal(sigmas={self._sigmas.tolist()})"


class Isotropic(Diagonal):
    """Same sigma on every component."""

    def __init__(self, dim: int, sigma: float):
        super().__init__(np.full(dim, float(sigma)))
        self._sigma = float(sigma)

    @classmethod
    def from_sigma(cls, dim: int, sigma: float) -> "Isotropic":
        return cls(dim, sigma)

    def sigma(self) -> float:
        return self._sigma

    def __repr__(self) -> str:
        return f"Isotropic(dim={self._dim}, sigma={self._sigma})"


class Unit(Isotropic):
    """Unit covariance: whitening is the identity."""

    def __init__(self, dim: int):
        super().__init__(dim, 1.0)

    @classmethod
    def create(cls, dim: int) -> "Unit":
        return cls(dim)

    def whiten(self, v: np.ndarray) -> np.ndarray:
        self._check(v)
        return np.asarray(v, dtype=float).copy()

    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        self._check(H)
        return np.asarray(H, dtype=float).copy()

    def __repr__(self) -> str:
        return f"Unit(dim={self._dim})"


class Robust(NoiseModel):
    """Wraps a Gaussian model with a robust loss on the whitened error norm.

    Linearization scales the whitened system by ``sqrt(weight)`` so the
    Gauss-Newton step is the iteratively reweighted least squares step.
    """

    def __init__(self, base: Gaussian, loss_type: str = "huber", k: float = 1.345):
        if loss_type not in ROBUST_LOSSES:
            raise ValueError(f"Unknown loss type: {loss_type}")
        if k <= 0:
            raise ValueError("Robust loss parameter must be positive")
        super().__init__(base.dim())
        self.base = base
        self.loss_type = loss_type
        self.k = k

    @classmethod
    def create(cls, loss_type: str, k: float, base: Gaussian) -> "Robust":
        return cls(base, loss_type, k)

    def whiten(self, v: np.ndarray) -> np.ndarray:
        return self.base.whiten(v)

    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        return self.base.whiten_matrix(H)

    def weight(self, v: np.ndarray) -> float:
        norm = np.sqrt(self.base.distance(v))
        _, w = apply_robust_loss(np.array([norm]), self.loss_type, self.k)
        return float(w[0])

    def loss(self, v: np.ndarray) -> float:
        norm = np.sqrt(self.base.distance(v))
        rho, _ = apply_robust_loss(np.array([norm]), self.loss_type, self.k)
        return float(rho[0])

    def whiten_system(self, A: Sequence[np.ndarray], b: np.ndarray) -> Tuple[List[np.ndarray], np.ndarray]:
        sqrt_w = np.sqrt(self.weight(b))
        A_white, b_white = self.base.whiten_system(A, b)
        return [sqrt_w * Ai for Ai in A_white], sqrt_w * b_white

    def __repr__(self) -> str:
        return f"Robust({self.loss_type}, k={self.k}, base={self.base!r})"
