"""Numerical Jacobians for verifying the analytic derivatives."""

import numpy as np
from typing import Any, Callable, Sequence, Tuple

from ..geometry import manifold


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian of a vector function using finite differences.

    Args:
        func: Function that takes x and returns a vector
        x: Input parameters
        h: Step size for finite differences
        method: Finite difference method ("forward", "central")

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    J = np.zeros((len(f0), len(x)))

    for j in range(len(x)):
        x_plus = x.copy()
        x_plus[j] += h
        f_plus = np.atleast_1d(func(x_plus))

        if method == "forward":
            J[:, j] = (f_plus - f0) / h
        elif method == "central":
            x_minus = x.copy()
            x_minus[j] -= h
            J[:, j] = (f_plus - np.atleast_1d(func(x_minus))) / (2 * h)
        else:
            raise ValueError(f"Unknown finite difference method: {method}")

    return J


def numerical_derivative(
    func: Callable[..., Any],
    args: Sequence[Any],
    wrt: int,
    h: float = 1e-6
) -> np.ndarray:
    """Jacobian of ``func(*args)`` w.r.t. argument ``wrt`` on the manifold.

    The argument is perturbed with ``retract`` and the output difference is
    measured with ``local_coordinates`` at the unperturbed output, so the
    result is directly comparable to the analytic Jacobians returned by the
    ``*_with_jacobians`` methods.
    """
    args = list(args)
    base_arg = args[wrt]
    f0 = func(*args)
    n = manifold.dim(base_arg)
    m = manifold.dim(f0)

    J = np.zeros((m, n))
    for j in range(n):
        step = np.zeros(n)
        step[j] = h
        args[wrt] = manifold.retract(base_arg, step)
        f_plus = manifold.local_coordinates(f0, func(*args))
        args[wrt] = manifold.retract(base_arg, -step)
        f_minus = manifold.local_coordinates(f0, func(*args))
        J[:, j] = (f_plus - f_minus) / (2 * h)
    args[wrt] = base_arg

    return J


def check_jacobian(
    analytic: np.ndarray,
    numeric: np.ndarray,
    atol: float = 1e-6,
    rtol: float = 1e-6
) -> Tuple[bool, float]:
    """Compare an analytic Jacobian against a numerical one.

    Returns:
        Tuple of (is_correct, max_abs_error)
    """
    analytic = np.atleast_2d(analytic)
    numeric = np.atleast_2d(numeric)
    if analytic.shape != numeric.shape:
        raise ValueError(f"Jacobian shapes differ: {analytic.shape} vs {numeric.shape}")

    max_error = float(np.max(np.abs(analytic - numeric))) if analytic.size else 0.0
    return bool(np.allclose(analytic, numeric, atol=atol, rtol=rtol)), max_error


class JacobianTester:
    """Checks an analytic-derivative function over many sample arguments.

    ``func_with_jacobians(*args)`` must return ``WithJacobians`` with one
    Jacobian per argument; ``func(*args)`` returns only the value.
    """

    def __init__(self, atol: float = 1e-6, rtol: float = 1e-6, h: float = 1e-6):
        self.atol = atol
        self.rtol = rtol
        self.h = h

    def check(self, func: Callable[..., Any], func_with_jacobians: Callable[..., Any], args: Sequence[Any]) -> bool:
        _, jacobians = func_with_jacobians(*args)
        for i, H in enumerate(jacobians):
            numeric = numerical_derivative(func, args, i, self.h)
            ok, _ = check_jacobian(H, numeric, self.atol, self.rtol)
            if not ok:
                return False
        return True

    def check_all(
        self,
        func: Callable[..., Any],
        func_with_jacobians: Callable[..., Any],
        samples: Sequence[Sequence[Any]]
    ) -> bool:
        return all(self.check(func, func_with_jacobians, args) for args in samples)
