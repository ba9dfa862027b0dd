"""Linear solve services for the Gauss-Newton step.

The optimizer only relies on ``solve(graph, ordering) -> VectorValues``;
these adapters assemble the whitened system with ``scipy.sparse`` and hand
it to ``scipy.sparse.linalg``.
"""

import logging
import numpy as np
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from scipy.sparse import diags
from scipy.sparse.linalg import cg, spsolve

from ..models.settings import OptimizerSettings
from ..optimization.keys import Key
from ..optimization.linear import GaussianFactorGraph, SparseSystem
from ..optimization.values import VectorValues


@runtime_checkable
class LinearSolver(Protocol):
    """Black-box service returning the least-squares correction of a linear graph."""

    def solve(self, graph: GaussianFactorGraph, ordering: Optional[Sequence[Key]] = None) -> VectorValues:
        ...


def _check_finite(x: np.ndarray, what: str) -> np.ndarray:
    if not np.all(np.isfinite(x)):
        raise np.linalg.LinAlgError(f"{what} produced a non-finite solution; the system is singular")
    return x


class SparseCholeskySolver:
    """Direct solve of the normal equations ``A^T A x = A^T b``."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def solve(self, graph: GaussianFactorGraph, ordering: Optional[Sequence[Key]] = None) -> VectorValues:
        system = graph.sparse_system(ordering)
        if system.A.shape[1] == 0:
            return system.to_vector_values(np.zeros(0))

        H = (system.A.T @ system.A).tocsc()
        g = system.A.T @ system.b
        x = np.atleast_1d(spsolve(H, g))
        self.logger.debug(f"Solved {H.shape[0]}x{H.shape[1]} normal equations with {H.nnz} nonzeros")
        return system.to_vector_values(_check_finite(x, "Sparse Cholesky solve"))


class JacobiPreconditioner:
    """Column scaling ``x = D^-1 y`` with ``D = sqrt(diag(A^T A))``.

    ``to_native`` maps a preconditioned vector back to the tangent
    correction of the graph the preconditioner was built from.
    """

    def __init__(self, system: SparseSystem):
        column_norms = np.sqrt(np.asarray(system.A.multiply(system.A).sum(axis=0)).reshape(-1))
        column_norms[column_norms == 0] = 1.0
        self.scale = column_norms
        self.ordering: List[Key] = list(system.ordering)
        self.dims: Dict[Key, int] = dict(system.dims)

    def to_native(self, y: np.ndarray) -> VectorValues:
        y = np.asarray(y, dtype=float).reshape(-1)
        if y.shape != self.scale.shape:
            raise ValueError(f"Preconditioned vector must have {len(self.scale)} elements, got {y.shape}")
        return VectorValues.from_vector(y / self.scale, self.ordering, self.dims)

    def from_native(self, delta: VectorValues) -> np.ndarray:
        return delta.vector(self.ordering) * self.scale


class ConjugateGradientSolver:
    """Jacobi-preconditioned conjugate gradients on the normal equations."""

    def __init__(self, tolerance: float = 1e-10, max_iterations: int = 1000):
        """Initialize solver.

        Args:
            tolerance: Relative residual tolerance passed to ``cg``
            max_iterations: Iteration cap passed to ``cg``
        """
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.preconditioner: Optional[JacobiPreconditioner] = None
        self.last_info = 0
        self.logger = logging.getLogger(__name__)

    def initialize(self, graph: Any, values: Any) -> None:
        """Build the preconditioner from the linearization at ``values``."""
        self.preconditioner = JacobiPreconditioner(graph.linearize(values).sparse_system())

    def solve_preconditioned(self, graph: GaussianFactorGraph, ordering: Optional[Sequence[Key]] = None) -> np.ndarray:
        """Solve for the correction in preconditioned coordinates ``y = D x``."""
        system = graph.sparse_system(ordering)
        self.preconditioner = JacobiPreconditioner(system)
        if system.A.shape[1] == 0:
            return np.zeros(0)

        A_scaled = system.A @ diags(1.0 / self.preconditioner.scale)
        H = (A_scaled.T @ A_scaled).tocsr()
        g = A_scaled.T @ system.b
        y, info = cg(H, g, rtol=self.tolerance, atol=0.0, maxiter=self.max_iterations)
        self.last_info = info
        if info > 0:
            self.logger.warning(f"Conjugate gradients stopped after {info} iterations without converging")
        elif info < 0:
            raise np.linalg.LinAlgError(f"Conjugate gradients failed with code {info}")
        return _check_finite(y, "Conjugate gradients")

    def solve(self, graph: GaussianFactorGraph, ordering: Optional[Sequence[Key]] = None) -> VectorValues:
        y = self.solve_preconditioned(graph, ordering)
        return self.preconditioner.to_native(y)


def make_linear_solver(settings: Optional[OptimizerSettings] = None) -> LinearSolver:
    """Create the linear solve service named in ``settings.linear_solver``."""
    settings = settings or OptimizerSettings()
    if settings.linear_solver == "cholesky":
        return SparseCholeskySolver()
    elif settings.linear_solver == "cg":
        return ConjugateGradientSolver(settings.cg_tolerance, settings.cg_max_iterations)
    raise ValueError(f"Unknown linear solver: {settings.linear_solver}")
