"""Linear solve services and diagnostics for mapgraph."""

from .linear_solvers import (
    LinearSolver,
    SparseCholeskySolver,
    ConjugateGradientSolver,
    JacobiPreconditioner,
    make_linear_solver,
)
from .diagnostics import SolveDiagnostics, analyze_jacobian_rank, compute_reprojection_errors

__all__ = [
    "LinearSolver",
    "SparseCholeskySolver",
    "ConjugateGradientSolver",
    "JacobiPreconditioner",
    "make_linear_solver",
    "SolveDiagnostics",
    "analyze_jacobian_rank",
    "compute_reprojection_errors",
]
