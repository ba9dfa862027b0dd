"""Solver diagnostics and analysis tools."""

import numpy as np
from typing import Any, Dict, List, Optional, Tuple
from scipy.linalg import svd

from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.keys import format_key
from ..optimization.values import Values


class SolveDiagnostics:
    """Diagnostics of a factor graph at a set of values."""

    def __init__(self, top_k: int = 10):
        self.top_k = top_k

    def compute_diagnostics(self, graph: NonlinearFactorGraph, values: Values) -> Dict[str, Any]:
        """Compute per-factor errors, the largest residuals and rank information.

        Args:
            graph: Factor graph
            values: Values at which to evaluate

        Returns:
            Dictionary with diagnostic information
        """
        diagnostics = {}

        factor_errors = self.per_factor_errors(graph, values)
        diagnostics["factor_errors"] = factor_errors
        diagnostics["largest_residuals"] = sorted(
            factor_errors.items(), key=lambda item: item[1], reverse=True
        )[:self.top_k]

        system = graph.linearize(values).sparse_system(values.keys())
        diagnostics["statistics"] = compute_statistics(system.b)
        rank = analyze_jacobian_rank(system.A.toarray())
        diagnostics["rank"] = rank
        diagnostics["unconstrained_dofs"] = self._unconstrained_variables(system, rank)

        return diagnostics

    def per_factor_errors(self, graph: NonlinearFactorGraph, values: Values) -> Dict[str, float]:
        """Error of each nonlinear factor, labelled ``"<index>:<repr>"``."""
        return {f"{i}:{graph[i]!r}": float(error) for i, error in graph.factor_errors(values)}

    def largest_residuals(self, graph: NonlinearFactorGraph, values: Values) -> List[Tuple[str, float]]:
        errors = self.per_factor_errors(graph, values)
        return sorted(errors.items(), key=lambda item: item[1], reverse=True)[:self.top_k]

    def _unconstrained_variables(self, system: Any, rank: Dict[str, Any]) -> List[str]:
        """Variables involved in the nullspace of the linearized system."""
        null_vectors = rank.get("nullspace_basis")
        if null_vectors is None or null_vectors.shape[1] == 0:
            return []

        unconstrained = []
        offset = 0
        for key in system.ordering:
            d = system.dims[key]
            magnitude = np.linalg.norm(null_vectors[offset:offset + d, :])
            if magnitude > 0.1:
                unconstrained.append(f"{format_key(key)} (magnitude: {magnitude:.3f})")
            offset += d

        if not unconstrained:
            unconstrained.append(f"System has {null_vectors.shape[1]} unconstrained DOFs")
        return unconstrained


def analyze_jacobian_rank(jacobian: np.ndarray, tolerance: float = 1e-6) -> Dict[str, Any]:
    """Analyze Jacobian matrix rank and condition.

    Args:
        jacobian: Dense Jacobian matrix
        tolerance: Numerical tolerance for rank determination, relative to
            the largest singular value

    Returns:
        Dictionary with rank analysis
    """
    if jacobian.size == 0:
        return {
            "rank": 0,
            "full_rank": True,
            "condition_number": 1.0,
            "singular_values": [],
            "nullspace_dimension": 0,
            "nullspace_basis": np.zeros((jacobian.shape[1], 0)),
        }

    _, s, Vt = svd(jacobian, full_matrices=True)

    rank = int(np.sum(s > tolerance * s[0])) if len(s) > 0 and s[0] > 0 else 0
    nullspace_dim = jacobian.shape[1] - rank
    condition_number = s[0] / s[-1] if len(s) > 0 and s[-1] > 0 else np.inf

    return {
        "rank": rank,
        "full_rank": rank == min(jacobian.shape),
        "condition_number": float(condition_number),
        "singular_values": s.tolist(),
        "nullspace_dimension": int(nullspace_dim),
        "nullspace_basis": Vt[rank:].T,
        "matrix_shape": jacobian.shape,
    }


def compute_statistics(residuals: np.ndarray) -> Dict[str, float]:
    """Compute overall whitened residual statistics."""
    if len(residuals) == 0:
        return {
            "total_residuals": 0,
            "rms_residual": 0.0,
            "max_residual": 0.0,
            "mean_residual": 0.0,
            "std_residual": 0.0
        }

    return {
        "total_residuals": len(residuals),
        "rms_residual": float(np.sqrt(np.mean(residuals**2))),
        "max_residual": float(np.max(np.abs(residuals))),
        "mean_residual": float(np.mean(residuals)),
        "std_residual": float(np.std(residuals))
    }


def compute_reprojection_errors(graph: NonlinearFactorGraph, values: Values) -> Dict[str, Any]:
    """Pixel reprojection error statistics over the projection factors of a graph."""
    from ..optimization.factors import CameraProjectionFactor, GenericProjectionFactor

    errors = []
    for factor in graph:
        if isinstance(factor, (GenericProjectionFactor, CameraProjectionFactor)):
            errors.append(np.linalg.norm(factor.unwhitened_error(values)))

    if not errors:
        return {"n_observations": 0}

    errors = np.array(errors)
    return {
        "n_observations": len(errors),
        "mean_error": float(np.mean(errors)),
        "median_error": float(np.median(errors)),
        "max_error": float(np.max(errors)),
        "rms_error": float(np.sqrt(np.mean(errors**2))),
        "percentile_95": float(np.percentile(errors, 95)),
    }
