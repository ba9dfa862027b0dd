"""mapgraph - factor-graph optimization for mapping and structure from motion

Nonlinear least squares over manifold-valued variables (planar and spatial
poses, points, cameras) with an inequality-constrained extension.
"""

__version__ = "0.1.0"

# Geometry
from .core.geometry import Pose2, Pose3, Rot3, Cal3_S2, CalibratedCamera, PinholeCamera

# Errors
from .core.errors import MapGraphError, CheiralityError, MissingVariableError, TypeMismatchError

# Optimization
from .core.optimization import (
    symbol,
    Values,
    VectorValues,
    NonlinearFactorGraph,
    NonlinearInequalityFactorGraph,
    GraphOptimizer,
)
from .core.models.settings import OptimizerSettings, ConstraintSettings
from .core.models.results import OptimizationResult

# Solvers
from .core.solver import SparseCholeskySolver, ConjugateGradientSolver

__all__ = [
    # Version
    "__version__",
    # Geometry
    "Pose2",
    "Pose3",
    "Rot3",
    "Cal3_S2",
    "CalibratedCamera",
    "PinholeCamera",
    # Errors
    "MapGraphError",
    "CheiralityError",
    "MissingVariableError",
    "TypeMismatchError",
    # Optimization
    "symbol",
    "Values",
    "VectorValues",
    "NonlinearFactorGraph",
    "NonlinearInequalityFactorGraph",
    "GraphOptimizer",
    "OptimizerSettings",
    "ConstraintSettings",
    "OptimizationResult",
    # Solvers
    "SparseCholeskySolver",
    "ConjugateGradientSolver",
]
