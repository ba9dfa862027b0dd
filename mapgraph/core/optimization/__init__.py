"""Factor graphs, variable stores and the optimization driver."""

from .keys import Key, symbol, symbol_chr, symbol_index, format_key, X, L, C, P, D
from .values import Values, VectorValues
from .noise import NoiseModel, Gaussian, Diagonal, Isotropic, Unit, Robust
from .factor import Factor, FactorKind
from .linear import (
    JacobianFactor,
    GaussianFactorGraph,
    LinearInequality,
    LinearInequalityFactorGraph,
)
from .factor_graph import NoiseModelFactor, NonlinearFactorGraph
from .factors import (
    PriorFactor,
    BetweenFactor,
    GenericProjectionFactor,
    CameraProjectionFactor,
    RangeFactor,
    BearingRangeFactor2D,
)
from .constrained import (
    NonlinearInequalityFactor,
    ScalarUpperBound,
    ScalarLowerBound,
    MaxRangeConstraint,
    NonlinearInequalityFactorGraph,
)
from .dataset import Dataset, DatasetLoader
from .optimizer import GraphOptimizer, OptimizerState

__all__ = [
    "Key",
    "symbol",
    "symbol_chr",
    "symbol_index",
    "format_key",
    "X",
    "L",
    "C",
    "P",
    "D",
    "Values",
    "VectorValues",
    "NoiseModel",
    "Gaussian",
    "Diagonal",
    "Isotropic",
    "Unit",
    "Robust",
    "Factor",
    "FactorKind",
    "JacobianFactor",
    "GaussianFactorGraph",
    "LinearInequality",
    "LinearInequalityFactorGraph",
    "NoiseModelFactor",
    "NonlinearFactorGraph",
    "PriorFactor",
    "BetweenFactor",
    "GenericProjectionFactor",
    "CameraProjectionFactor",
    "RangeFactor",
    "BearingRangeFactor2D",
    "NonlinearInequalityFactor",
    "ScalarUpperBound",
    "ScalarLowerBound",
    "MaxRangeConstraint",
    "NonlinearInequalityFactorGraph",
    "Dataset",
    "DatasetLoader",
    "GraphOptimizer",
    "OptimizerState",
]
