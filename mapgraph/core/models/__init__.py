"""Settings and result models for mapgraph."""

from .settings import OptimizerSettings, ConstraintSettings
from .results import OptimizationResult, IterationRecord

__all__ = [
    "OptimizerSettings",
    "ConstraintSettings",
    "OptimizationResult",
    "IterationRecord",
]
