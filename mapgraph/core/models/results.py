"""Optimization results."""

import math
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator


def _finite(v: float) -> float:
    if math.isinf(v) or math.isnan(v):
        return 1e10  # Large but finite value
    return v


class IterationRecord(BaseModel):
    """State after one linearize-solve-retract step."""

    iteration: int = Field(description="Iteration number, starting at 1")
    error: float = Field(description="Total graph error after the step")
    previous_error: float = Field(description="Total graph error before the step")
    step_norm: float = Field(description="Norm of the tangent correction")
    step_halvings: int = Field(default=0, description="Times the correction was halved to reduce the error")

    @field_validator("error", "previous_error", "step_norm")
    @classmethod
    def validate_finite(cls, v):
        """Ensure floats are JSON serializable."""
        return _finite(v)


class OptimizationResult(BaseModel):
    """Outcome of an optimizer run."""

    converged: bool = Field(description="Whether a convergence criterion was met")
    iterations: int = Field(description="Number of iterations performed")
    initial_error: float = Field(description="Total graph error at the initial values")
    final_error: float = Field(description="Total graph error at the final values")
    termination_reason: str = Field(description="Reason for convergence/termination")
    history: List[IterationRecord] = Field(
        default_factory=list,
        description="Per-iteration records"
    )
    largest_residuals: List[Tuple[str, float]] = Field(
        default_factory=list,
        description="Largest factor errors by factor description"
    )
    computation_time: Optional[float] = Field(
        default=None,
        description="Optimization time in seconds"
    )

    @field_validator("initial_error", "final_error")
    @classmethod
    def validate_error(cls, v):
        """Ensure errors are JSON serializable."""
        return _finite(v)

    @field_validator("computation_time")
    @classmethod
    def validate_computation_time(cls, v):
        """Ensure computation_time is JSON serializable."""
        if v is not None and (math.isinf(v) or math.isnan(v)):
            return None
        return v

    @field_validator("largest_residuals")
    @classmethod
    def validate_largest_residuals(cls, v):
        """Ensure largest residuals are JSON serializable."""
        return [(name, _finite(value)) for name, value in v]
