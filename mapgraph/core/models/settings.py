"""Optimizer and constraint settings."""

from typing import Literal
from pydantic import BaseModel, Field, model_validator


class OptimizerSettings(BaseModel):
    """Gauss-Newton loop and linear solver configuration."""

    max_iterations: int = Field(default=100, gt=0, description="Maximum optimizer iterations")
    relative_error_tol: float = Field(default=1e-5, ge=0, description="Stop when the relative error decrease falls below this")
    absolute_error_tol: float = Field(default=1e-5, ge=0, description="Stop when the absolute error decrease falls below this")
    error_tol: float = Field(default=0.0, ge=0, description="Stop when the total error falls below this")
    max_step_halvings: int = Field(
        default=5,
        ge=0,
        description="Times a step that raises the error is halved before the run terminates"
    )
    linear_solver: Literal["cholesky", "cg"] = Field(
        default="cholesky",
        description="Linear solve service used for each step"
    )
    cg_tolerance: float = Field(default=1e-10, gt=0, description="Relative residual tolerance of conjugate gradients")
    cg_max_iterations: int = Field(default=1000, gt=0, description="Iteration cap of conjugate gradients")
    verbose: bool = Field(default=False, description="Log every iteration at INFO instead of DEBUG")

    @model_validator(mode="after")
    def validate_tolerances(self):
        """At least one stopping criterion besides the iteration cap must be usable."""
        if self.relative_error_tol == 0 and self.absolute_error_tol == 0 and self.error_tol == 0:
            raise ValueError("At least one of relative_error_tol, absolute_error_tol, error_tol must be positive")
        return self


class ConstraintSettings(BaseModel):
    """Tolerances of the inequality-constrained extension."""

    feasibility_tol: float = Field(default=1e-9, ge=0, description="Tolerance of the KKT feasibility check")
