"""Gauss-Newton driver: linearize, solve, retract, repeat."""

import logging
import time
import numpy as np
from enum import Enum
from typing import Any, List, Optional, Union

from ..errors import MissingVariableError
from ..geometry import manifold
from ..models.results import IterationRecord, OptimizationResult
from ..models.settings import OptimizerSettings
from .dataset import DatasetLoader
from .factor_graph import NonlinearFactorGraph
from .keys import Key, format_key
from .linear import GaussianFactorGraph
from .noise import Unit
from .values import Values, VectorValues


class OptimizerState(Enum):
    """Lifecycle of a GraphOptimizer."""
    CONSTRUCTED = "constructed"
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    TERMINATED = "terminated"


class GraphOptimizer:
    """Drives a nonlinear factor graph to a least-squares estimate.

    The optimizer owns a copy of the graph plus an anchoring prior, and the
    current Values, which are replaced (never mutated) on every update. The
    linear solve is delegated to a service with ``solve(graph, ordering)``.
    """

    def __init__(
        self,
        graph: NonlinearFactorGraph,
        initial: Values,
        anchor_key: Optional[Key] = None,
        anchor: bool = True,
        settings: Optional[OptimizerSettings] = None
    ):
        """Initialize optimizer.

        Args:
            graph: Factor graph to optimize; copied, not modified
            initial: Initial estimate for every key of the graph
            anchor_key: Key pinned by a unit-noise prior at its initial
                value (smallest key if None)
            anchor: Whether to add the anchoring prior at all
            settings: Optimizer settings
        """
        self.settings = settings or OptimizerSettings()
        self.logger = logging.getLogger(__name__)

        self.graph = NonlinearFactorGraph(graph)
        self.graph.check_keys(initial)
        self.values = initial.copy()

        self.anchor_key = None
        if anchor:
            if len(initial) == 0:
                raise ValueError("Cannot anchor an empty set of values")
            key = min(initial.keys()) if anchor_key is None else anchor_key
            if key not in initial:
                raise MissingVariableError(key, "anchor")
            value = initial.at(key)
            self.graph.add_prior(key, value, Unit(manifold.dim(value)))
            self.anchor_key = key

        unused = sorted(set(self.values.keys()) - set(self.graph.keys()))
        if unused:
            names = ", ".join(format_key(key) for key in unused)
            raise ValueError(f"Variables not referenced by any factor: {names}")

        self.ordering: List[Key] = self.values.keys()
        self.solver: Any = None
        self.state = OptimizerState.CONSTRUCTED
        self.iteration = 0
        self.history: List[IterationRecord] = []

    @classmethod
    def from_dataset(
        cls,
        loader: DatasetLoader,
        name: str,
        path: Optional[str] = None,
        settings: Optional[OptimizerSettings] = None,
        **kwargs
    ) -> "GraphOptimizer":
        """Build an optimizer from a dataset loader.

        The anchoring prior is skipped for datasets that are already
        anchored unless ``anchor`` is passed explicitly.
        """
        dataset = loader(name, path)
        kwargs.setdefault("anchor", not dataset.anchored)
        return cls(dataset.graph, dataset.initial, settings=settings, **kwargs)

    def initialize(self, solver: Any = None) -> "GraphOptimizer":
        """Attach the linear solve service.

        Args:
            solver: Object with ``solve(GaussianFactorGraph, ordering)``; the
                one named in settings if None. Its ``initialize(graph,
                values)`` is called when defined.
        """
        if solver is None:
            from ..solver.linear_solvers import make_linear_solver

            solver = make_linear_solver(self.settings)
        if callable(getattr(solver, "initialize", None)):
            solver.initialize(self.graph, self.values)
        self.solver = solver
        self.state = OptimizerState.INITIALIZED
        self.logger.debug(f"Initialized with {type(solver).__name__}")
        return self

    def _require_solver(self) -> None:
        if self.solver is None:
            raise RuntimeError("Optimizer has no linear solver; call initialize() first")

    def error(self) -> float:
        return self.graph.error(self.values)

    def linearize(self) -> GaussianFactorGraph:
        """Linearize the graph at the current values."""
        return self.graph.linearize(self.values)

    def update(self, delta: Union[VectorValues, np.ndarray]) -> Values:
        """Retract the current values by ``delta``.

        Args:
            delta: VectorValues, or a flat vector laid out in ``self.ordering``

        Returns:
            The new current values
        """
        if not isinstance(delta, VectorValues):
            delta = VectorValues.from_vector(delta, self.ordering, self.values.dims())
        self.values = self.values.retract(delta)
        self.state = OptimizerState.ITERATING
        return self.values

    def update_preconditioned(self, y: np.ndarray) -> Values:
        """Retract by a correction expressed in the solver's preconditioned coordinates."""
        self._require_solver()
        preconditioner = getattr(self.solver, "preconditioner", None)
        if preconditioner is None:
            raise RuntimeError(f"{type(self.solver).__name__} has no preconditioner")
        return self.update(preconditioner.to_native(y))

    def iterate(self) -> IterationRecord:
        """Run one linearize-solve-retract step."""
        self._require_solver()

        previous_error = self.error()
        previous_values = self.values
        delta = self.solver.solve(self.linearize(), self.ordering)
        self.update(delta)
        error = self.error()

        halvings = 0
        while error > previous_error and halvings < self.settings.max_step_halvings:
            delta = delta * 0.5
            halvings += 1
            self.values = previous_values.retract(delta)
            error = self.error()
        if halvings:
            self.logger.debug(f"Step halved {halvings} times, error {error:.6g}")
        self.iteration += 1

        record = IterationRecord(
            iteration=self.iteration,
            error=error,
            previous_error=previous_error,
            step_norm=delta.norm(),
            step_halvings=halvings
        )
        self.history.append(record)

        log = self.logger.info if self.settings.verbose else self.logger.debug
        log(f"Iteration {record.iteration}: error {record.previous_error:.6g} -> {record.error:.6g}, "
            f"|dx| = {record.step_norm:.3g}")
        return record

    def _check_convergence(self, previous_error: float, new_error: float) -> Optional[str]:
        if new_error <= self.settings.error_tol:
            return f"Converged: error {new_error:.6g} below error_tol"
        decrease = abs(previous_error - new_error)
        if decrease <= self.settings.absolute_error_tol:
            return "Converged: absolute error decrease below tolerance"
        if new_error < previous_error and decrease / previous_error <= self.settings.relative_error_tol:
            return "Converged: relative error decrease below tolerance"
        return None

    def optimize(self) -> OptimizationResult:
        """Iterate until convergence or the iteration cap.

        Cheirality and missing-variable errors propagate; non-convergence and
        linear solve failures are reported in the result.

        Returns:
            Optimization result with the iteration history
        """
        if self.solver is None:
            self.initialize()

        start_time = time.time()
        initial_error = self.error()
        self.logger.info(
            f"Optimizing {len(self.values)} variables, {len(self.graph)} factors, initial error {initial_error:.6g}"
        )

        reason = None
        converged = False
        current_error = initial_error
        if current_error <= self.settings.error_tol:
            reason = "Converged: initial error below error_tol"
            converged = True

        while not converged and self.iteration < self.settings.max_iterations:
            try:
                record = self.iterate()
            except np.linalg.LinAlgError as e:
                self.logger.warning(f"Linear solve failed: {e}")
                reason = f"Linear solve failed: {e}"
                break

            current_error = record.error
            reason = self._check_convergence(record.previous_error, record.error)
            converged = reason is not None
            if not converged and record.error > record.previous_error:
                self.logger.warning(
                    f"Error increased from {record.previous_error:.6g} to {record.error:.6g}"
                )
                reason = "Terminated: error increased"
                break

        if reason is None:
            reason = f"Terminated: reached max_iterations ({self.settings.max_iterations})"

        self.state = OptimizerState.CONVERGED if converged else OptimizerState.TERMINATED
        self.logger.info(f"{reason} after {self.iteration} iterations, final error {current_error:.6g}")

        from ..solver.diagnostics import SolveDiagnostics

        largest = SolveDiagnostics().largest_residuals(self.graph, self.values)

        return OptimizationResult(
            converged=converged,
            iterations=self.iteration,
            initial_error=initial_error,
            final_error=current_error,
            termination_reason=reason,
            history=list(self.history),
            largest_residuals=largest,
            computation_time=time.time() - start_time
        )

    def __repr__(self) -> str:
        anchor = format_key(self.anchor_key) if self.anchor_key is not None else None
        return f"GraphOptimizer(state={self.state.value}, variables={len(self.values)}, anchor={anchor})"
