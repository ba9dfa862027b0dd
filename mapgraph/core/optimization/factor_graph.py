"""Nonlinear factors and the factor graph that linearizes them."""

import logging
import numpy as np
from abc import abstractmethod
from concurrent.futures import Executor
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..errors import MissingVariableError, TypeMismatchError
from ..geometry.manifold import WithJacobians
from .factor import Factor, FactorKind
from .keys import Key, format_key
from .linear import GaussianFactorGraph, JacobianFactor
from .noise import NoiseModel
from .values import Values, VectorValues

logger = logging.getLogger(__name__)


class NoiseModelFactor(Factor):
    """Nonlinear factor whose residual is whitened by a noise model.

    Subclasses implement ``evaluate_error`` (residual only) and
    ``evaluate_error_with_jacobians`` (residual plus one Jacobian per key,
    in key order). Residuals follow the ``h(x) - z`` convention.
    """

    kind = FactorKind.NONLINEAR

    def __init__(self, noise_model: NoiseModel, keys: Iterable[Key]):
        super().__init__(list(keys))
        self._noise_model = noise_model

    def noise_model(self) -> NoiseModel:
        return self._noise_model

    def dim(self) -> int:
        return self._noise_model.dim()

    @abstractmethod
    def evaluate_error(self, *values: Any) -> np.ndarray:
        """Unwhitened residual given the values of ``keys()`` in order."""

    @abstractmethod
    def evaluate_error_with_jacobians(self, *values: Any) -> WithJacobians:
        """Unwhitened residual with one Jacobian per key."""

    def _values_for(self, values: Values) -> Tuple[Any, ...]:
        for key in self._keys:
            if key not in values:
                raise MissingVariableError(key, f"required by {self!r}")
        return tuple(values.at(key) for key in self._keys)

    def _check_dim(self, error: np.ndarray) -> np.ndarray:
        error = np.atleast_1d(np.asarray(error, dtype=float))
        if error.shape != (self.dim(),):
            raise ValueError(
                f"{self!r}: residual has shape {error.shape}, noise model expects {self.dim()}"
            )
        return error

    def unwhitened_error(self, values: Values) -> np.ndarray:
        return self._check_dim(self.evaluate_error(*self._values_for(values)))

    def whitened_error(self, values: Values) -> np.ndarray:
        return self._noise_model.whiten(self.unwhitened_error(values))

    def error(self, values: Values) -> float:
        """``0.5 * ||whitened error||^2`` (or the robust loss)."""
        return self._noise_model.loss(self.unwhitened_error(values))

    def linearize(self, values: Values) -> JacobianFactor:
        """First-order expansion at ``values`` as a whitened JacobianFactor."""
        error, jacobians = self.evaluate_error_with_jacobians(*self._values_for(values))
        error = self._check_dim(error)
        if len(jacobians) != len(self._keys):
            raise ValueError(f"{self!r}: expected {len(self._keys)} Jacobians, got {len(jacobians)}")
        A, b = self._noise_model.whiten_system([np.atleast_2d(H) for H in jacobians], error)
        return JacobianFactor(self._keys, A, -b)


class NonlinearFactorGraph:
    """Ordered collection of factors defining an estimation problem."""

    def __init__(self, factors: Optional[Iterable[Factor]] = None):
        """Initialize factor graph.

        Args:
            factors: Initial factors, e.g. another graph to copy
        """
        self._factors: List[Factor] = []
        for factor in factors or []:
            self.add(factor)

    def add(self, factor: Factor) -> None:
        if not isinstance(factor, Factor):
            raise TypeMismatchError(f"Expected a factor, got {type(factor).__name__}")
        self._factors.append(factor)

    def add_prior(self, key: Key, value: Any, noise_model: NoiseModel) -> None:
        """Add a PriorFactor pinning ``key`` to ``value``."""
        from .factors import PriorFactor

        self.add(PriorFactor(key, value, noise_model))

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self) -> Iterator[Factor]:
        return iter(self._factors)

    def __getitem__(self, i: int) -> Factor:
        return self._factors[i]

    def keys(self) -> List[Key]:
        return sorted({key for factor in self._factors for key in factor.keys()})

    def check_keys(self, values: Values) -> None:
        """Raise MissingVariableError for the first key absent from values."""
        for factor in self._factors:
            for key in factor.keys():
                if key not in values:
                    raise MissingVariableError(key, f"required by {factor!r}")

    def error(self, values: Values) -> float:
        """Total graph error at ``values``."""
        total = 0.0
        for factor in self._factors:
            if factor.kind is FactorKind.NONLINEAR:
                total += factor.error(values)
            elif factor.kind is FactorKind.LINEAR:
                total += factor.error(VectorValues.zero(factor.dims()))
            elif factor.kind is FactorKind.INEQUALITY:
                raise TypeMismatchError(f"{factor!r} is an inequality factor; use NonlinearInequalityFactorGraph")
            else:
                raise TypeMismatchError(f"Unknown factor kind {factor.kind}")
        return total

    def linearize(self, values: Values, executor: Optional[Executor] = None) -> GaussianFactorGraph:
        """Linearize every factor at ``values``.

        Args:
            values: Linearization point; must contain every key of the graph
            executor: Optional executor to linearize factors concurrently.
                Factors only read ``values``, so any order is safe; the
                result keeps graph order.

        Returns:
            GaussianFactorGraph over the tangent spaces of the variables
        """
        self.check_keys(values)

        if executor is None:
            linear_factors = [self._linearize_factor(factor, values) for factor in self._factors]
        else:
            linear_factors = list(executor.map(lambda f: self._linearize_factor(f, values), self._factors))

        logger.debug(f"Linearized {len(linear_factors)} factors over {len(values)} variables")

        return GaussianFactorGraph(linear_factors)

    @staticmethod
    def _linearize_factor(factor: Factor, values: Values) -> JacobianFactor:
        if factor.kind is FactorKind.NONLINEAR:
            return factor.linearize(values)
        elif factor.kind is FactorKind.LINEAR:
            return factor
        elif factor.kind is FactorKind.INEQUALITY:
            raise TypeMismatchError(f"{factor!r} is an inequality factor; use NonlinearInequalityFactorGraph")
        raise TypeMismatchError(f"Unknown factor kind {factor.kind}")

    def factor_errors(self, values: Values) -> List[Tuple[int, float]]:
        """Per-factor errors as (index, error) pairs, in graph order."""
        return [
            (i, factor.error(values))
            for i, factor in enumerate(self._factors)
            if factor.kind is FactorKind.NONLINEAR
        ]

    def summary(self) -> Dict[str, Any]:
        """Get summary information about the factor graph.

        Returns:
            Dictionary with graph statistics
        """
        factor_type_counts: Dict[str, int] = {}
        total_residual_size = 0

        for factor in self._factors:
            factor_type = type(factor).__name__
            factor_type_counts[factor_type] = factor_type_counts.get(factor_type, 0) + 1
            total_residual_size += factor.dim()

        keys = self.keys()
        return {
            "factors": {
                "total": len(self._factors),
                "total_residuals": total_residual_size,
                "by_type": factor_type_counts,
            },
            "variables": {
                "total": len(keys),
                "keys": [format_key(k) for k in keys],
            },
        }
