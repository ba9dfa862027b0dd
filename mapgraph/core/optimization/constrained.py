"""Inequality-constrained extension: scalar constraints ``g(x) <= 0`` with dual keys."""

import logging
import numpy as np
from typing import Any, Iterable, List, Optional

from ..errors import TypeMismatchError
from ..geometry import manifold
from ..geometry.manifold import WithJacobians
from ..models.settings import ConstraintSettings
from .factor import Factor, FactorKind
from .factor_graph import NoiseModelFactor
from .keys import Key, format_key
from .linear import LinearInequality, LinearInequalityFactorGraph
from .noise import Unit
from .values import Values, VectorValues

logger = logging.getLogger(__name__)


class NonlinearInequalityFactor(NoiseModelFactor):
    """Scalar constraint ``g(x) <= 0`` over its keys.

    Uses unit noise so the whitened error equals ``g(x)``. Each constraint
    carries a dual key naming its Lagrange multiplier.
    """

    kind = FactorKind.INEQUALITY

    def __init__(self, keys: Iterable[Key], dual_key: Key):
        super().__init__(Unit(1), keys)
        self._dual_key = dual_key

    def dual_key(self) -> Key:
        return self._dual_key

    def constraint_value(self, values: Values) -> float:
        """``g(x)``; non-positive when the constraint holds."""
        return float(self.unwhitened_error(values)[0])

    def linearize(self, values: Values) -> LinearInequality:
        """Linearize to ``A dx <= -g(x)`` keeping the dual key."""
        return LinearInequality.from_jacobian(super().linearize(values), self._dual_key)

    def __repr__(self) -> str:
        return f"{super().__repr__()}[dual={format_key(self._dual_key)}]"


class ScalarUpperBound(NonlinearInequalityFactor):
    """``x[index] <= bound``."""

    def __init__(self, key: Key, index: int, bound: float, dual_key: Key):
        super().__init__([key], dual_key)
        self.index = index
        self.bound = float(bound)

    def _component(self, x: Any) -> np.ndarray:
        if not manifold.is_vector_value(x):
            raise TypeMismatchError(f"{type(self).__name__} bounds vector values, got {type(x).__name__}")
        v = np.atleast_1d(np.asarray(x, dtype=float))
        if not 0 <= self.index < len(v):
            raise ValueError(f"Index {self.index} out of range for value of size {len(v)}")
        return v

    def evaluate_error(self, x: Any) -> np.ndarray:
        return np.array([self._component(x)[self.index] - self.bound])

    def evaluate_error_with_jacobians(self, x: Any) -> WithJacobians:
        v = self._component(x)
        H = np.zeros((1, manifold.dim(x)))
        H[0, self.index] = 1.0
        return WithJacobians(np.array([v[self.index] - self.bound]), (H,))


class ScalarLowerBound(ScalarUpperBound):
    """``x[index] >= bound``."""

    def evaluate_error(self, x: Any) -> np.ndarray:
        return -super().evaluate_error(x)

    def evaluate_error_with_jacobians(self, x: Any) -> WithJacobians:
        error, (H,) = super().evaluate_error_with_jacobians(x)
        return WithJacobians(-error, (-H,))


class MaxRangeConstraint(NonlinearInequalityFactor):
    """Distance from a pose (or camera) to a point or pose stays below ``max_range``."""

    def __init__(self, pose_key: Key, point_key: Key, max_range: float, dual_key: Key):
        super().__init__([pose_key, point_key], dual_key)
        if max_range <= 0:
            raise ValueError(f"max_range must be positive, got {max_range}")
        self.max_range = float(max_range)

    def evaluate_error(self, pose: Any, target: Any) -> np.ndarray:
        return np.array([pose.range(target) - self.max_range])

    def evaluate_error_with_jacobians(self, pose: Any, target: Any) -> WithJacobians:
        r, (H1, H2) = pose.range_with_jacobians(target)
        return WithJacobians(np.array([r - self.max_range]), (H1, H2))


class NonlinearInequalityFactorGraph:
    """Ordered collection of nonlinear inequality constraints.

    Checks that take a ``tolerance`` default to ``settings.feasibility_tol``.
    """

    def __init__(
        self,
        factors: Optional[Iterable[Factor]] = None,
        settings: Optional[ConstraintSettings] = None
    ):
        self.settings = settings or ConstraintSettings()
        self._factors: List[NonlinearInequalityFactor] = []
        for factor in factors or []:
            self.add(factor)

    def add(self, factor: Factor) -> None:
        if getattr(factor, "kind", None) is not FactorKind.INEQUALITY or not isinstance(
            factor, NonlinearInequalityFactor
        ):
            raise TypeMismatchError(
                f"NonlinearInequalityFactorGraph only holds inequality factors, got {type(factor).__name__}"
            )
        self._factors.append(factor)

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self):
        return iter(self._factors)

    def __getitem__(self, i: int) -> NonlinearInequalityFactor:
        return self._factors[i]

    def keys(self) -> List[Key]:
        return sorted({key for factor in self._factors for key in factor.keys()})

    def dual_keys(self) -> List[Key]:
        return [factor.dual_key() for factor in self._factors]

    def linearize(self, values: Values) -> LinearInequalityFactorGraph:
        """Linearize every constraint at ``values``; dual keys are preserved."""
        return LinearInequalityFactorGraph([factor.linearize(values) for factor in self._factors])

    def check_feasibility_and_complementarity(
        self,
        values: Values,
        duals: VectorValues,
        tolerance: Optional[float] = None
    ) -> bool:
        """Check primal feasibility and complementary slackness.

        A constraint with ``g(x) > tolerance`` fails immediately. A constraint
        whose dual key is absent from ``duals`` is treated as inactive and
        skipped. A constraint whose dual is present must be active, i.e.
        ``|g(x)| <= tolerance``.

        Args:
            values: Primal variables
            duals: Dual variables of the active constraints
            tolerance: Feasibility tolerance; ``settings.feasibility_tol`` if None

        Returns:
            True if every constraint passes
        """
        tolerance = self._tolerance(tolerance)
        for factor in self._factors:
            g = factor.constraint_value(values)
            if g > tolerance:
                logger.debug(f"{factor!r} violated: g = {g:.6g}")
                return False
            if not duals.exists(factor.dual_key()):
                continue
            if abs(g) > tolerance:
                logger.debug(f"{factor!r} has a dual but is not active: g = {g:.6g}")
                return False
        return True

    def _tolerance(self, tolerance: Optional[float]) -> float:
        return self.settings.feasibility_tol if tolerance is None else tolerance

    def violated_constraints(
        self, values: Values, tolerance: Optional[float] = None
    ) -> List[NonlinearInequalityFactor]:
        tolerance = self._tolerance(tolerance)
        return [factor for factor in self._factors if factor.constraint_value(values) > tolerance]

    def active_constraints(
        self, values: Values, tolerance: Optional[float] = None
    ) -> List[NonlinearInequalityFactor]:
        tolerance = self._tolerance(tolerance)
        return [factor for factor in self._factors if abs(factor.constraint_value(values)) <= tolerance]
