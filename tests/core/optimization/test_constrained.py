"""Tests for inequality constraints and the feasibility/complementarity check."""

import numpy as np
import pytest

from mapgraph.core.errors import TypeMismatchError
from mapgraph.core.geometry import Pose2, Pose3
from mapgraph.core.models.settings import ConstraintSettings
from mapgraph.core.math.jacobians import numerical_derivative
from mapgraph.core.optimization import (
    D, L, X,
    LinearInequality,
    MaxRangeConstraint,
    NonlinearInequalityFactorGraph,
    PriorFactor,
    ScalarLowerBound,
    ScalarUpperBound,
    Unit,
    Values,
    VectorValues,
)


class TestScalarBounds:
    """Test scalar bound constraints."""

    def test_upper_bound_value(self):
        constraint = ScalarUpperBound(L(0), 1, 2.0, D(0))
        values = Values({L(0): np.array([0.0, 3.0])})
        assert constraint.constraint_value(values) == pytest.approx(1.0)

    def test_lower_bound_value(self):
        constraint = ScalarLowerBound(L(0), 0, 2.0, D(0))
        values = Values({L(0): np.array([3.0, 0.0])})
        assert constraint.constraint_value(values) == pytest.approx(-1.0)

    def test_lower_bound_jacobian(self):
        constraint = ScalarLowerBound(L(0), 1, 0.0, D(0))
        _, (H,) = constraint.evaluate_error_with_jacobians(np.array([1.0, 2.0, 3.0]))
        np.testing.assert_allclose(H, [[0.0, -1.0, 0.0]])

    def test_rejects_manifold_values(self):
        constraint = ScalarUpperBound(X(0), 0, 1.0, D(0))
        with pytest.raises(TypeMismatchError):
            constraint.constraint_value(Values({X(0): Pose2()}))

    def test_index_out_of_range(self):
        constraint = ScalarUpperBound(L(0), 3, 1.0, D(0))
        with pytest.raises(ValueError):
            constraint.constraint_value(Values({L(0): np.zeros(2)}))

    def test_linearize_keeps_dual_key(self):
        constraint = ScalarUpperBound(L(0), 0, 1.0, D(3))
        linear = constraint.linearize(Values({L(0): np.array([0.25, 0.0])}))
        assert isinstance(linear, LinearInequality)
        assert linear.dual_key() == D(3)
        np.testing.assert_allclose(linear.A(L(0)), [[1.0, 0.0]])
        np.testing.assert_allclose(linear.b(), [0.75])


class TestMaxRangeConstraint:
    """Test the maximum range constraint."""

    def test_value(self):
        constraint = MaxRangeConstraint(X(0), L(0), 5.0, D(0))
        values = Values({X(0): Pose3(), L(0): np.array([3.0, 4.0, 0.0])})
        assert constraint.constraint_value(values) == pytest.approx(0.0)

    def test_jacobians(self):
        constraint = MaxRangeConstraint(X(0), L(0), 1.0, D(0))
        pose, point = Pose2(1.0, -1.0, 0.3), np.array([2.0, 2.0])
        _, (H_pose, H_point) = constraint.evaluate_error_with_jacobians(pose, point)
        np.testing.assert_allclose(H_pose, numerical_derivative(constraint.evaluate_error, [pose, point], 0), atol=1e-6)
        np.testing.assert_allclose(H_point, numerical_derivative(constraint.evaluate_error, [pose, point], 1), atol=1e-6)

    @pytest.mark.parametrize("max_range", [0.0, -1.0])
    def test_non_positive_range(self, max_range):
        with pytest.raises(ValueError):
            MaxRangeConstraint(X(0), L(0), max_range, D(0))


class TestFeasibilityAndComplementarity:
    """Test primal feasibility and complementary slackness checks."""

    def setup_method(self):
        # x[0] <= 1 with dual d0
        self.graph = NonlinearInequalityFactorGraph([ScalarUpperBound(L(0), 0, 1.0, D(0))])

    def values_at(self, x):
        return Values({L(0): np.array([x])})

    def test_violated_constraint_fails(self):
        assert not self.graph.check_feasibility_and_complementarity(self.values_at(1.5), VectorValues())

    def test_inactive_without_dual_passes(self):
        """A constraint whose dual is absent is skipped."""
        assert self.graph.check_feasibility_and_complementarity(self.values_at(0.0), VectorValues())

    def test_inactive_with_dual_fails(self):
        duals = VectorValues({D(0): np.array([0.5])})
        assert not self.graph.check_feasibility_and_complementarity(self.values_at(0.0), duals)

    def test_active_with_dual_passes(self):
        duals = VectorValues({D(0): np.array([0.5])})
        assert self.graph.check_feasibility_and_complementarity(self.values_at(1.0), duals)

    def test_tolerance(self):
        duals = VectorValues({D(0): np.array([0.5])})
        values = self.values_at(1.0 + 1e-6)
        assert not self.graph.check_feasibility_and_complementarity(values, duals)
        assert self.graph.check_feasibility_and_complementarity(values, duals, tolerance=1e-5)

    def test_settings_tolerance_is_default(self):
        graph = NonlinearInequalityFactorGraph(
            [ScalarUpperBound(L(0), 0, 1.0, D(0))],
            settings=ConstraintSettings(feasibility_tol=1e-5)
        )
        duals = VectorValues({D(0): np.array([0.5])})
        values = self.values_at(1.0 + 1e-6)

        assert graph.check_feasibility_and_complementarity(values, duals)
        assert graph.violated_constraints(values) == []
        assert graph.active_constraints(values) == [graph[0]]
        assert not graph.check_feasibility_and_complementarity(values, duals, tolerance=1e-9)

    def test_empty_graph_passes(self):
        assert NonlinearInequalityFactorGraph().check_feasibility_and_complementarity(Values(), VectorValues())

    def test_violated_and_active_lists(self):
        graph = NonlinearInequalityFactorGraph([
            ScalarUpperBound(L(0), 0, 1.0, D(0)),
            ScalarLowerBound(L(0), 0, 0.0, D(1)),
            ScalarUpperBound(L(0), 0, 0.5, D(2)),
        ])
        values = self.values_at(1.0)
        assert graph.violated_constraints(values) == [graph[2]]
        assert graph.active_constraints(values) == [graph[0]]


class TestNonlinearInequalityFactorGraph:
    """Test the inequality graph container."""

    def test_rejects_non_inequality_factor(self):
        with pytest.raises(TypeMismatchError):
            NonlinearInequalityFactorGraph().add(PriorFactor(L(0), np.zeros(2), Unit(2)))

    def test_keys_and_duals(self):
        graph = NonlinearInequalityFactorGraph()
        graph.add(MaxRangeConstraint(X(0), L(1), 10.0, D(0)))
        graph.add(ScalarLowerBound(L(0), 0, 0.0, D(1)))
        assert graph.keys() == [L(0), L(1), X(0)]
        assert graph.dual_keys() == [D(0), D(1)]

    def test_linearize_preserves_dual_keys(self):
        graph = NonlinearInequalityFactorGraph([
            MaxRangeConstraint(X(0), L(0), 10.0, D(4)),
            ScalarUpperBound(L(0), 2, 1.0, D(7)),
        ])
        values = Values({X(0): Pose3(), L(0): np.array([1.0, 2.0, 2.0])})
        linear = graph.linearize(values)
        assert linear.dual_keys() == [D(4), D(7)]
        np.testing.assert_allclose(linear[0].b(), [7.0])
        np.testing.assert_allclose(linear[1].b(), [-1.0])
