"""Tests for linear factors and sparse system assembly."""

import numpy as np
import pytest

from mapgraph.core.errors import MissingVariableError, TypeMismatchError
from mapgraph.core.optimization import (
    D, L, X, GaussianFactorGraph, JacobianFactor, LinearInequality, LinearInequalityFactorGraph, VectorValues
)


class TestJacobianFactor:
    """Test JacobianFactor."""

    def setup_method(self):
        self.factor = JacobianFactor(
            [X(0), L(0)],
            [np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]]), np.array([[0.0, 1.0], [1.0, 0.0]])],
            np.array([1.0, 2.0])
        )

    def test_error(self):
        delta = VectorValues({X(0): np.array([1.0, 1.0, 0.0]), L(0): np.array([0.0, 0.0])})
        np.testing.assert_allclose(self.factor.error_vector(delta), [0.0, 0.0])
        assert self.factor.error(VectorValues.zero({X(0): 3, L(0): 2})) == pytest.approx(2.5)

    def test_block_rows_must_match(self):
        with pytest.raises(ValueError):
            JacobianFactor([X(0)], [np.eye(3)], np.zeros(2))

    def test_block_count_must_match(self):
        with pytest.raises(ValueError):
            JacobianFactor([X(0), X(1)], [np.eye(2)], np.zeros(2))

    def test_duplicate_keys(self):
        with pytest.raises(ValueError):
            JacobianFactor([X(0), X(0)], [np.eye(2), np.eye(2)], np.zeros(2))

    def test_A_for_uninvolved_key(self):
        with pytest.raises(MissingVariableError):
            self.factor.A(X(5))

    def test_augmented_jacobian(self):
        Ab = self.factor.augmented_jacobian([L(0), X(0)], {L(0): 2, X(0): 3})
        expected = np.array([
            [0.0, 1.0, 1.0, 0.0, 0.0, 1.0],
            [1.0, 0.0, 0.0, 2.0, 0.0, 2.0],
        ])
        np.testing.assert_allclose(Ab, expected)


class TestGaussianFactorGraph:
    """Test assembly of linearized graphs."""

    def setup_method(self):
        self.graph = GaussianFactorGraph()
        self.graph.add(JacobianFactor([X(0)], [np.eye(2)], np.array([1.0, 2.0])))
        self.graph.add(JacobianFactor([X(0), X(1)], [-np.eye(2), np.eye(2)], np.array([0.5, 0.5])))

    def test_sparse_system_shape(self):
        system = self.graph.sparse_system()
        assert system.A.shape == (4, 4)
        assert system.ordering == [X(0), X(1)]
        np.testing.assert_allclose(system.b, [1.0, 2.0, 0.5, 0.5])

    def test_sparse_matches_dense(self):
        ordering = [X(1), X(0)]
        system = self.graph.sparse_system(ordering)
        dims = self.graph.dims()
        dense = np.vstack([f.augmented_jacobian(ordering, dims)[:, :-1] for f in self.graph])
        np.testing.assert_allclose(system.A.toarray(), dense)

    def test_ordering_missing_key(self):
        with pytest.raises(MissingVariableError):
            self.graph.sparse_system([X(0)])

    def test_least_squares_solution_zeroes_gradient(self):
        system = self.graph.sparse_system()
        A = system.A.toarray()
        x = np.linalg.lstsq(A, system.b, rcond=None)[0]
        delta = system.to_vector_values(x)
        np.testing.assert_allclose(delta.at(X(0)), [1.0, 2.0])
        np.testing.assert_allclose(delta.at(X(1)), [1.5, 2.5])

    def test_gradient_at_zero(self):
        gradient = self.graph.gradient_at_zero()
        np.testing.assert_allclose(gradient.at(X(0)), [-0.5, -1.5])
        np.testing.assert_allclose(gradient.at(X(1)), [-0.5, -0.5])

    def test_rejects_inequalities(self):
        inequality = LinearInequality([X(0)], [np.array([[1.0, 0.0]])], np.array([1.0]), D(0))
        with pytest.raises(TypeMismatchError):
            self.graph.add(inequality)

    def test_inconsistent_widths(self):
        self.graph.add(JacobianFactor([X(0)], [np.ones((1, 3))], np.zeros(1)))
        with pytest.raises(ValueError):
            self.graph.dims()


class TestLinearInequality:
    """Test linear inequality constraints."""

    def setup_method(self):
        # dx[0] <= 1
        self.constraint = LinearInequality([X(0)], [np.array([[1.0, 0.0]])], np.array([1.0]), D(0))

    def test_single_row_only(self):
        with pytest.raises(ValueError):
            LinearInequality([X(0)], [np.eye(2)], np.zeros(2), D(0))

    @pytest.mark.parametrize("dx,satisfied,active", [
        ([0.0, 5.0], True, False),
        ([1.0, 0.0], True, True),
        ([2.0, 0.0], False, False),
    ])
    def test_satisfied_and_active(self, dx, satisfied, active):
        delta = VectorValues({X(0): np.array(dx)})
        assert self.constraint.is_satisfied(delta) == satisfied
        assert self.constraint.is_active(delta) == active

    def test_graph(self):
        graph = LinearInequalityFactorGraph([self.constraint])
        assert graph.dual_keys() == [D(0)]
        assert graph.is_feasible(VectorValues({X(0): np.zeros(2)}))
        assert graph.active_set(VectorValues({X(0): np.array([1.0, 0.0])})) == [self.constraint]

    def test_graph_rejects_jacobian_factor(self):
        with pytest.raises(TypeMismatchError):
            LinearInequalityFactorGraph().add(JacobianFactor([X(0)], [np.eye(1)], np.zeros(1)))
