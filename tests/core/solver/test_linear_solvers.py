"""Tests for the linear solve services."""

import logging

import numpy as np
import pytest

from mapgraph.core.models.settings import OptimizerSettings
from mapgraph.core.optimization import L, X, GaussianFactorGraph, JacobianFactor, VectorValues
from mapgraph.core.solver import (
    ConjugateGradientSolver,
    JacobiPreconditioner,
    LinearSolver,
    SparseCholeskySolver,
    make_linear_solver,
)


def make_graph():
    """Overdetermined, badly scaled linear system over two keys."""
    rng = np.random.default_rng(7)
    graph = GaussianFactorGraph()
    graph.add(JacobianFactor([X(0)], [100.0 * np.eye(3)], np.array([1.0, 2.0, 3.0])))
    graph.add(JacobianFactor([X(0), L(0)], [rng.normal(size=(2, 3)), rng.normal(size=(2, 2))], np.array([0.5, -1.0])))
    graph.add(JacobianFactor([L(0)], [np.diag([0.01, 10.0])], np.array([0.3, 0.2])))
    return graph


def dense_solution(graph):
    system = graph.sparse_system()
    x = np.linalg.lstsq(system.A.toarray(), system.b, rcond=None)[0]
    return system.to_vector_values(x)


class TestSparseCholeskySolver:
    """Test the direct sparse solver."""

    def test_matches_dense_least_squares(self):
        graph = make_graph()
        assert SparseCholeskySolver().solve(graph).equals(dense_solution(graph), 1e-9)

    def test_respects_ordering(self):
        graph = make_graph()
        delta = SparseCholeskySolver().solve(graph, [L(0), X(0)])
        assert delta.equals(dense_solution(graph), 1e-9)

    def test_empty_graph(self):
        assert len(SparseCholeskySolver().solve(GaussianFactorGraph())) == 0

    @pytest.mark.filterwarnings("ignore")
    def test_singular_system(self):
        graph = GaussianFactorGraph([JacobianFactor([X(0), X(1)], [-np.eye(2), np.eye(2)], np.ones(2))])
        with pytest.raises(np.linalg.LinAlgError):
            SparseCholeskySolver().solve(graph)


class TestConjugateGradientSolver:
    """Test the preconditioned iterative solver."""

    def test_matches_direct_solver(self):
        graph = make_graph()
        delta = ConjugateGradientSolver(tolerance=1e-12).solve(graph)
        assert delta.equals(SparseCholeskySolver().solve(graph), 1e-8)
        assert delta.keys() == [L(0), X(0)]

    def test_preconditioned_coordinates(self):
        graph = make_graph()
        solver = ConjugateGradientSolver(tolerance=1e-12)
        y = solver.solve_preconditioned(graph)
        np.testing.assert_allclose(solver.preconditioner.to_native(y).vector(), SparseCholeskySolver().solve(graph).vector(), atol=1e-8)

    def test_iteration_cap_warns(self, caplog):
        solver = ConjugateGradientSolver(tolerance=1e-14, max_iterations=1)
        with caplog.at_level(logging.WARNING, logger="mapgraph.core.solver.linear_solvers"):
            solver.solve(make_graph())
        assert solver.last_info > 0
        assert any("without converging" in record.message for record in caplog.records)

    def test_empty_graph(self):
        assert len(ConjugateGradientSolver().solve(GaussianFactorGraph())) == 0


class TestJacobiPreconditioner:
    """Test the column scaling preconditioner."""

    def setup_method(self):
        self.system = make_graph().sparse_system()
        self.preconditioner = JacobiPreconditioner(self.system)

    def test_scale_is_column_norm(self):
        expected = np.linalg.norm(self.system.A.toarray(), axis=0)
        np.testing.assert_allclose(self.preconditioner.scale, expected)

    def test_round_trip(self):
        delta = VectorValues({L(0): np.array([1.0, -1.0]), X(0): np.array([0.1, 0.2, 0.3])})
        y = self.preconditioner.from_native(delta)
        assert self.preconditioner.to_native(y).equals(delta, 1e-12)

    def test_wrong_size(self):
        with pytest.raises(ValueError):
            self.preconditioner.to_native(np.zeros(2))

    def test_empty_column_scale(self):
        graph = GaussianFactorGraph([JacobianFactor([X(0)], [np.array([[1.0, 0.0]])], np.ones(1))])
        preconditioner = JacobiPreconditioner(graph.sparse_system())
        np.testing.assert_allclose(preconditioner.scale, [1.0, 1.0])


class TestMakeLinearSolver:
    """Test solver selection from settings."""

    @pytest.mark.parametrize("name,cls", [("cholesky", SparseCholeskySolver), ("cg", ConjugateGradientSolver)])
    def test_selection(self, name, cls):
        solver = make_linear_solver(OptimizerSettings(linear_solver=name))
        assert isinstance(solver, cls)
        assert isinstance(solver, LinearSolver)

    def test_cg_settings_are_passed(self):
        solver = make_linear_solver(OptimizerSettings(linear_solver="cg", cg_tolerance=1e-6, cg_max_iterations=5))
        assert solver.tolerance == 1e-6
        assert solver.max_iterations == 5
