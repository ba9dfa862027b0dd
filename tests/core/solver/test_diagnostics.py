"""Tests for solver diagnostics."""

import numpy as np
import pytest

from mapgraph.core.geometry import Cal3_S2, PinholeCamera, Pose2, Pose3
from mapgraph.core.optimization import (
    L, X,
    BetweenFactor,
    GenericProjectionFactor,
    Isotropic,
    NonlinearFactorGraph,
    PriorFactor,
    Unit,
    Values,
)
from mapgraph.core.solver import SolveDiagnostics, analyze_jacobian_rank, compute_reprojection_errors
from mapgraph.core.solver.diagnostics import compute_statistics


class TestSolveDiagnostics:
    """Test diagnostics of factor graphs."""

    def setup_method(self):
        self.graph = NonlinearFactorGraph()
        self.graph.add(BetweenFactor(X(0), X(1), Pose2(1.0, 0.0, 0.0), Unit(3)))
        self.graph.add(BetweenFactor(X(1), X(2), Pose2(1.0, 0.0, 0.0), Unit(3)))
        self.values = Values({X(0): Pose2(), X(1): Pose2(1.0, 0.0, 0.0), X(2): Pose2(2.0, 1.0, 0.0)})

    def test_largest_residuals_sorted(self):
        largest = SolveDiagnostics().largest_residuals(self.graph, self.values)
        assert largest[0][0].startswith("1:BetweenFactor(x1, x2)")
        assert largest[0][1] == pytest.approx(0.5)
        assert largest[1][1] == pytest.approx(0.0)

    def test_top_k(self):
        assert len(SolveDiagnostics(top_k=1).largest_residuals(self.graph, self.values)) == 1

    def test_gauge_freedom_detected(self):
        """Relative measurements alone leave the three planar DOFs free."""
        diagnostics = SolveDiagnostics().compute_diagnostics(self.graph, self.values)
        assert diagnostics["rank"]["nullspace_dimension"] == 3
        assert diagnostics["unconstrained_dofs"]

    def test_anchored_graph_is_full_rank(self):
        self.graph.add(PriorFactor(X(0), Pose2(), Unit(3)))
        diagnostics = SolveDiagnostics().compute_diagnostics(self.graph, self.values)
        assert diagnostics["rank"]["nullspace_dimension"] == 0
        assert diagnostics["unconstrained_dofs"] == []
        assert diagnostics["statistics"]["total_residuals"] == 9


class TestAnalysisFunctions:
    """Test standalone analysis helpers."""

    def test_rank_of_identity(self):
        rank = analyze_jacobian_rank(np.eye(4))
        assert rank["rank"] == 4
        assert rank["condition_number"] == pytest.approx(1.0)

    def test_rank_deficient(self):
        J = np.array([[1.0, 1.0], [2.0, 2.0]])
        rank = analyze_jacobian_rank(J)
        assert rank["rank"] == 1
        assert rank["nullspace_dimension"] == 1
        np.testing.assert_allclose(J @ rank["nullspace_basis"], 0.0, atol=1e-12)

    def test_statistics(self):
        stats = compute_statistics(np.array([3.0, -4.0]))
        assert stats["rms_residual"] == pytest.approx(np.sqrt(12.5))
        assert stats["max_residual"] == pytest.approx(4.0)
        assert compute_statistics(np.zeros(0))["total_residuals"] == 0

    def test_reprojection_errors(self):
        K = Cal3_S2(500.0, 500.0, 0.0, 320.0, 240.0)
        pose = Pose3()
        point = np.array([0.0, 0.0, 5.0])
        measured = PinholeCamera(pose, K).project(point) + np.array([3.0, 4.0])

        graph = NonlinearFactorGraph([GenericProjectionFactor(measured, Isotropic.from_sigma(2, 1.0), X(0), L(0), K)])
        stats = compute_reprojection_errors(graph, Values({X(0): pose, L(0): point}))
        assert stats["n_observations"] == 1
        assert stats["mean_error"] == pytest.approx(5.0)

    def test_reprojection_errors_without_projections(self):
        graph = NonlinearFactorGraph([PriorFactor(X(0), Pose2(), Unit(3))])
        assert compute_reprojection_errors(graph, Values({X(0): Pose2()})) == {"n_observations": 0}
