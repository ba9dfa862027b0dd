"""End-to-end optimization of the synthetic datasets."""

import numpy as np
import pytest

from mapgraph.core.geometry import Pose2
from mapgraph.core.models.settings import OptimizerSettings
from mapgraph.core.optimization import (
    D, X,
    BetweenFactor,
    Diagonal,
    GraphOptimizer,
    MaxRangeConstraint,
    NonlinearInequalityFactorGraph,
    Robust,
    VectorValues,
)
from mapgraph.core.solver import compute_reprojection_errors
from mapgraph.core.synthetic import (
    make_bearing_range_slam,
    make_pose_graph_2d,
    make_pose_graph_3d,
    make_sfm_scene,
    synthetic_loader,
)


class TestPoseGraphs:
    """Pose graph optimization."""

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_pose_graph_2d(self, seed):
        dataset = make_pose_graph_2d(seed=seed)
        result = GraphOptimizer(dataset.graph, dataset.initial).optimize()

        assert result.converged
        assert result.final_error < result.initial_error
        assert result.final_error < 10.0

    def test_pose_graph_2d_noise_free_recovers_truth(self):
        dataset = make_pose_graph_2d(n_poses=6, odometry_sigmas=(1e-9, 1e-9, 1e-9), seed=0)
        graph = dataset.graph
        initial = dataset.initial.copy()
        initial.update(X(3), initial.at(X(3)).retract(np.array([0.5, -0.3, 0.2])))
        reweighted = type(graph)()
        for factor in graph:
            reweighted.add(BetweenFactor(*factor.keys(), factor.measured, Diagonal.from_sigmas([0.1, 0.1, 0.05])))

        optimizer = GraphOptimizer(reweighted, initial)
        result = optimizer.optimize()

        assert result.converged
        assert result.final_error < 1e-8
        assert optimizer.values.equals(dataset.initial, 1e-4)

    def test_pose_graph_3d(self):
        dataset = make_pose_graph_3d(seed=4)
        result = GraphOptimizer(dataset.graph, dataset.initial).optimize()

        assert result.converged
        assert result.final_error < result.initial_error
        assert result.final_error < 10.0

    def test_pose_graph_3d_with_cg(self):
        dataset = make_pose_graph_3d(seed=4)
        direct = GraphOptimizer(dataset.graph, dataset.initial)
        direct.optimize()

        iterative = GraphOptimizer(dataset.graph, dataset.initial, settings=OptimizerSettings(linear_solver="cg"))
        result = iterative.optimize()

        assert result.converged
        assert iterative.values.equals(direct.values, 1e-5)

    def test_robust_loop_closure_outlier(self):
        """A Huber-wrapped bogus loop closure does not drag the estimate far."""
        dataset = make_pose_graph_2d(n_poses=8, loop_closure=False, seed=5)
        graph = type(dataset.graph)(dataset.graph)
        graph.add(BetweenFactor(X(7), X(0), Pose2(10.0, 10.0, 1.0), Robust(Diagonal.from_sigmas([0.05, 0.05, 0.02]), "huber", 1.0)))

        optimizer = GraphOptimizer(graph, dataset.initial)
        result = optimizer.optimize()

        assert result.converged
        drift = dataset.initial.local_coordinates(optimizer.values).norm()
        assert drift < 1.0


class TestLandmarkSlam:
    """Bearing-range SLAM."""

    def test_bearing_range(self):
        dataset = make_bearing_range_slam(seed=3)
        result = GraphOptimizer(dataset.graph, dataset.initial, anchor=not dataset.anchored).optimize()

        assert result.converged
        assert result.final_error < 1e-4

    def test_range_constraints_hold_after_optimization(self):
        dataset = make_bearing_range_slam(n_poses=5, seed=3)
        optimizer = GraphOptimizer(dataset.graph, dataset.initial, anchor=not dataset.anchored)
        optimizer.optimize()

        constraints = NonlinearInequalityFactorGraph([
            MaxRangeConstraint(X(i), X(i + 1), 2.5, D(i)) for i in range(4)
        ])
        assert constraints.check_feasibility_and_complementarity(optimizer.values, VectorValues())
        assert constraints.violated_constraints(optimizer.values) == []


class TestBundleAdjustment:
    """Structure from motion."""

    def test_fixed_calibration(self):
        dataset = make_sfm_scene(seed=0)
        optimizer = GraphOptimizer(dataset.graph, dataset.initial, anchor=not dataset.anchored)
        result = optimizer.optimize()

        assert result.converged
        assert result.final_error < result.initial_error
        assert compute_reprojection_errors(dataset.graph, optimizer.values)["rms_error"] < 2.0

    def test_estimated_calibration(self):
        dataset = make_sfm_scene(n_cameras=5, estimate_calibration=True, seed=1)
        optimizer = GraphOptimizer(dataset.graph, dataset.initial, anchor=not dataset.anchored)
        result = optimizer.optimize()

        assert result.converged
        assert result.final_error < result.initial_error
        assert compute_reprojection_errors(dataset.graph, optimizer.values)["rms_error"] < 2.0

    def test_from_loader(self):
        optimizer = GraphOptimizer.from_dataset(synthetic_loader, "sfm", "2")
        result = optimizer.optimize()
        assert result.converged
        assert result.largest_residuals
