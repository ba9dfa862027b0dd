"""Synthetic scene generation utilities.

Every ``make_*`` function returns a ``Dataset`` and ``synthetic_loader``
exposes them through the dataset loader contract.
"""

import numpy as np
from typing import List, Optional, Tuple

from ..geometry.camera import Cal3_S2, PinholeCamera, camera_depth
from ..geometry.pose2 import Pose2
from ..geometry.pose3 import Pose3, Rot3
from ..optimization.dataset import Dataset
from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.factors import (
    BearingRangeFactor2D,
    BetweenFactor,
    CameraProjectionFactor,
    GenericProjectionFactor,
    PriorFactor,
)
from ..optimization.keys import C, L, X
from ..optimization.noise import Diagonal, Isotropic
from ..optimization.values import Values


class SceneGenerator:
    """Generator for synthetic scenes and test data."""

    def __init__(self, seed: Optional[int] = None):
        """Initialize scene generator.

        Args:
            seed: Random seed for reproducible generation
        """
        self.rng = np.random.default_rng(seed)

    def generate_points_grid(
        self,
        bounds: Tuple[float, float, float, float, float, float],
        spacing: float,
        noise_std: float = 0.0
    ) -> List[np.ndarray]:
        """Generate 3D points on a regular grid.

        Args:
            bounds: (xmin, xmax, ymin, ymax, zmin, zmax) in meters
            spacing: Grid spacing in meters
            noise_std: Standard deviation of Gaussian noise to add

        Returns:
            List of points
        """
        xmin, xmax, ymin, ymax, zmin, zmax = bounds

        points = []
        for x in np.arange(xmin, xmax + spacing / 2, spacing):
            for y in np.arange(ymin, ymax + spacing / 2, spacing):
                for z in np.arange(zmin, zmax + spacing / 2, spacing):
                    point = np.array([x, y, z], dtype=float)
                    if noise_std > 0:
                        point = point + self.rng.normal(0, noise_std, 3)
                    points.append(point)

        return points

    def generate_cameras_circle(
        self,
        center: np.ndarray,
        radius: float,
        n_cameras: int,
        look_at: np.ndarray,
        calibration: Cal3_S2,
        up: np.ndarray = np.array([0.0, 0.0, 1.0])
    ) -> List[PinholeCamera]:
        """Generate cameras positioned on a circle looking at a target.

        Args:
            center: Center of the circle [x, y, z]
            radius: Radius of the circle
            n_cameras: Number of cameras to generate
            look_at: Point to look at [x, y, z]
            calibration: Intrinsics shared by every camera
            up: Up vector [x, y, z]

        Returns:
            List of cameras
        """
        angles = np.linspace(0, 2 * np.pi, n_cameras, endpoint=False)
        return [
            PinholeCamera.lookat(
                np.asarray(center, dtype=float) + radius * np.array([np.cos(a), np.sin(a), 0.0]),
                look_at,
                up,
                calibration
            )
            for a in angles
        ]

    def generate_projections(
        self,
        points: List[np.ndarray],
        cameras: List[PinholeCamera],
        noise_std: float = 0.0,
        min_depth: float = 0.1
    ) -> List[Tuple[int, int, np.ndarray]]:
        """Project every point into every camera it lies in front of.

        Args:
            points: World points
            cameras: Cameras
            noise_std: Standard deviation of pixel noise
            min_depth: Minimum camera-frame depth for a valid observation

        Returns:
            List of (camera index, point index, pixel)
        """
        observations = []
        for i, camera in enumerate(cameras):
            for j, point in enumerate(points):
                if camera_depth(camera, point) < min_depth:
                    continue
                uv = camera.project(point)
                if noise_std > 0:
                    uv = uv + self.rng.normal(0, noise_std, 2)
                observations.append((i, j, uv))
        return observations

    def perturb_pose(self, pose, rotation_std: float, translation_std: float):
        """Retract a Pose2 or Pose3 by Gaussian tangent noise."""
        if isinstance(pose, Pose2):
            sigmas = np.array([translation_std, translation_std, rotation_std])
        else:
            sigmas = np.array([rotation_std] * 3 + [translation_std] * 3)
        return pose.retract(self.rng.normal(0, 1, len(sigmas)) * sigmas)


def make_pose_graph_2d(
    n_poses: int = 12,
    radius: float = 5.0,
    odometry_sigmas: Tuple[float, float, float] = (0.05, 0.05, 0.02),
    loop_closure: bool = True,
    seed: Optional[int] = None
) -> Dataset:
    """Planar pose graph around a circle with odometry and a loop closure.

    The initial estimate is dead reckoning from the noisy odometry.
    """
    generator = SceneGenerator(seed=seed)
    noise = Diagonal.from_sigmas(odometry_sigmas)

    angles = np.linspace(0, 2 * np.pi, n_poses, endpoint=False)
    truth = [Pose2(radius * np.cos(a), radius * np.sin(a), a + np.pi / 2) for a in angles]

    graph = NonlinearFactorGraph()
    initial = Values()
    initial.insert(X(0), truth[0])

    edges = [(i, i + 1) for i in range(n_poses - 1)]
    if loop_closure:
        edges.append((n_poses - 1, 0))

    for i, j in edges:
        measured = truth[i].between(truth[j]).retract(generator.rng.normal(0, 1, 3) * np.asarray(odometry_sigmas))
        graph.add(BetweenFactor(X(i), X(j), measured, noise))
        if j == i + 1:
            initial.insert(X(j), initial.at(X(i)).compose(measured))

    return Dataset(graph, initial, noise)


def make_pose_graph_3d(
    n_poses: int = 10,
    radius: float = 5.0,
    rotation_sigma: float = 0.01,
    translation_sigma: float = 0.05,
    seed: Optional[int] = None
) -> Dataset:
    """Pose3 graph on a rising helix with odometry and a loop closure."""
    generator = SceneGenerator(seed=seed)
    noise = Diagonal.from_sigmas([rotation_sigma] * 3 + [translation_sigma] * 3)

    angles = np.linspace(0, 2 * np.pi, n_poses, endpoint=False)
    truth = [
        Pose3(Rot3.Rz(a + np.pi / 2), np.array([radius * np.cos(a), radius * np.sin(a), 0.2 * i]))
        for i, a in enumerate(angles)
    ]

    graph = NonlinearFactorGraph()
    initial = Values()
    for i, pose in enumerate(truth):
        if i + 1 < n_poses:
            measured = generator.perturb_pose(pose.between(truth[i + 1]), rotation_sigma, translation_sigma)
            graph.add(BetweenFactor(X(i), X(i + 1), measured, noise))
        initial.insert(X(i), pose if i == 0 else generator.perturb_pose(pose, 0.05, 0.3))

    graph.add(BetweenFactor(X(n_poses - 1), X(0), truth[-1].between(truth[0]), noise))
    return Dataset(graph, initial, noise)


def make_bearing_range_slam(
    n_poses: int = 6,
    n_landmarks: int = 5,
    max_range: float = 15.0,
    seed: Optional[int] = None
) -> Dataset:
    """Robot moving along a line observing landmarks by bearing and range."""
    generator = SceneGenerator(seed=seed)
    odometry_noise = Diagonal.from_sigmas([0.05, 0.05, 0.02])
    measurement_noise = Diagonal.from_sigmas([0.01, 0.05])

    poses = [Pose2(2.0 * i, 0.0, 0.0) for i in range(n_poses)]
    landmarks = [
        np.array([generator.rng.uniform(0, 2.0 * n_poses), generator.rng.choice([-1.0, 1.0]) * generator.rng.uniform(2, 6)])
        for _ in range(n_landmarks)
    ]

    graph = NonlinearFactorGraph()
    graph.add(PriorFactor(X(0), poses[0], Diagonal.from_sigmas([0.01, 0.01, 0.005])))
    initial = Values()
    for i, pose in enumerate(poses):
        initial.insert(X(i), pose if i == 0 else generator.perturb_pose(pose, 0.02, 0.1))
        if i + 1 < n_poses:
            graph.add(BetweenFactor(X(i), X(i + 1), pose.between(poses[i + 1]), odometry_noise))
        for j, landmark in enumerate(landmarks):
            r = pose.range(landmark)
            if r <= max_range:
                graph.add(BearingRangeFactor2D(X(i), L(j), pose.bearing(landmark), r, measurement_noise))

    for j, landmark in enumerate(landmarks):
        initial.insert(L(j), landmark + generator.rng.normal(0, 0.2, 2))

    return Dataset(graph, initial, measurement_noise, anchored=True)


def make_sfm_scene(
    n_cameras: int = 6,
    radius: float = 10.0,
    pixel_sigma: float = 1.0,
    estimate_calibration: bool = False,
    seed: Optional[int] = None
) -> Dataset:
    """Bundle adjustment scene: a point cube seen by cameras on a circle.

    With ``estimate_calibration`` the cameras are PinholeCamera variables
    (keys ``c<i>``) tied to the points by CameraProjectionFactors and given
    a weak prior on their intrinsics; otherwise the poses (keys ``x<i>``)
    are estimated with a fixed calibration. A prior on the first point
    fixes the scale.
    """
    generator = SceneGenerator(seed=seed)
    calibration = Cal3_S2(500.0, 500.0, 0.0, 320.0, 240.0)
    pixel_noise = Isotropic.from_sigma(2, pixel_sigma)

    points = generator.generate_points_grid((-1.0, 1.0, -1.0, 1.0, -1.0, 1.0), 1.0)
    cameras = generator.generate_cameras_circle(
        np.array([0.0, 0.0, 1.0]), radius, n_cameras, np.zeros(3), calibration
    )
    observations = generator.generate_projections(points, cameras, noise_std=pixel_sigma)

    graph = NonlinearFactorGraph()
    initial = Values()
    for i, j, uv in observations:
        if estimate_calibration:
            graph.add(CameraProjectionFactor(uv, pixel_noise, C(i), L(j)))
        else:
            graph.add(GenericProjectionFactor(uv, pixel_noise, X(i), L(j), calibration))

    graph.add(PriorFactor(L(0), points[0], Isotropic.from_sigma(3, 0.01)))

    for i, camera in enumerate(cameras):
        pose_sigmas = [0.01] * 3 + [0.05] * 3 if i == 0 else [1e3] * 6
        pose = generator.perturb_pose(camera.pose(), 0.01, 0.1)
        if estimate_calibration:
            graph.add(PriorFactor(C(i), camera, Diagonal.from_sigmas(pose_sigmas + [10.0] * 5)))
            initial.insert(C(i), PinholeCamera(pose, calibration))
        else:
            if i == 0:
                graph.add(PriorFactor(X(0), camera.pose(), Diagonal.from_sigmas(pose_sigmas)))
            initial.insert(X(i), pose)

    for j, point in enumerate(points):
        initial.insert(L(j), point + generator.rng.normal(0, 0.05, 3))

    return Dataset(graph, initial, pixel_noise, anchored=True)


_SCENES = {
    "pose_graph_2d": make_pose_graph_2d,
    "pose_graph_3d": make_pose_graph_3d,
    "bearing_range": make_bearing_range_slam,
    "sfm": make_sfm_scene,
    "sfm_pinhole": lambda seed=None: make_sfm_scene(estimate_calibration=True, seed=seed),
}


def synthetic_loader(name: str, path: Optional[str] = None) -> Dataset:
    """Dataset loader for the built-in synthetic scenes.

    Args:
        name: One of ``pose_graph_2d``, ``pose_graph_3d``, ``bearing_range``,
            ``sfm``, ``sfm_pinhole``
        path: Parsed as an integer random seed when given

    Returns:
        The generated dataset
    """
    if name not in _SCENES:
        raise ValueError(f"Unknown synthetic dataset: {name}")
    seed = int(path) if path is not None else 0
    return _SCENES[name](seed=seed)
