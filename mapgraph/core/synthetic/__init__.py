"""Synthetic scene generation for testing."""

from .scene_gen import (
    SceneGenerator,
    make_pose_graph_2d,
    make_pose_graph_3d,
    make_bearing_range_slam,
    make_sfm_scene,
    synthetic_loader,
)

__all__ = [
    "SceneGenerator",
    "make_pose_graph_2d",
    "make_pose_graph_3d",
    "make_bearing_range_slam",
    "make_sfm_scene",
    "synthetic_loader",
]
