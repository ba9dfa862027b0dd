"""Manifold-valued geometry types."""

from .manifold import Manifold, WithJacobians
from .pose2 import Pose2, wrap_angle
from .pose3 import Pose3, Rot3
from .camera import (
    Cal3_S2,
    CalibratedCamera,
    PinholeCamera,
    level_pose,
    lookat_pose,
    camera_depth,
)

__all__ = [
    "Manifold",
    "WithJacobians",
    "Pose2",
    "wrap_angle",
    "Pose3",
    "Rot3",
    "Cal3_S2",
    "CalibratedCamera",
    "PinholeCamera",
    "level_pose",
    "lookat_pose",
    "camera_depth",
]
