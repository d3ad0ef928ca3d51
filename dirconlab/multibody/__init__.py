"""
Multibody collaborators: manipulator dynamics, holonomic constraint objects
and the per-mode constraint manifold built from them.
"""

from .kinematic_data import KinematicData, PointPositionData
from .kinematic_data_set import KinematicDataSet
from .manipulator import ManipulatorDynamics


__all__ = [
    "KinematicData",
    "KinematicDataSet",
    "ManipulatorDynamics",
    "PointPositionData",
]
