"""
DIRCON constraint evaluators bound by the hybrid transcription.
"""

from .dynamic_constraint import DirconDynamicConstraint
from .kinematic_constraint import DirconKinematicConstraint


__all__ = ["DirconDynamicConstraint", "DirconKinematicConstraint"]
