"""
Hybrid DIRCON transcription of constrained multi-mode trajectory problems.
"""

from .core_solver import HybridDircon
from .integrals_solver import TrapezoidalRunningCost, trapezoidal_weights
from .transition_solver import ModeTransitionLaw, VelocityContinuityLaw
from .types_solver import ModeConfiguration, SampleLayout, SystemDimensions


__all__ = [
    "HybridDircon",
    "ModeConfiguration",
    "ModeTransitionLaw",
    "SampleLayout",
    "SystemDimensions",
    "TrapezoidalRunningCost",
    "VelocityContinuityLaw",
    "trapezoidal_weights",
]
