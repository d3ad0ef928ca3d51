"""
DirconLab: hybrid DIRCON trajectory optimization for constrained mechanical systems

A Python framework that transcribes a trajectory of a constrained rigid-body
system through a known sequence of contact modes into a nonlinear program.
Each mode is discretized with the implicit Hermite-Simpson collocation of
DIRCON, with constraint forces as decision variables, and consecutive modes
share their transition knot.

Quick Start:
    >>> import casadi as ca
    >>> import dirconlab as dl
    >>> dynamics = dl.ManipulatorDynamics(2, 1, mass_matrix, bias, actuation)
    >>> foot = dl.PointPositionData(dynamics, lambda q: q, active_directions=[1])
    >>> foot.add_fixed_normal_friction_constraints([1.0], mu=1.0)
    >>> stance = dl.KinematicDataSet(dynamics, [foot])
    >>> dircon = dl.HybridDircon([stance], [11], [0.05], [0.2])
    >>> dircon.add_running_cost(lambda x, u: ca.sumsqr(u))
    >>> result = dircon.solve()

Logging:
    import logging
    logging.getLogger('dirconlab').setLevel(logging.INFO)  # Major operations
    logging.getLogger('dirconlab').setLevel(logging.DEBUG)  # Detailed debugging
"""

from __future__ import annotations

import logging

# Import exceptions first - foundational error handling
from dirconlab.exceptions import (
    ConfigurationError,
    DataIntegrityError,
    DirconLabBaseError,
    InterpolationError,
    SolutionExtractionError,
)

# Mode configuration
from dirconlab.dl_types import BoundaryPolicy, ModeOptions

# Transcription - primary user interface
from dirconlab.direct_solver import (
    HybridDircon,
    ModeTransitionLaw,
    VelocityContinuityLaw,
    trapezoidal_weights,
)

# Multibody collaborators
from dirconlab.multibody import (
    KinematicData,
    KinematicDataSet,
    ManipulatorDynamics,
    PointPositionData,
)
from dirconlab.program import ProgramBuilder, ProgramResult
from dirconlab.trajectory import PiecewiseTrajectory


# Version and metadata
__version__ = "0.1.0"
__description__ = "Hybrid DIRCON trajectory optimization"

# Public API - Only these should be used by external code
__all__ = [
    "BoundaryPolicy",
    "ConfigurationError",
    "DataIntegrityError",
    # Exception Hierarchy
    "DirconLabBaseError",
    # Core Classes
    "HybridDircon",
    "InterpolationError",
    "KinematicData",
    "KinematicDataSet",
    "ManipulatorDynamics",
    "ModeOptions",
    "ModeTransitionLaw",
    "PiecewiseTrajectory",
    "PointPositionData",
    "ProgramBuilder",
    "ProgramResult",
    "SolutionExtractionError",
    "VelocityContinuityLaw",
    "trapezoidal_weights",
]

# Configure logging - no handlers, let user control output
logging.getLogger(__name__).addHandler(logging.NullHandler())
