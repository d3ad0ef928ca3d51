from typing import TypeAlias


_Tolerance: TypeAlias = float
_Duration: TypeAlias = float
_Weight: TypeAlias = float

ZERO_TOLERANCE: _Tolerance = 1e-14
"""Tolerance for considering floating point values as zero."""

# Timestep defaults - SINGLE SOURCE OF TRUTH
DEFAULT_MIN_TIMESTEP: _Duration = 1e-8
"""Default lower bound on every timestep decision variable."""

DEFAULT_MAX_TIMESTEP: _Duration = 1e8
"""Default upper bound on every timestep decision variable."""

DEFAULT_TIMESTEP_GUESS: _Duration = 0.1
"""Initial guess for timesteps, clipped into each mode's bounds."""

# Mode option defaults
DEFAULT_FORCE_COST: _Weight = 1.0e-4
"""Default force-cost option; any non-zero value enables the force regularization."""

# NLP solver defaults
DEFAULT_NLP_MAX_ITERATIONS: int = 3000
"""Default IPOPT iteration limit."""

DEFAULT_NLP_OPTIONS: dict[str, object] = {
    "ipopt.print_level": 0,
    "ipopt.sb": "yes",
    "ipopt.max_iter": DEFAULT_NLP_MAX_ITERATIONS,
    "print_time": 0,
}
"""Default IPOPT options; user options take precedence."""
