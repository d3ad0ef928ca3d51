# dirconlab/dl_types.py
"""
Core type definitions for the DirconLab hybrid transcription framework.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol, TypeAlias

import casadi as ca
import numpy as np
from numpy.typing import NDArray

from .utils.constants import DEFAULT_FORCE_COST


if TYPE_CHECKING:
    from .program.bindings import ProgramConstraint


# --- NUMERICAL TYPES ---
FloatArray: TypeAlias = NDArray[np.float64]
NumericArrayLike: TypeAlias = NDArray[np.floating[Any]] | Sequence[float] | list[float]

CasadiValue: TypeAlias = ca.MX | ca.DM
"""Symbolic (during transcription) or numeric (during evaluation) CasADi value."""

ModeID: TypeAlias = int
"""Zero-based position of a mode in the hybrid mode sequence."""

RunningCostIntegrand: TypeAlias = Callable[[ca.MX, ca.MX], ca.MX]
"""Per-sample scalar cost g(x_k, u_k)."""

KnotPointRelation: TypeAlias = Callable[[ca.MX, ca.MX], ca.MX]
"""Per-sample CasADi relation r(x_k, u_k), e.g. ``u[0] <= 8``."""


# --- BOUNDARY POLICY ---
class BoundaryPolicy(enum.Enum):
    """
    Which levels of a mode's holonomic constraint are enforced at a knot.

    The value is the number of constraint levels enforced, so a policy
    contributes ``value * constraint_dimension`` rows.

    - PINNED: position, velocity and acceleration levels
    - VELOCITY: velocity and acceleration levels (position left free)
    - FREE: acceleration level only
    """

    PINNED = 3
    VELOCITY = 2
    FREE = 1

    @property
    def enforces_position(self) -> bool:
        return self is BoundaryPolicy.PINNED

    @property
    def enforces_velocity(self) -> bool:
        return self is not BoundaryPolicy.FREE


@dataclass(frozen=True)
class ModeOptions:
    """
    Immutable per-mode transcription options.

    Attributes:
        constraints_relative: One flag per constraint row; relative rows have their
            position target floated by the mode's offset variables instead of zero.
        start_type: Policy at the first sample of the mode.
        end_type: Policy at the last sample of the mode.
        force_cost: Any non-zero value adds an identity-weighted quadratic penalty
            on the constraint forces at every sample of the mode.
    """

    constraints_relative: tuple[bool, ...]
    start_type: BoundaryPolicy = BoundaryPolicy.PINNED
    end_type: BoundaryPolicy = BoundaryPolicy.PINNED
    force_cost: float = DEFAULT_FORCE_COST

    @classmethod
    def for_constraints(cls, num_constraints: int, **kwargs: Any) -> ModeOptions:
        """Default options for a manifold with ``num_constraints`` rows, none relative."""
        return cls(constraints_relative=(False,) * num_constraints, **kwargs)

    @property
    def num_constraints(self) -> int:
        return len(self.constraints_relative)

    @property
    def num_relative(self) -> int:
        return sum(1 for flag in self.constraints_relative if flag)

    @property
    def force_cost_enabled(self) -> bool:
        return self.force_cost != 0

    def relative_map(self) -> FloatArray:
        """Selector matrix R (num_constraints x num_relative) mapping offsets onto rows."""
        relative_map = np.zeros((self.num_constraints, self.num_relative), dtype=np.float64)
        column = 0
        for row, is_relative in enumerate(self.constraints_relative):
            if is_relative:
                relative_map[row, column] = 1.0
                column += 1
        return relative_map


# --- COLLABORATOR INTERFACES ---
class KinematicEvaluation(NamedTuple):
    """
    Constraint manifold quantities evaluated at one (state, input, force) triple.

    ``c``, ``cdot`` and ``cddot`` are the position, velocity and acceleration
    level residuals; ``jacobian`` is dc/dq; ``xdot`` is the constrained state
    derivative.
    """

    c: CasadiValue
    cdot: CasadiValue
    cddot: CasadiValue
    jacobian: CasadiValue
    xdot: CasadiValue


class ConstraintSubObjectProtocol(Protocol):
    """A single constraint object composing a mode's manifold (e.g. one contact point)."""

    @property
    def length(self) -> int:
        """Number of constraint rows (and force components) of this object"""
        ...

    def force_constraint_count(self) -> int:
        """Number of force-legality constraints declared by this object"""
        ...

    def force_constraint(self, index: int) -> ProgramConstraint:
        """Force-legality constraint acting on this object's force sub-block"""
        ...


class ConstraintManifoldProtocol(Protocol):
    """Protocol of the per-mode constraint manifold descriptor."""

    @property
    def num_positions(self) -> int: ...

    @property
    def num_velocities(self) -> int: ...

    @property
    def num_inputs(self) -> int: ...

    @property
    def num_states(self) -> int: ...

    def constraint_dimension(self) -> int:
        """Total number of constraint rows of the manifold"""
        ...

    def sub_object_count(self) -> int:
        """Number of constraint objects composing the manifold"""
        ...

    def sub_object(self, index: int) -> ConstraintSubObjectProtocol:
        """Constraint object by position"""
        ...

    def evaluate(
        self, state: CasadiValue, control: CasadiValue, force: CasadiValue
    ) -> KinematicEvaluation:
        """Evaluate residuals and constrained state derivative"""
        ...

    def derivative(self, state: FloatArray, control: FloatArray, force: FloatArray) -> FloatArray:
        """Numeric constrained state derivative"""
        ...
