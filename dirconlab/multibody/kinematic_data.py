# dirconlab/multibody/kinematic_data.py
"""
Holonomic constraint objects: a position-level function ``phi(q)`` together
with its derivatives and the force-legality constraints of its multipliers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import casadi as ca
import numpy as np

from ..dl_types import CasadiValue, FloatArray
from ..exceptions import ConfigurationError
from ..input_validation import validate_finite_number, validate_integer
from ..program.bindings import LinearConstraint, ProgramConstraint
from ..utils.constants import ZERO_TOLERANCE
from .manipulator import ManipulatorDynamics


logger = logging.getLogger(__name__)


class KinematicData:
    """
    Generic holonomic constraint ``phi(q) = 0``.

    Builds ``phi``, its Jacobian ``J = dphi/dq`` and the drift term
    ``Jdot v`` as CasADi functions of the configuration and velocity.

    Args:
        dynamics: Model whose configuration the constraint is written in
        position_function: Callable q -> phi(q) returning a column expression
        name: Label used in function names and logs
    """

    def __init__(
        self,
        dynamics: ManipulatorDynamics,
        position_function: Callable[[ca.MX], CasadiValue],
        name: str = "kinematic",
    ) -> None:
        self.dynamics = dynamics
        self.name = name

        q = ca.MX.sym("q", dynamics.num_positions)
        v = ca.MX.sym("v", dynamics.num_velocities)
        phi = ca.MX(position_function(q))
        if phi.size2() != 1:
            raise ConfigurationError(
                f"Constraint '{name}' position function must return a column, got {phi.shape}",
                "Kinematic constraint construction",
            )

        jacobian = ca.jacobian(phi, q)
        jacobian_dot_v = ca.jtimes(ca.mtimes(jacobian, v), q, v)

        self._length = phi.size1()
        self.position_function = ca.Function(f"{name}_phi", [q], [phi])
        self.jacobian_function = ca.Function(f"{name}_J", [q], [jacobian])
        self.jacobian_dot_v_function = ca.Function(f"{name}_Jdotv", [q, v], [jacobian_dot_v])
        self._force_constraints: list[ProgramConstraint] = []

    @property
    def length(self) -> int:
        return self._length

    def position(self, q: CasadiValue) -> CasadiValue:
        return self.position_function(q)

    def jacobian(self, q: CasadiValue) -> CasadiValue:
        return self.jacobian_function(q)

    def jacobian_dot_times_v(self, q: CasadiValue, v: CasadiValue) -> CasadiValue:
        return self.jacobian_dot_v_function(q, v)

    def add_force_constraint(self, constraint: ProgramConstraint) -> None:
        """Register a constraint on this object's ``length`` force components."""
        if constraint.input_sizes != (self._length,):
            raise ConfigurationError(
                f"Force constraint on '{self.name}' must take one argument of size "
                f"{self._length}, got {constraint.input_sizes}",
                "Force constraint registration",
            )
        self._force_constraints.append(constraint)

    def force_constraint_count(self) -> int:
        return len(self._force_constraints)

    def force_constraint(self, index: int) -> ProgramConstraint:
        return self._force_constraints[index]


class PointPositionData(KinematicData):
    """
    Fixes selected world coordinates of a point on the system.

    Args:
        dynamics: Model whose configuration the point position is written in
        point_function: Callable q -> world position of the point
        active_directions: Indices of the constrained coordinates; ``None``
            constrains all of them
        name: Label used in function names and logs
    """

    def __init__(
        self,
        dynamics: ManipulatorDynamics,
        point_function: Callable[[ca.MX], CasadiValue],
        active_directions: Sequence[int] | None = None,
        name: str = "point",
    ) -> None:
        point_value = ca.MX(point_function(ca.MX.sym("q", dynamics.num_positions)))
        point_dimension = point_value.size1()
        directions = (
            list(range(point_dimension)) if active_directions is None else list(active_directions)
        )
        for direction in directions:
            validate_integer(direction, f"active direction of '{name}'", min_value=0)
            if direction >= point_dimension:
                raise ConfigurationError(
                    f"Active direction {direction} outside point dimension {point_dimension}",
                    "Point constraint construction",
                )
        self.active_directions = tuple(directions)

        def _selected(q: ca.MX) -> CasadiValue:
            return ca.MX(point_function(q))[directions]

        super().__init__(dynamics, _selected, name)

    def add_fixed_normal_friction_constraints(self, normal: FloatArray, mu: float) -> None:
        """
        Unilateral normal force plus a linearized friction cone.

        With one active direction only ``n.lambda >= 0`` is added. Otherwise
        the cone ``|t.lambda| <= mu n.lambda`` is approximated by a pyramid
        over tangent directions orthogonal to ``normal`` in the active space.

        Args:
            normal: Contact normal expressed in the active directions
            mu: Friction coefficient
        """
        validate_finite_number(mu, "friction coefficient")
        if mu < 0:
            raise ConfigurationError(f"Friction coefficient must be >= 0, got {mu}")

        normal_vector = np.asarray(normal, dtype=np.float64).reshape(-1)
        if normal_vector.size != self.length:
            raise ConfigurationError(
                f"Normal has {normal_vector.size} entries, constraint '{self.name}' has "
                f"{self.length} active directions",
                "Friction constraint construction",
            )
        norm = np.linalg.norm(normal_vector)
        if norm < ZERO_TOLERANCE:
            raise ConfigurationError("Contact normal cannot be zero")
        normal_vector = normal_vector / norm

        rows = [normal_vector]
        for tangent in _tangent_basis(normal_vector):
            rows.append(mu * normal_vector + tangent)
            rows.append(mu * normal_vector - tangent)

        matrix = np.vstack(rows)
        self.add_force_constraint(
            LinearConstraint(
                matrix,
                np.zeros(matrix.shape[0]),
                np.full(matrix.shape[0], np.inf),
                f"{self.name}_friction",
            )
        )
        logger.debug(
            "Added %d friction rows to '%s' (mu=%.3g)", matrix.shape[0], self.name, mu
        )


def _tangent_basis(normal: FloatArray) -> list[FloatArray]:
    """Orthonormal directions spanning the complement of ``normal``."""
    if normal.size == 1:
        return []
    if normal.size == 2:
        return [np.array([-normal[1], normal[0]])]

    # Complete the basis from the identity column least aligned with the normal
    seed = np.eye(normal.size)[int(np.argmin(np.abs(normal)))]
    basis: list[FloatArray] = []
    for candidate in [seed, *np.eye(normal.size)]:
        vector = candidate - np.dot(candidate, normal) * normal
        for existing in basis:
            vector = vector - np.dot(vector, existing) * existing
        length = np.linalg.norm(vector)
        if length > 1e-9:
            basis.append(vector / length)
        if len(basis) == normal.size - 1:
            break
    return basis
