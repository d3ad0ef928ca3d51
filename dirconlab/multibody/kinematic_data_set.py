# dirconlab/multibody/kinematic_data_set.py
"""
Constraint manifold of one dynamics mode: the stacked constraint objects
active in the mode and the constrained dynamics they induce.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import casadi as ca

from ..dl_types import CasadiValue, FloatArray, KinematicEvaluation
from ..exceptions import ConfigurationError, DataIntegrityError
from ..utils.casadi_utils import casadi_to_numpy
from .kinematic_data import KinematicData
from .manipulator import ManipulatorDynamics


logger = logging.getLogger(__name__)


class KinematicDataSet:
    """
    Stack of constraint objects sharing one dynamics model.

    The force vector ``lambda`` is ordered like the constraint rows: the
    rows of the first object come first. An empty stack describes an
    unconstrained (flight) mode with zero constraint rows.

    Args:
        dynamics: Model shared by all constraint objects
        constraints: Constraint objects in row order
    """

    def __init__(
        self, dynamics: ManipulatorDynamics, constraints: Sequence[KinematicData] = ()
    ) -> None:
        self.dynamics = dynamics
        self._constraints = list(constraints)
        for constraint in self._constraints:
            if constraint.dynamics is not dynamics:
                raise ConfigurationError(
                    f"Constraint '{constraint.name}' belongs to a different dynamics model",
                    "Constraint manifold construction",
                )

        self._offsets: list[int] = []
        total = 0
        for constraint in self._constraints:
            self._offsets.append(total)
            total += constraint.length
        self._constraint_dimension = total

        self._evaluation_function = self._build_evaluation_function()
        logger.debug(
            "Created constraint manifold: %d objects, %d rows",
            len(self._constraints),
            self._constraint_dimension,
        )

    @property
    def num_positions(self) -> int:
        return self.dynamics.num_positions

    @property
    def num_velocities(self) -> int:
        return self.dynamics.num_velocities

    @property
    def num_inputs(self) -> int:
        return self.dynamics.num_inputs

    @property
    def num_states(self) -> int:
        return self.dynamics.num_states

    def constraint_dimension(self) -> int:
        return self._constraint_dimension

    def sub_object_count(self) -> int:
        return len(self._constraints)

    def sub_object(self, index: int) -> KinematicData:
        if not 0 <= index < len(self._constraints):
            raise DataIntegrityError(
                f"Constraint object {index} outside [0, {len(self._constraints)})",
                "Constraint manifold lookup",
            )
        return self._constraints[index]

    def sub_object_offset(self, index: int) -> int:
        """First force/constraint row of object ``index``."""
        self.sub_object(index)
        return self._offsets[index]

    def evaluate(
        self, state: CasadiValue, control: CasadiValue, force: CasadiValue
    ) -> KinematicEvaluation:
        """Residuals of all three levels, Jacobian and constrained state derivative."""
        c, cdot, cddot, jacobian, xdot = self._evaluation_function(state, control, force)
        return KinematicEvaluation(c, cdot, cddot, jacobian, xdot)

    def derivative(self, state: FloatArray, control: FloatArray, force: FloatArray) -> FloatArray:
        """Numeric constrained state derivative at a solved sample."""
        evaluation = self.evaluate(ca.DM(state), ca.DM(control), ca.DM(force))
        return casadi_to_numpy(evaluation.xdot, "constrained state derivative")

    def _build_evaluation_function(self) -> ca.Function:
        nq = self.num_positions
        x = ca.MX.sym("x", self.num_states)
        u = ca.MX.sym("u", self.num_inputs)
        lam = ca.MX.sym("lambda", self._constraint_dimension)
        q, v = x[:nq], x[nq:]

        if self._constraints:
            c = ca.vertcat(*[item.position(q) for item in self._constraints])
            jacobian = ca.vertcat(*[item.jacobian(q) for item in self._constraints])
            jacobian_dot_v = ca.vertcat(
                *[item.jacobian_dot_times_v(q, v) for item in self._constraints]
            )
            vdot = self.dynamics.acceleration(x, u, jacobian, lam)
            cdot = ca.mtimes(jacobian, v)
            cddot = ca.mtimes(jacobian, vdot) + jacobian_dot_v
        else:
            c = ca.MX(0, 1)
            jacobian = ca.MX(0, nq)
            vdot = self.dynamics.acceleration(x, u)
            cdot = ca.MX(0, 1)
            cddot = ca.MX(0, 1)

        xdot = ca.vertcat(v, vdot)
        return ca.Function(
            "constraint_manifold",
            [x, u, lam],
            [c, cdot, cddot, jacobian, xdot],
            ["x", "u", "lambda"],
            ["c", "cdot", "cddot", "J", "xdot"],
        )
