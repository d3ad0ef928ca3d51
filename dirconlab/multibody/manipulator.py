# dirconlab/multibody/manipulator.py
"""
Manipulator-equation dynamics ``M(q) vdot + C(q, v) = B u + J(q)^T lambda``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import casadi as ca
import numpy as np

from ..dl_types import CasadiValue, FloatArray
from ..exceptions import ConfigurationError
from ..input_validation import validate_integer


logger = logging.getLogger(__name__)


class ManipulatorDynamics:
    """
    Rigid-body dynamics in manipulator form with CasADi expressions.

    The configuration and velocity vectors have the same length; quaternion
    floating bases are outside what this model describes.

    Args:
        num_positions: Length of the configuration vector q
        num_inputs: Length of the actuation vector u
        mass_matrix: Callable q -> M(q), ``(nq, nq)`` CasADi expression
        bias: Callable (q, v) -> C(q, v), gravity/Coriolis terms of length nq
        actuation_matrix: Constant ``(nq, nu)`` matrix B

    Raises:
        ConfigurationError: If the callables produce the wrong shapes
    """

    def __init__(
        self,
        num_positions: int,
        num_inputs: int,
        mass_matrix: Callable[[ca.MX], CasadiValue],
        bias: Callable[[ca.MX, ca.MX], CasadiValue],
        actuation_matrix: FloatArray,
    ) -> None:
        validate_integer(num_positions, "num_positions", min_value=1)
        validate_integer(num_inputs, "num_inputs", min_value=0)
        self._num_positions = int(num_positions)
        self._num_inputs = int(num_inputs)

        actuation = np.asarray(actuation_matrix, dtype=np.float64).reshape(
            self._num_positions, self._num_inputs
        )
        self.actuation_matrix = actuation

        q = ca.MX.sym("q", self._num_positions)
        v = ca.MX.sym("v", self._num_positions)
        mass = ca.MX(mass_matrix(q))
        bias_term = ca.MX(bias(q, v))

        if mass.shape != (self._num_positions, self._num_positions):
            raise ConfigurationError(
                f"Mass matrix has shape {mass.shape}, expected "
                f"({self._num_positions}, {self._num_positions})",
                "Manipulator dynamics construction",
            )
        if bias_term.shape != (self._num_positions, 1):
            raise ConfigurationError(
                f"Bias term has shape {bias_term.shape}, expected ({self._num_positions}, 1)",
                "Manipulator dynamics construction",
            )

        self.mass_matrix_function = ca.Function("mass_matrix", [q], [mass], ["q"], ["M"])
        self.bias_function = ca.Function("bias", [q, v], [bias_term], ["q", "v"], ["C"])

        logger.debug(
            "Created manipulator dynamics: nq=%d, nu=%d", self._num_positions, self._num_inputs
        )

    @property
    def num_positions(self) -> int:
        return self._num_positions

    @property
    def num_velocities(self) -> int:
        return self._num_positions

    @property
    def num_states(self) -> int:
        return 2 * self._num_positions

    @property
    def num_inputs(self) -> int:
        return self._num_inputs

    def split_state(self, state: CasadiValue) -> tuple[CasadiValue, CasadiValue]:
        nq = self._num_positions
        return state[:nq], state[nq:]

    def generalized_forces(
        self, state: CasadiValue, control: CasadiValue
    ) -> tuple[CasadiValue, CasadiValue]:
        """Mass matrix and unconstrained right-hand side ``B u - C`` at a state."""
        q, v = self.split_state(state)
        mass = self.mass_matrix_function(q)
        rhs = -self.bias_function(q, v)
        if self._num_inputs > 0:
            rhs = rhs + ca.mtimes(ca.DM(self.actuation_matrix), control)
        return mass, rhs

    def acceleration(
        self,
        state: CasadiValue,
        control: CasadiValue,
        jacobian: CasadiValue | None = None,
        force: CasadiValue | None = None,
    ) -> CasadiValue:
        """Generalized acceleration under optional constraint forces ``J^T lambda``."""
        mass, rhs = self.generalized_forces(state, control)
        if jacobian is not None and force is not None and force.numel() > 0:
            rhs = rhs + ca.mtimes(jacobian.T, force)
        return ca.solve(mass, rhs)

    def derivative(self, state: CasadiValue, control: CasadiValue) -> CasadiValue:
        """Unconstrained state derivative ``[v; vdot]``."""
        _, v = self.split_state(state)
        return ca.vertcat(v, self.acceleration(state, control))
