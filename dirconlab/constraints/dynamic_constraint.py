# dirconlab/constraints/dynamic_constraint.py
"""
Implicit DIRCON collocation defect between two adjacent samples of a mode.
"""

from __future__ import annotations

import logging

import casadi as ca

from ..dl_types import ConstraintManifoldProtocol
from ..exceptions import ConfigurationError
from ..program.bindings import EqualityConstraint


logger = logging.getLogger(__name__)


class DirconDynamicConstraint(EqualityConstraint):
    """
    Hermite-Simpson defect with constraint forces, ``g(...) == 0``.

    Arguments, in order: timestep ``h`` (1), start state ``x0`` (nx), end
    state ``x1`` (nx), stacked inputs ``[u0; u1]`` (2 nu), stacked sample
    forces ``[l0; l1]`` (2 k), collocation force ``lc`` (k) and collocation
    velocity slack ``vc`` (k). The output has nx rows.

    With ``f`` the constrained dynamics of the manifold:

    - ``xc = (x0 + x1)/2 + h/8 (f0 - f1)``
    - ``xdotc = -3/(2h) (x0 - x1) - (f0 + f1)/4``
    - ``g = xdotc - f(xc, (u0 + u1)/2, lc)``, with the configuration rows
      relaxed by ``J(qc)^T vc`` so the midpoint may leave the manifold.

    Args:
        manifold: Constraint manifold of the mode
    """

    def __init__(self, manifold: ConstraintManifoldProtocol) -> None:
        nq = manifold.num_positions
        nv = manifold.num_velocities
        if nq != nv:
            raise ConfigurationError(
                f"Collocation defect requires num_positions == num_velocities, got {nq} != {nv}",
                "Dynamics constraint construction",
            )

        self.manifold = manifold
        self.num_states = manifold.num_states
        self.num_control_inputs = manifold.num_inputs
        self.num_kinematic_constraints = manifold.constraint_dimension()

        super().__init__(self._build_function(manifold), "dircon_dynamics")

        if self.num_outputs != self.num_states:
            raise ConfigurationError(
                f"Dynamics defect has {self.num_outputs} rows, state dimension is "
                f"{self.num_states}",
                "Dynamics constraint construction",
            )

    def _build_function(self, manifold: ConstraintManifoldProtocol) -> ca.Function:
        nx = self.num_states
        nu = self.num_control_inputs
        nq = manifold.num_positions
        k = self.num_kinematic_constraints

        h = ca.MX.sym("h", 1)
        x0 = ca.MX.sym("x0", nx)
        x1 = ca.MX.sym("x1", nx)
        u0u1 = ca.MX.sym("u0u1", 2 * nu)
        l0l1 = ca.MX.sym("l0l1", 2 * k)
        lc = ca.MX.sym("lc", k)
        vc = ca.MX.sym("vc", k)

        u0, u1 = u0u1[:nu], u0u1[nu:]
        l0, l1 = l0l1[:k], l0l1[k:]

        xdot0 = manifold.evaluate(x0, u0, l0).xdot
        xdot1 = manifold.evaluate(x1, u1, l1).xdot

        xc = 0.5 * (x0 + x1) + h / 8 * (xdot0 - xdot1)
        xdotc = -3 / (2 * h) * (x0 - x1) - 0.25 * (xdot0 + xdot1)
        uc = 0.5 * (u0 + u1)

        midpoint = manifold.evaluate(xc, uc, lc)
        defect = xdotc - midpoint.xdot
        if k > 0:
            relaxation = ca.vertcat(ca.mtimes(midpoint.jacobian.T, vc), ca.MX(nx - nq, 1))
            defect = defect - relaxation

        return ca.Function(
            "dircon_dynamics",
            [h, x0, x1, u0u1, l0l1, lc, vc],
            [defect],
            ["h", "x0", "x1", "u0u1", "l0l1", "lc", "vc"],
            ["defect"],
        )
