# dirconlab/constraints/kinematic_constraint.py
"""
Holonomic constraint enforcement at a single sample.
"""

from __future__ import annotations

import logging

import casadi as ca

from ..dl_types import BoundaryPolicy, ConstraintManifoldProtocol, ModeOptions
from ..exceptions import ConfigurationError
from ..program.bindings import EqualityConstraint


logger = logging.getLogger(__name__)


class DirconKinematicConstraint(EqualityConstraint):
    """
    Position, velocity and acceleration level residuals at one sample.

    Arguments, in order: state (nx), input (nu), force (k) and relative
    offsets (number of relative rows). Rows are emitted per policy:

    - ``PINNED``: ``[c - R offset; cdot; cddot]``
    - ``VELOCITY``: ``[cdot; cddot]``
    - ``FREE``: ``[cddot]``

    where ``R`` maps each offset onto its relative constraint row.

    Args:
        manifold: Constraint manifold of the mode
        options: Mode options supplying the relative-row flags
        policy: Which residual levels to enforce
    """

    def __init__(
        self,
        manifold: ConstraintManifoldProtocol,
        options: ModeOptions,
        policy: BoundaryPolicy = BoundaryPolicy.PINNED,
    ) -> None:
        k = manifold.constraint_dimension()
        if options.num_constraints != k:
            raise ConfigurationError(
                f"Mode options flag {options.num_constraints} rows, manifold has {k}",
                "Kinematic constraint construction",
            )
        self.manifold = manifold
        self.policy = policy
        self.num_relative = options.num_relative
        self._relative_map = options.relative_map()
        super().__init__(self._build_function(manifold), f"dircon_kinematic_{policy.name.lower()}")

    def _build_function(self, manifold: ConstraintManifoldProtocol) -> ca.Function:
        x = ca.MX.sym("x", manifold.num_states)
        u = ca.MX.sym("u", manifold.num_inputs)
        lam = ca.MX.sym("lambda", manifold.constraint_dimension())
        offset = ca.MX.sym("offset", self.num_relative)

        evaluation = manifold.evaluate(x, u, lam)
        levels = []
        if self.policy.enforces_position:
            position = evaluation.c
            if self.num_relative > 0:
                position = position - ca.mtimes(ca.DM(self._relative_map), offset)
            levels.append(position)
        if self.policy.enforces_velocity:
            levels.append(evaluation.cdot)
        levels.append(evaluation.cddot)

        return ca.Function(
            f"dircon_kinematic_{self.policy.name.lower()}",
            [x, u, lam, offset],
            [ca.vertcat(*levels)],
            ["x", "u", "lambda", "offset"],
            ["residual"],
        )
