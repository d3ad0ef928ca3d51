# dirconlab/direct_solver/transition_solver.py
"""
Relations between the pre- and post-transition velocities at transition knots.

The shared state slot of a transition knot stores the configuration and the
pre-transition velocity; the next mode reads its velocity from its own
post-transition block. Without a law the two velocities are unrelated.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import casadi as ca

from ..program.bindings import EqualityConstraint, ProgramConstraint
from ..program.builder import ProgramBuilder
from .indexing_solver import post_impact_velocity_slice, shared_state_slice
from .types_solver import (
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
)


logger = logging.getLogger(__name__)


class ModeTransitionLaw:
    """
    Relation imposed at the knot entering a mode.

    A law provides a constraint over three arguments: the full
    pre-transition state (nx), the post-transition velocity (nv) and an
    impulse vector of ``impulse_dimension`` entries owned by the mode.
    """

    impulse_dimension: int = 0

    def constraint(self, dims: SystemDimensions) -> ProgramConstraint:
        raise NotImplementedError


class VelocityContinuityLaw(ModeTransitionLaw):
    """``v_post == v_pre``: transitions without impact, such as lift-off."""

    impulse_dimension = 0

    def constraint(self, dims: SystemDimensions) -> ProgramConstraint:
        x_pre = ca.MX.sym("x_pre", dims.num_states)
        v_post = ca.MX.sym("v_post", dims.num_velocities)
        impulse = ca.MX.sym("impulse", 0)
        jump = v_post - x_pre[dims.num_positions :]
        function = ca.Function(
            "velocity_continuity",
            [x_pre, v_post, impulse],
            [jump],
            ["x_pre", "v_post", "impulse"],
            ["jump"],
        )
        return EqualityConstraint(function, "velocity_continuity")


def apply_transition_laws(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    layout: SampleLayout,
    dims: SystemDimensions,
    mode_variables: Sequence[ModeVariableReferences],
    laws: Sequence[ModeTransitionLaw | None],
) -> None:
    """Bind ``laws[i - 1]`` at the knot entering mode ``i`` for every ``i >= 1``."""
    for mode in range(1, layout.num_modes):
        law = laws[mode - 1]
        if law is None:
            logger.warning(
                "No transition law entering mode %d: post-transition velocity is free", mode
            )
            continue

        impulse = mode_variables[mode].impulse
        impulse_target = (
            impulse.all() if impulse is not None else shared.timestep.slice(0, 0)
        )
        builder.bind_constraint(
            law.constraint(dims),
            [
                shared_state_slice(shared, dims, layout.mode_starts[mode]),
                post_impact_velocity_slice(shared, dims, mode),
                impulse_target,
            ],
            "transition",
            mode,
        )
        logger.debug("Bound %s entering mode %d", type(law).__name__, mode)
