# dirconlab/direct_solver/constraints_solver.py
"""
Per-mode constraint wiring: collocation defects, kinematic residuals at
interior and boundary samples, and force legality.
"""

import logging

import numpy as np

from ..constraints import DirconDynamicConstraint, DirconKinematicConstraint
from ..dl_types import BoundaryPolicy
from ..program.bindings import QuadraticCost
from ..program.builder import ProgramBuilder
from .indexing_solver import (
    collocation_force_slice,
    collocation_slack_slice,
    force_pair_slice,
    force_slice,
    input_pair_slice,
    input_slice,
    offset_slice,
    state_slice,
    timestep_slice,
)
from .types_solver import (
    ModeConfiguration,
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
)


logger = logging.getLogger(__name__)


def apply_mode_dynamics_constraints(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    mode_vars: ModeVariableReferences,
    mode: ModeConfiguration,
    layout: SampleLayout,
    dims: SystemDimensions,
    constraint: DirconDynamicConstraint,
) -> None:
    """One collocation defect per segment ``(j, j + 1)`` of the mode."""
    i = mode.index
    k = mode.num_kinematic_constraints
    for j in range(mode.num_samples - 1):
        global_sample = layout.global_index(i, j)
        builder.bind_constraint(
            constraint,
            [
                timestep_slice(shared, global_sample),
                state_slice(shared, layout, dims, i, j),
                state_slice(shared, layout, dims, i, j + 1),
                input_pair_slice(shared, dims, global_sample),
                force_pair_slice(mode_vars, k, j),
                collocation_force_slice(mode_vars, k, j),
                collocation_slack_slice(mode_vars, k, j),
            ],
            "dynamics",
            i,
        )


def _bind_kinematic(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    mode_vars: ModeVariableReferences,
    mode: ModeConfiguration,
    layout: SampleLayout,
    dims: SystemDimensions,
    constraint: DirconKinematicConstraint,
    sample: int,
    family: str,
) -> None:
    i = mode.index
    builder.bind_constraint(
        constraint,
        [
            state_slice(shared, layout, dims, i, sample),
            input_slice(shared, dims, layout.global_index(i, sample)),
            force_slice(mode_vars, mode.num_kinematic_constraints, sample),
            offset_slice(mode_vars),
        ],
        family,
        i,
    )


def apply_mode_kinematic_constraints(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    mode_vars: ModeVariableReferences,
    mode: ModeConfiguration,
    layout: SampleLayout,
    dims: SystemDimensions,
) -> None:
    """Pinned residuals at interior samples; policy-driven residuals at both ends."""
    interior = DirconKinematicConstraint(mode.manifold, mode.options, BoundaryPolicy.PINNED)
    for j in range(1, mode.num_samples - 1):
        _bind_kinematic(
            builder, shared, mode_vars, mode, layout, dims, interior, j, "kinematic_interior"
        )

    start = DirconKinematicConstraint(mode.manifold, mode.options, mode.start_type)
    end = DirconKinematicConstraint(mode.manifold, mode.options, mode.end_type)
    _bind_kinematic(builder, shared, mode_vars, mode, layout, dims, start, 0, "kinematic_start")
    _bind_kinematic(
        builder,
        shared,
        mode_vars,
        mode,
        layout,
        dims,
        end,
        mode.num_samples - 1,
        "kinematic_end",
    )

    logger.debug(
        "Mode %d kinematic rows: interior=%d, start=%d (%s), end=%d (%s)",
        mode.index,
        interior.num_outputs,
        start.num_outputs,
        mode.start_type.name,
        end.num_outputs,
        mode.end_type.name,
    )


def apply_mode_force_constraints(
    builder: ProgramBuilder,
    mode_vars: ModeVariableReferences,
    mode: ModeConfiguration,
) -> None:
    """
    Bind every constraint object's force-legality constraints to its force
    sub-block, and add the optional force regularization.

    Legality is enforced at samples ``0..n-2``.
    """
    i = mode.index
    k = mode.num_kinematic_constraints
    manifold = mode.manifold

    row_offset = 0
    blocks: list[tuple[int, int]] = []
    for s in range(manifold.sub_object_count()):
        length = manifold.sub_object(s).length
        blocks.append((row_offset, length))
        row_offset += length

    for j in range(mode.num_samples - 1):
        for s, (offset, length) in enumerate(blocks):
            sub_object = manifold.sub_object(s)
            for m in range(sub_object.force_constraint_count()):
                builder.bind_constraint(
                    sub_object.force_constraint(m),
                    [mode_vars.force.slice(j * k + offset, length)],
                    "force_legality",
                    i,
                )

    if mode.options.force_cost_enabled and k > 0:
        cost = QuadraticCost(np.eye(k), description=f"force_cost[{i}]")
        for j in range(mode.num_samples):
            builder.bind_cost(cost, [force_slice(mode_vars, k, j)], "force_cost", i)
