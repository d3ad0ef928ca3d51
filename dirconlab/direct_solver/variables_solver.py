# dirconlab/direct_solver/variables_solver.py
"""
Decision variable allocation for the hybrid transcription.
"""

import logging

import numpy as np

from ..program.builder import ProgramBuilder
from ..utils.constants import DEFAULT_TIMESTEP_GUESS
from .types_solver import (
    INPUT_GROUP,
    POST_IMPACT_VELOCITY_GROUP,
    STATE_GROUP,
    TIMESTEP_GROUP,
    ModeConfiguration,
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
    collocation_force_group_name,
    collocation_slack_group_name,
    force_group_name,
    impulse_group_name,
    offset_group_name,
)


logger = logging.getLogger(__name__)


def setup_shared_variables(
    builder: ProgramBuilder, layout: SampleLayout, dims: SystemDimensions
) -> SharedVariableReferences:
    """Create the timestep, state and input groups shared by all modes."""
    num_samples = layout.num_samples
    timestep = builder.new_variables(layout.num_timesteps, TIMESTEP_GROUP)
    state = builder.new_variables(num_samples * dims.num_states, STATE_GROUP)
    control = builder.new_variables(num_samples * dims.num_inputs, INPUT_GROUP)

    logger.debug(
        "Shared variables: %d timesteps, %d samples (nx=%d, nu=%d)",
        layout.num_timesteps,
        num_samples,
        dims.num_states,
        dims.num_inputs,
    )
    return SharedVariableReferences(timestep=timestep, state=state, input=control)


def setup_post_impact_velocity_variables(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    layout: SampleLayout,
    dims: SystemDimensions,
) -> None:
    """One post-transition velocity block per mode; mode 0's block is never constrained."""
    shared.post_impact_velocity = builder.new_variables(
        layout.num_modes * dims.num_velocities, POST_IMPACT_VELOCITY_GROUP
    )


def setup_mode_variables(
    builder: ProgramBuilder, mode: ModeConfiguration, impulse_size: int | None = None
) -> ModeVariableReferences:
    """Create force, collocation force/slack, offset and optional impulse groups of a mode."""
    k = mode.num_kinematic_constraints
    n = mode.num_samples
    i = mode.index

    references = ModeVariableReferences(
        mode=i,
        force=builder.new_variables(k * n, force_group_name(i)),
        collocation_force=builder.new_variables(k * (n - 1), collocation_force_group_name(i)),
        collocation_slack=builder.new_variables(k * (n - 1), collocation_slack_group_name(i)),
        offset=builder.new_variables(mode.options.num_relative, offset_group_name(i)),
    )
    if impulse_size is not None:
        references.impulse = builder.new_variables(impulse_size, impulse_group_name(i))

    logger.debug(
        "Mode %d variables: k=%d, samples=%d, relative offsets=%d",
        i,
        k,
        n,
        mode.options.num_relative,
    )
    return references


def initial_timestep_guess(mode: ModeConfiguration) -> float:
    """Default timestep guess clipped into the mode's bounds."""
    return float(np.clip(DEFAULT_TIMESTEP_GUESS, mode.min_timestep, mode.max_timestep))


def apply_mode_timestep_constraints(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    mode: ModeConfiguration,
    layout: SampleLayout,
) -> None:
    """Bound the mode's timesteps and make them equal within the mode."""
    steps = layout.timestep_indices(mode.index)
    first = steps.start
    count = len(steps)
    timestep_slice = shared.timestep.slice(first, count)

    builder.bounding_box(
        mode.min_timestep, mode.max_timestep, timestep_slice, "timestep_bounds", mode.index
    )

    # Consecutive steps inside the mode only, never across a transition
    h = shared.timestep.symbol
    for k in range(first, first + count - 1):
        builder.linear_equality(
            h[k] - h[k + 1],
            [shared.timestep.slice(k, 2)],
            "equal_timestep",
            mode.index,
        )

    builder.set_initial_guess(timestep_slice, np.full(count, initial_timestep_guess(mode)))
