# dirconlab/direct_solver/initial_guess_solver.py
"""
Warm starts: sample user trajectories onto the decision variables.
"""

from __future__ import annotations

import logging

import numpy as np

from ..dl_types import FloatArray
from ..exceptions import DataIntegrityError
from ..program.builder import ProgramBuilder
from ..trajectory import PiecewiseTrajectory
from .indexing_solver import (
    collocation_force_slice,
    collocation_slack_slice,
    force_slice,
    input_slice,
    post_impact_velocity_slice,
    shared_state_slice,
)
from .types_solver import (
    ModeConfiguration,
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
)


logger = logging.getLogger(__name__)


def _has_data(trajectory: PiecewiseTrajectory | None) -> bool:
    return trajectory is not None and not trajectory.is_empty()


def _checked_value(
    trajectory: PiecewiseTrajectory, time: float, expected: int, name: str
) -> FloatArray:
    value = trajectory.value(time)
    if value.size != expected:
        raise DataIntegrityError(
            f"{name} trajectory has dimension {value.size}, expected {expected}",
            "Initial guess sampling",
        )
    return value


def mode_start_time_guess(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    layout: SampleLayout,
    mode: int,
) -> float:
    """Sum of the current timestep guesses preceding ``mode``."""
    first = layout.mode_starts[mode]
    if first == 0:
        return 0.0
    return float(np.sum(builder.initial_guess(shared.timestep.slice(0, first))))


def apply_force_initial_guess(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    mode_vars: ModeVariableReferences,
    mode: ModeConfiguration,
    layout: SampleLayout,
    traj_force: PiecewiseTrajectory | None,
    traj_collocation_force: PiecewiseTrajectory | None,
    traj_collocation_slack: PiecewiseTrajectory | None,
) -> None:
    """
    Set initial guesses for a mode's force, collocation force and slack.

    Sample ``j`` is read at ``t_start + j h`` and collocation point ``j`` at
    ``t_start + (j + 0.5) h``, with ``h`` the guess of the mode's first
    timestep. Missing or empty trajectories zero-fill.
    """
    i = mode.index
    k = mode.num_kinematic_constraints
    n = mode.num_samples
    if k == 0:
        logger.debug("Mode %d has no constraint forces to warm start", i)
        return
    h = float(builder.initial_guess(shared.timestep.slice(layout.mode_starts[i], 1))[0])
    start = mode_start_time_guess(builder, shared, layout, i)

    for j in range(n):
        value = (
            _checked_value(traj_force, start + j * h, k, "Force")
            if _has_data(traj_force)
            else np.zeros(k)
        )
        builder.set_initial_guess(force_slice(mode_vars, k, j), value)

    for j in range(n - 1):
        time = start + (j + 0.5) * h
        force_value = (
            _checked_value(traj_collocation_force, time, k, "Collocation force")
            if _has_data(traj_collocation_force)
            else np.zeros(k)
        )
        slack_value = (
            _checked_value(traj_collocation_slack, time, k, "Collocation slack")
            if _has_data(traj_collocation_slack)
            else np.zeros(k)
        )
        builder.set_initial_guess(collocation_force_slice(mode_vars, k, j), force_value)
        builder.set_initial_guess(collocation_slack_slice(mode_vars, k, j), slack_value)

    logger.debug("Force warm start for mode %d from t=%.4g with h=%.4g", i, start, h)


def apply_state_input_initial_guess(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    layout: SampleLayout,
    dims: SystemDimensions,
    modes: list[ModeConfiguration],
    traj_input: PiecewiseTrajectory | None,
    traj_state: PiecewiseTrajectory | None,
) -> None:
    """
    Sample state and input trajectories at the guessed sample times.

    The timestep guesses become ``duration / (N - 1)`` clipped into each
    mode's bounds, where the duration is the span of whichever trajectory is
    given. Sample times are the running sum of those clipped timesteps.
    Post-transition velocity blocks are read from the state trajectory at
    the transition knots.
    """
    spans = [t for t in (traj_state, traj_input) if _has_data(t)]
    if not spans:
        return

    start = min(t.start_time for t in spans)
    duration = max(t.end_time for t in spans) - start
    num_steps = layout.num_timesteps
    h_uniform = duration / num_steps if num_steps > 0 else 0.0

    timestep_guess = np.full(num_steps, h_uniform)
    for mode in modes:
        steps = layout.timestep_indices(mode.index)
        owned = slice(steps.start, steps.stop)
        timestep_guess[owned] = np.clip(h_uniform, mode.min_timestep, mode.max_timestep)
        builder.set_initial_guess(
            shared.timestep.slice(steps.start, len(steps)), timestep_guess[owned]
        )

    # Samples sit where the clipped timesteps put them
    times = start + np.concatenate([[0.0], np.cumsum(timestep_guess)])
    for k, time in enumerate(times):
        if _has_data(traj_input) and dims.num_inputs > 0:
            builder.set_initial_guess(
                input_slice(shared, dims, k),
                _checked_value(traj_input, time, dims.num_inputs, "Input"),
            )
        if _has_data(traj_state):
            builder.set_initial_guess(
                shared_state_slice(shared, dims, k),
                _checked_value(traj_state, time, dims.num_states, "State"),
            )

    if _has_data(traj_state):
        for mode in range(1, layout.num_modes):
            state = _checked_value(
                traj_state, times[layout.mode_starts[mode]], dims.num_states, "State"
            )
            builder.set_initial_guess(
                post_impact_velocity_slice(shared, dims, mode), state[dims.num_positions :]
            )
