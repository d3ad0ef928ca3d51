# dirconlab/direct_solver/reconstruction_solver.py
"""
Trajectories rebuilt from a solved assignment.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import numpy as np

from ..dl_types import FloatArray
from ..exceptions import InterpolationError, SolutionExtractionError
from ..program.builder import ProgramResult
from ..program.variables import SliceLike
from ..trajectory import PiecewiseTrajectory
from .indexing_solver import force_slice, input_slice
from .types_solver import (
    ModeConfiguration,
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
)


logger = logging.getLogger(__name__)

SampleStateReader = Callable[[ProgramResult, int], FloatArray]
"""Reads the state used for reconstruction at a global sample."""


def sample_times(result: ProgramResult, shared: SharedVariableReferences) -> FloatArray:
    """``[0, h0, h0 + h1, ...]`` from the solved timesteps."""
    h = result.value(shared.timestep)
    return np.concatenate([[0.0], np.cumsum(h)])


def _stacked(result: ProgramResult, slices: Sequence[SliceLike], dimension: int) -> FloatArray:
    if not slices:
        return np.zeros((dimension, 0))
    return np.column_stack([result.value(target) for target in slices]).reshape(
        dimension, len(slices)
    )


def reconstruct_input(
    result: ProgramResult,
    shared: SharedVariableReferences,
    layout: SampleLayout,
    dims: SystemDimensions,
) -> PiecewiseTrajectory:
    """First-order hold through the solved inputs; empty without inputs."""
    if dims.num_inputs == 0:
        return PiecewiseTrajectory.empty()
    times = sample_times(result, shared)
    inputs = _stacked(
        result, [input_slice(shared, dims, k) for k in range(layout.num_samples)], dims.num_inputs
    )
    try:
        return PiecewiseTrajectory.first_order_hold(times, inputs)
    except InterpolationError:
        logger.error("Input reconstruction failed; solved timesteps: %s", np.diff(times))
        raise


def reconstruct_state(
    result: ProgramResult,
    shared: SharedVariableReferences,
    mode_variables: Sequence[ModeVariableReferences],
    modes: Sequence[ModeConfiguration],
    layout: SampleLayout,
    dims: SystemDimensions,
    read_state: SampleStateReader,
) -> PiecewiseTrajectory:
    """
    Cubic Hermite interpolation of the solved states.

    Derivatives come from each mode's constrained dynamics at its samples;
    at a transition knot the later mode's value is used.
    """
    times = sample_times(result, shared)
    states = np.zeros((dims.num_states, layout.num_samples))
    derivatives = np.zeros((dims.num_states, layout.num_samples))

    for k in range(layout.num_samples):
        states[:, k] = read_state(result, k)

    for mode, mode_vars in zip(modes, mode_variables, strict=True):
        k_rows = mode.num_kinematic_constraints
        for j in range(mode.num_samples):
            k = layout.global_index(mode.index, j)
            control = result.value(input_slice(shared, dims, k))
            force = result.value(force_slice(mode_vars, k_rows, j))
            derivatives[:, k] = mode.manifold.derivative(states[:, k], control, force)

    try:
        return PiecewiseTrajectory.cubic_hermite(times, states, derivatives)
    except InterpolationError:
        logger.error("State reconstruction failed; solved timesteps: %s", np.diff(times))
        raise


def reconstruct_force(
    result: ProgramResult,
    shared: SharedVariableReferences,
    mode_vars: ModeVariableReferences,
    mode: ModeConfiguration,
    layout: SampleLayout,
) -> PiecewiseTrajectory:
    """First-order hold through a mode's solved constraint forces."""
    k_rows = mode.num_kinematic_constraints
    if k_rows == 0:
        return PiecewiseTrajectory.empty()
    if mode_vars.force.name not in result.values:
        raise SolutionExtractionError(
            "Result has no constraint forces", "Force reconstruction", mode=mode.index
        )
    first = layout.mode_starts[mode.index]
    times = sample_times(result, shared)[first : first + mode.num_samples]
    forces = _stacked(
        result, [force_slice(mode_vars, k_rows, j) for j in range(mode.num_samples)], k_rows
    )
    return PiecewiseTrajectory.first_order_hold(times, forces)
