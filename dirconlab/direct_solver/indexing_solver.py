# dirconlab/direct_solver/indexing_solver.py
"""
Pure index arithmetic from (mode, sample) pairs to variable slices.

Nothing here touches the solver: every function maps integers to slice
descriptions, so the mapping can be checked without building constraints.
"""

from ..dl_types import ModeID
from ..exceptions import DataIntegrityError
from ..program.variables import CompositeSlice, VariableSlice
from .types_solver import (
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
)


def shared_state_slice(
    shared: SharedVariableReferences, dims: SystemDimensions, sample: int
) -> CompositeSlice:
    """Shared state slot ``x[k]`` of global sample ``k``."""
    nx = dims.num_states
    return CompositeSlice((shared.state.slice(sample * nx, nx),))


def post_impact_velocity_slice(
    shared: SharedVariableReferences, dims: SystemDimensions, mode: ModeID
) -> VariableSlice:
    if shared.post_impact_velocity is None:
        raise DataIntegrityError(
            "Post-transition velocity variables were not allocated", "Hybrid state indexing"
        )
    nv = dims.num_velocities
    return shared.post_impact_velocity.slice(mode * nv, nv)


def state_slice(
    shared: SharedVariableReferences,
    layout: SampleLayout,
    dims: SystemDimensions,
    mode: ModeID,
    sample: int,
) -> CompositeSlice:
    """
    State of ``sample`` within ``mode``.

    The first sample of every mode after the first is the transition knot:
    its configuration comes from the shared slot and its velocity from the
    mode's post-transition block. Every other sample is the shared slot.
    """
    k = layout.global_index(mode, sample)
    if sample == 0 and mode > 0:
        nx = dims.num_states
        nq = dims.num_positions
        return CompositeSlice(
            (
                shared.state.slice(k * nx, nq),
                post_impact_velocity_slice(shared, dims, mode),
            )
        )
    return shared_state_slice(shared, dims, k)


def input_slice(
    shared: SharedVariableReferences, dims: SystemDimensions, sample: int
) -> VariableSlice:
    nu = dims.num_inputs
    return shared.input.slice(sample * nu, nu)


def input_pair_slice(
    shared: SharedVariableReferences, dims: SystemDimensions, sample: int
) -> VariableSlice:
    """Inputs of global samples ``k`` and ``k + 1`` stacked."""
    nu = dims.num_inputs
    return shared.input.slice(sample * nu, 2 * nu)


def timestep_slice(shared: SharedVariableReferences, step: int) -> VariableSlice:
    return shared.timestep.slice(step, 1)


def adjacent_timesteps_slice(
    shared: SharedVariableReferences, layout: SampleLayout, sample: int
) -> VariableSlice:
    """Timesteps touching global sample ``k``: one at the ends, two inside."""
    last = layout.num_samples - 1
    if not 0 <= sample <= last:
        raise DataIntegrityError(
            f"Sample {sample} outside [0, {layout.num_samples})", "Hybrid sample indexing"
        )
    if sample == 0:
        return shared.timestep.slice(0, 1)
    if sample == last:
        return shared.timestep.slice(last - 1, 1)
    return shared.timestep.slice(sample - 1, 2)


def force_slice(mode_vars: ModeVariableReferences, k: int, sample: int) -> VariableSlice:
    """Constraint force ``lambda[i][j]`` (``k`` rows)."""
    return mode_vars.force.slice(sample * k, k)


def force_pair_slice(mode_vars: ModeVariableReferences, k: int, sample: int) -> VariableSlice:
    """Constraint forces of samples ``j`` and ``j + 1`` stacked."""
    return mode_vars.force.slice(sample * k, 2 * k)


def collocation_force_slice(
    mode_vars: ModeVariableReferences, k: int, segment: int
) -> VariableSlice:
    return mode_vars.collocation_force.slice(segment * k, k)


def collocation_slack_slice(
    mode_vars: ModeVariableReferences, k: int, segment: int
) -> VariableSlice:
    return mode_vars.collocation_slack.slice(segment * k, k)


def offset_slice(mode_vars: ModeVariableReferences) -> VariableSlice:
    return mode_vars.offset.all()
