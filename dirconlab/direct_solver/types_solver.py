# dirconlab/direct_solver/types_solver.py
"""
Type definitions and data structure containers for the hybrid transcription.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..dl_types import BoundaryPolicy, ConstraintManifoldProtocol, ModeID, ModeOptions
from ..exceptions import DataIntegrityError
from ..program.variables import VariableGroup


# Variable group names - SINGLE SOURCE OF TRUTH
TIMESTEP_GROUP = "h"
STATE_GROUP = "x"
INPUT_GROUP = "u"
POST_IMPACT_VELOCITY_GROUP = "v_post"


def force_group_name(mode: ModeID) -> str:
    return f"lambda[{mode}]"


def collocation_force_group_name(mode: ModeID) -> str:
    return f"lambda_c[{mode}]"


def collocation_slack_group_name(mode: ModeID) -> str:
    return f"gamma_c[{mode}]"


def offset_group_name(mode: ModeID) -> str:
    return f"offset[{mode}]"


def impulse_group_name(mode: ModeID) -> str:
    return f"impulse[{mode}]"


@dataclass(frozen=True)
class SystemDimensions:
    """Sizes shared by every mode of a hybrid system."""

    num_positions: int
    num_velocities: int
    num_inputs: int

    @property
    def num_states(self) -> int:
        return self.num_positions + self.num_velocities


@dataclass(frozen=True)
class ModeConfiguration:
    """Immutable description of one mode of the hybrid sequence."""

    index: ModeID
    num_samples: int
    min_timestep: float
    max_timestep: float
    manifold: ConstraintManifoldProtocol
    options: ModeOptions

    @property
    def num_timesteps(self) -> int:
        return self.num_samples - 1

    @property
    def num_kinematic_constraints(self) -> int:
        return self.manifold.constraint_dimension()

    @property
    def start_type(self) -> BoundaryPolicy:
        return self.options.start_type

    @property
    def end_type(self) -> BoundaryPolicy:
        return self.options.end_type


@dataclass(frozen=True)
class SampleLayout:
    """
    Global sample numbering with a one-knot overlap between consecutive modes.

    ``mode_starts[i + 1] = mode_starts[i] + mode_lengths[i] - 1``; the shared
    sample is the transition knot.
    """

    mode_lengths: tuple[int, ...]
    mode_starts: tuple[int, ...]

    @classmethod
    def from_mode_lengths(cls, mode_lengths: tuple[int, ...]) -> SampleLayout:
        starts = [0]
        for length in mode_lengths[:-1]:
            starts.append(starts[-1] + length - 1)
        return cls(tuple(mode_lengths), tuple(starts))

    @property
    def num_modes(self) -> int:
        return len(self.mode_lengths)

    @property
    def num_samples(self) -> int:
        return sum(self.mode_lengths) - self.num_modes + 1

    @property
    def num_timesteps(self) -> int:
        return self.num_samples - 1

    def global_index(self, mode: ModeID, sample: int) -> int:
        """Global sample of ``sample`` within ``mode``."""
        self.check(mode, sample)
        return self.mode_starts[mode] + sample

    def timestep_indices(self, mode: ModeID) -> range:
        """Global timesteps owned by ``mode``."""
        self.check_mode(mode)
        start = self.mode_starts[mode]
        return range(start, start + self.mode_lengths[mode] - 1)

    def check_mode(self, mode: ModeID) -> None:
        if not 0 <= mode < self.num_modes:
            raise DataIntegrityError(
                f"Mode outside [0, {self.num_modes})", "Hybrid sample indexing", mode=mode
            )

    def check(self, mode: ModeID, sample: int) -> None:
        self.check_mode(mode)
        if not 0 <= sample < self.mode_lengths[mode]:
            raise DataIntegrityError(
                f"Sample {sample} outside [0, {self.mode_lengths[mode]})",
                "Hybrid sample indexing",
                mode=mode,
            )


@dataclass
class ModeVariableReferences:
    """Variable groups allocated for a single mode."""

    mode: ModeID
    force: VariableGroup
    collocation_force: VariableGroup
    collocation_slack: VariableGroup
    offset: VariableGroup
    impulse: VariableGroup | None = None


@dataclass
class SharedVariableReferences:
    """Variable groups shared by all modes."""

    timestep: VariableGroup
    state: VariableGroup
    input: VariableGroup
    post_impact_velocity: VariableGroup | None = None
    mode_variables: list[ModeVariableReferences] = field(default_factory=list)
