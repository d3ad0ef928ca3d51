# dirconlab/direct_solver/core_solver.py
"""
Hybrid DIRCON transcription: a sequence of constrained dynamics modes
transcribed into one nonlinear program.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import casadi as ca
import numpy as np

from ..constraints import DirconDynamicConstraint
from ..dl_types import (
    ConstraintManifoldProtocol,
    FloatArray,
    KnotPointRelation,
    ModeID,
    ModeOptions,
    RunningCostIntegrand,
)
from ..exceptions import ConfigurationError, DataIntegrityError
from ..input_validation import (
    validate_dimension_match,
    validate_mode_array_lengths,
    validate_mode_sample_count,
    validate_timestep_bounds,
)
from ..program.bindings import LinearConstraint
from ..program.builder import ProgramBuilder, ProgramResult
from ..program.variables import CompositeSlice, SliceLike, VariableGroup, VariableSlice
from ..utils.constants import DEFAULT_MAX_TIMESTEP, DEFAULT_MIN_TIMESTEP
from ..trajectory import PiecewiseTrajectory
from .constraints_solver import (
    apply_mode_dynamics_constraints,
    apply_mode_force_constraints,
    apply_mode_kinematic_constraints,
)
from .indexing_solver import (
    force_slice,
    input_slice,
    post_impact_velocity_slice,
    shared_state_slice,
    state_slice,
    timestep_slice,
)
from .initial_guess_solver import apply_force_initial_guess, apply_state_input_initial_guess
from .integrals_solver import apply_running_cost
from .reconstruction_solver import (
    reconstruct_force,
    reconstruct_input,
    reconstruct_state,
    sample_times,
)
from .transition_solver import ModeTransitionLaw, apply_transition_laws
from .types_solver import (
    ModeConfiguration,
    ModeVariableReferences,
    SampleLayout,
    SharedVariableReferences,
    SystemDimensions,
)
from .variables_solver import (
    apply_mode_timestep_constraints,
    setup_mode_variables,
    setup_post_impact_velocity_variables,
    setup_shared_variables,
)


logger = logging.getLogger(__name__)


def _system_dimensions(manifolds: Sequence[ConstraintManifoldProtocol]) -> SystemDimensions:
    first = manifolds[0]
    dims = SystemDimensions(first.num_positions, first.num_velocities, first.num_inputs)
    for mode, manifold in enumerate(manifolds[1:], start=1):
        context = f"Mode {mode} constraint manifold"
        validate_dimension_match(
            manifold.num_positions, dims.num_positions, "num_positions", context
        )
        validate_dimension_match(
            manifold.num_velocities, dims.num_velocities, "num_velocities", context
        )
        validate_dimension_match(manifold.num_inputs, dims.num_inputs, "num_inputs", context)
    return dims


def _mode_configurations(
    manifolds: Sequence[ConstraintManifoldProtocol],
    num_samples: Sequence[int],
    min_timesteps: Sequence[float] | None,
    max_timesteps: Sequence[float] | None,
    options: Sequence[ModeOptions] | None,
) -> list[ModeConfiguration]:
    modes = []
    for i, manifold in enumerate(manifolds):
        min_timestep = min_timesteps[i] if min_timesteps is not None else DEFAULT_MIN_TIMESTEP
        max_timestep = max_timesteps[i] if max_timesteps is not None else DEFAULT_MAX_TIMESTEP
        validate_mode_sample_count(num_samples[i], i)
        validate_timestep_bounds(min_timestep, max_timestep, i)
        k = manifold.constraint_dimension()
        mode_options = options[i] if options is not None else ModeOptions.for_constraints(k)
        validate_dimension_match(
            mode_options.num_constraints,
            k,
            "constraints_relative length",
            f"Mode {i} options",
        )
        modes.append(
            ModeConfiguration(
                index=i,
                num_samples=int(num_samples[i]),
                min_timestep=float(min_timestep),
                max_timestep=float(max_timestep),
                manifold=manifold,
                options=mode_options,
            )
        )
    return modes


class HybridDircon:
    """
    Direct collocation with constraints across a fixed sequence of modes.

    Modes share one global sample numbering in which consecutive modes
    overlap by exactly one transition knot. All decision variables live in
    one :class:`ProgramBuilder`; the transcription composes the builder
    rather than extending it.

    Args:
        manifolds: Constraint manifold of every mode, in sequence order
        num_samples: Samples per mode (at least two each)
        min_timesteps: Lower timestep bound per mode (default ``DEFAULT_MIN_TIMESTEP``)
        max_timesteps: Upper timestep bound per mode (default ``DEFAULT_MAX_TIMESTEP``)
        options: Per-mode options; defaults to pinned boundaries, no relative rows
        transition_laws: One entry per transition (``num_modes - 1``); ``None``
            leaves the post-transition velocity of that transition free
        name: Program name used in logs

    Raises:
        ConfigurationError: If per-mode arrays or dimensions are inconsistent
        DataIntegrityError: If construction fails unexpectedly

    Examples:
        >>> stance = KinematicDataSet(dynamics, [foot])
        >>> flight = KinematicDataSet(dynamics)
        >>> dircon = HybridDircon([stance, flight], [11, 11], [0.01, 0.01], [0.1, 0.1])
        >>> dircon.add_running_cost(lambda x, u: ca.sumsqr(u))
        >>> result = dircon.solve()
    """

    def __init__(
        self,
        manifolds: Sequence[ConstraintManifoldProtocol],
        num_samples: Sequence[int],
        min_timesteps: Sequence[float] | None = None,
        max_timesteps: Sequence[float] | None = None,
        options: Sequence[ModeOptions] | None = None,
        transition_laws: Sequence[ModeTransitionLaw | None] | None = None,
        name: str = "hybrid_dircon",
    ) -> None:
        try:
            if len(manifolds) == 0:
                raise ConfigurationError("At least one mode is required", "Hybrid DIRCON setup")
            num_modes = len(manifolds)
            optional_arrays = {
                label: array
                for label, array in (
                    ("min_timesteps", min_timesteps),
                    ("max_timesteps", max_timesteps),
                    ("options", options),
                )
                if array is not None
            }
            validate_mode_array_lengths(num_modes, num_samples=num_samples, **optional_arrays)
            laws = (
                list(transition_laws)
                if transition_laws is not None
                else [None] * (num_modes - 1)
            )
            if len(laws) != num_modes - 1:
                raise ConfigurationError(
                    f"transition_laws has {len(laws)} entries, expected {num_modes - 1}",
                    "Hybrid mode configuration",
                )

            self._dims = _system_dimensions(manifolds)
            self._modes = _mode_configurations(
                manifolds, num_samples, min_timesteps, max_timesteps, options
            )
            self._layout = SampleLayout.from_mode_lengths(
                tuple(mode.num_samples for mode in self._modes)
            )
            self._transition_laws = laws
            self._dynamics_constraints = [
                DirconDynamicConstraint(mode.manifold) for mode in self._modes
            ]

            logger.debug(
                "Hybrid DIRCON structure: modes=%d, samples=%d, nx=%d, nu=%d",
                num_modes,
                self._layout.num_samples,
                self._dims.num_states,
                self._dims.num_inputs,
            )

            self._builder = ProgramBuilder(name)
            self._shared = setup_shared_variables(self._builder, self._layout, self._dims)
            setup_post_impact_velocity_variables(
                self._builder, self._shared, self._layout, self._dims
            )
            for mode in self._modes:
                law = laws[mode.index - 1] if mode.index > 0 else None
                impulse_size = law.impulse_dimension if law is not None else None
                self._shared.mode_variables.append(
                    setup_mode_variables(self._builder, mode, impulse_size)
                )

            for mode in self._modes:
                self._transcribe_mode(mode)

            apply_transition_laws(
                self._builder,
                self._shared,
                self._layout,
                self._dims,
                self._shared.mode_variables,
                laws,
            )

        except Exception as e:
            logger.error("Failed to set up hybrid DIRCON program: %s", str(e))
            if isinstance(e, ConfigurationError | DataIntegrityError):
                raise
            raise DataIntegrityError(
                f"Failed to set up hybrid DIRCON program: {e}",
                "DirconLab hybrid program construction error",
            ) from e

        logger.info(
            "Built hybrid DIRCON program: %d modes, %d samples, %d variables",
            self.num_modes,
            self.num_samples,
            self._builder.num_variables,
        )

    def _transcribe_mode(self, mode: ModeConfiguration) -> None:
        mode_vars = self._shared.mode_variables[mode.index]
        try:
            apply_mode_timestep_constraints(self._builder, self._shared, mode, self._layout)
            apply_mode_dynamics_constraints(
                self._builder,
                self._shared,
                mode_vars,
                mode,
                self._layout,
                self._dims,
                self._dynamics_constraints[mode.index],
            )
            apply_mode_kinematic_constraints(
                self._builder, self._shared, mode_vars, mode, self._layout, self._dims
            )
            apply_mode_force_constraints(self._builder, mode_vars, mode)
        except Exception as e:
            if isinstance(e, ConfigurationError | DataIntegrityError):
                raise
            raise DataIntegrityError(
                f"Failed to transcribe mode: {e}",
                "DirconLab mode transcription error",
                mode=mode.index,
            ) from e

        logger.debug(
            "Mode %d transcribed: %d dynamics, %d kinematic bindings",
            mode.index,
            len(self._builder.bindings("dynamics", mode.index)),
            sum(
                len(self._builder.bindings(family, mode.index))
                for family in ("kinematic_interior", "kinematic_start", "kinematic_end")
            ),
        )

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def builder(self) -> ProgramBuilder:
        return self._builder

    @property
    def dims(self) -> SystemDimensions:
        return self._dims

    @property
    def layout(self) -> SampleLayout:
        return self._layout

    @property
    def modes(self) -> list[ModeConfiguration]:
        return list(self._modes)

    @property
    def num_modes(self) -> int:
        return self._layout.num_modes

    @property
    def mode_lengths(self) -> tuple[int, ...]:
        return self._layout.mode_lengths

    @property
    def num_samples(self) -> int:
        return self._layout.num_samples

    @property
    def shared_variables(self) -> SharedVariableReferences:
        return self._shared

    def mode_start(self, mode: ModeID) -> int:
        self._layout.check_mode(mode)
        return self._layout.mode_starts[mode]

    def mode_variables(self, mode: ModeID) -> ModeVariableReferences:
        self._layout.check_mode(mode)
        return self._shared.mode_variables[mode]

    def num_kinematic_constraints(self, mode: ModeID) -> int:
        self._layout.check_mode(mode)
        return self._modes[mode].num_kinematic_constraints

    # ------------------------------------------------------------------
    # Variable slices
    # ------------------------------------------------------------------

    def state_vars_by_mode(self, mode: ModeID, sample: int) -> CompositeSlice:
        """State slice of ``sample`` within ``mode``, post-transition at mode starts."""
        return state_slice(self._shared, self._layout, self._dims, mode, sample)

    def v_post_impact_vars_by_mode(self, mode: ModeID) -> VariableSlice:
        self._layout.check_mode(mode)
        return post_impact_velocity_slice(self._shared, self._dims, mode)

    def force_vars(self, mode: ModeID) -> VariableGroup:
        return self.mode_variables(mode).force

    def collocation_force_vars(self, mode: ModeID) -> VariableGroup:
        return self.mode_variables(mode).collocation_force

    def collocation_slack_vars(self, mode: ModeID) -> VariableGroup:
        return self.mode_variables(mode).collocation_slack

    def offset_vars(self, mode: ModeID) -> VariableGroup:
        return self.mode_variables(mode).offset

    def impulse_vars(self, mode: ModeID) -> VariableGroup | None:
        return self.mode_variables(mode).impulse

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def expression(self, target: SliceLike | VariableGroup) -> ca.MX:
        return self._builder.resolve(target)

    def timestep(self, step: int) -> ca.MX:
        self._check_timestep(step)
        return self.expression(timestep_slice(self._shared, step))

    def state(self, sample: int) -> ca.MX:
        """Shared state slot of global sample ``k`` (pre-transition at transition knots)."""
        self._check_sample(sample)
        return self.expression(shared_state_slice(self._shared, self._dims, sample))

    def input(self, sample: int) -> ca.MX:
        self._check_sample(sample)
        return self.expression(input_slice(self._shared, self._dims, sample))

    def initial_state(self) -> ca.MX:
        return self.state(0)

    def final_state(self) -> ca.MX:
        return self.state(self.num_samples - 1)

    def force(self, mode: ModeID, sample: int) -> ca.MX:
        self._layout.check(mode, sample)
        k = self._modes[mode].num_kinematic_constraints
        return self.expression(force_slice(self.mode_variables(mode), k, sample))

    def duration(self) -> ca.MX:
        return ca.sum1(self._shared.timestep.symbol)

    # ------------------------------------------------------------------
    # Additional constraints and costs
    # ------------------------------------------------------------------

    def add_bounding_box_constraint(
        self,
        lower: float | FloatArray,
        upper: float | FloatArray,
        target: SliceLike | VariableGroup,
    ) -> None:
        if isinstance(target, VariableGroup):
            target = target.all()
        self._builder.bounding_box(lower, upper, target, "user_bounds")

    def add_constraint_to_all_knot_points(self, relation: KnotPointRelation) -> None:
        """Impose ``relation(x_k, u_k)`` at every global sample."""
        for k in range(self.num_samples):
            self._builder.subject_to(
                relation(self.state(k), self.input(k)),
                [
                    shared_state_slice(self._shared, self._dims, k),
                    input_slice(self._shared, self._dims, k),
                ],
                "knot_point",
            )

    def add_equal_time_intervals_constraints(self) -> None:
        """Make every timestep equal, across transitions as well."""
        h = self._shared.timestep.symbol
        for mode in range(1, self.num_modes):
            # Steps inside a mode are already tied together
            k = self._layout.mode_starts[mode] - 1
            self._builder.linear_equality(
                h[k] - h[k + 1],
                [self._shared.timestep.slice(k, 2)],
                "equal_time_intervals",
                mode,
            )

    def add_duration_bounds(self, lower: float, upper: float) -> None:
        """Bound the total duration ``sum(h)``."""
        num_steps = self._layout.num_timesteps
        constraint = LinearConstraint(np.ones((1, num_steps)), [lower], [upper], "duration")
        self._builder.bind_constraint(constraint, [self._shared.timestep.all()], "duration")

    def add_running_cost(self, g: RunningCostIntegrand) -> None:
        """Add the trapezoidal integral of ``g(x, u)`` over the whole trajectory."""
        apply_running_cost(
            self._builder,
            self._shared,
            self._layout,
            self._dims,
            g,
            self.running_cost_state_slice,
        )

    def running_cost_state_slice(self, sample: int) -> SliceLike:
        """State read by the running cost at global sample ``k``."""
        return shared_state_slice(self._shared, self._dims, sample)

    # ------------------------------------------------------------------
    # Warm start
    # ------------------------------------------------------------------

    def set_initial_force_trajectory(
        self,
        mode: ModeID,
        traj_init_l: PiecewiseTrajectory | None = None,
        traj_init_lc: PiecewiseTrajectory | None = None,
        traj_init_vc: PiecewiseTrajectory | None = None,
    ) -> None:
        """Initial guesses for a mode's forces; missing trajectories zero-fill."""
        self._layout.check_mode(mode)
        apply_force_initial_guess(
            self._builder,
            self._shared,
            self.mode_variables(mode),
            self._modes[mode],
            self._layout,
            traj_init_l,
            traj_init_lc,
            traj_init_vc,
        )

    def set_initial_trajectory(
        self,
        traj_init_u: PiecewiseTrajectory | None = None,
        traj_init_x: PiecewiseTrajectory | None = None,
    ) -> None:
        """Initial guesses for timesteps, states, inputs and post-transition velocities."""
        apply_state_input_initial_guess(
            self._builder,
            self._shared,
            self._layout,
            self._dims,
            self._modes,
            traj_init_u,
            traj_init_x,
        )

    # ------------------------------------------------------------------
    # Solving and reconstruction
    # ------------------------------------------------------------------

    def solve(self, nlp_options: dict[str, object] | None = None) -> ProgramResult:
        """
        Solve with IPOPT; ``nlp_options`` override the package defaults.

        Solver failure is reported through ``ProgramResult.success``.
        """
        logger.info(
            "Solving hybrid DIRCON program: %d modes, %d samples", self.num_modes, self.num_samples
        )
        return self._builder.solve(nlp_options)

    def sample_times(self, result: ProgramResult) -> FloatArray:
        return sample_times(result, self._shared)

    def reconstruct_input_trajectory(self, result: ProgramResult) -> PiecewiseTrajectory:
        return reconstruct_input(result, self._shared, self._layout, self._dims)

    def reconstruct_state_trajectory(self, result: ProgramResult) -> PiecewiseTrajectory:
        return reconstruct_state(
            result,
            self._shared,
            self._shared.mode_variables,
            self._modes,
            self._layout,
            self._dims,
            self.reconstruction_state,
        )

    def reconstruction_state(self, result: ProgramResult, sample: int) -> FloatArray:
        """State used for reconstruction at global sample ``k``."""
        return result.value(shared_state_slice(self._shared, self._dims, sample))

    def reconstruct_force_trajectory(
        self, result: ProgramResult, mode: ModeID
    ) -> PiecewiseTrajectory:
        self._layout.check_mode(mode)
        return reconstruct_force(
            result, self._shared, self.mode_variables(mode), self._modes[mode], self._layout
        )

    def mode_durations(self, result: ProgramResult) -> list[float]:
        h = result.value(self._shared.timestep)
        return [
            float(np.sum(h[list(self._layout.timestep_indices(i))]))
            for i in range(self.num_modes)
        ]

    def print_solution(self, result: ProgramResult) -> None:
        from ..summary import print_solution_summary

        print_solution_summary(self, result)

    # ------------------------------------------------------------------

    def _check_sample(self, sample: int) -> None:
        if not 0 <= sample < self.num_samples:
            raise DataIntegrityError(
                f"Sample {sample} outside [0, {self.num_samples})", "Hybrid sample indexing"
            )

    def _check_timestep(self, step: int) -> None:
        if not 0 <= step < self._layout.num_timesteps:
            raise DataIntegrityError(
                f"Timestep {step} outside [0, {self._layout.num_timesteps})",
                "Hybrid sample indexing",
            )
