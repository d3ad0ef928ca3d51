# test_hybrid_structure.py
"""
Structural tests of the hybrid transcription: variable allocation, binding
counts, transition-knot indexing and construction-time validation. No solver
is called here.
"""

import logging

import casadi as ca
import numpy as np
import pytest
from numpy.testing import assert_allclose

from dirconlab import (
    BoundaryPolicy,
    HybridDircon,
    KinematicDataSet,
    ManipulatorDynamics,
    ModeOptions,
    PiecewiseTrajectory,
    VelocityContinuityLaw,
)
from dirconlab.exceptions import ConfigurationError, DataIntegrityError
from dirconlab.program.bindings import BindingKind
from dirconlab.utils.constants import DEFAULT_MAX_TIMESTEP, DEFAULT_MIN_TIMESTEP

from .point_mass import make_ground_contact


def _build(manifold, lengths, **kwargs):
    modes = len(lengths)
    return HybridDircon(
        [manifold] * modes,
        lengths,
        [0.01] * modes,
        [0.2] * modes,
        **kwargs,
    )


class TestVariableAllocation:
    @pytest.mark.parametrize("lengths", [[3], [5], [3, 4], [2, 2, 2], [4, 6, 3]])
    def test_binding_counts(self, stance_manifold, lengths):
        dircon = _build(stance_manifold, lengths)
        builder = dircon.builder

        assert len(builder.bindings("dynamics")) == sum(n - 1 for n in lengths)
        assert len(builder.bindings("kinematic_interior")) == sum(n - 2 for n in lengths)
        assert len(builder.bindings("kinematic_start")) == len(lengths)
        assert len(builder.bindings("kinematic_end")) == len(lengths)
        for mode, n in enumerate(lengths):
            assert len(builder.bindings("dynamics", mode)) == n - 1

    @pytest.mark.parametrize("lengths", [[3], [3, 4], [4, 6, 3]])
    def test_group_sizes(self, stance_manifold, lengths):
        dircon = _build(stance_manifold, lengths)
        num_samples = sum(lengths) - len(lengths) + 1

        assert dircon.num_samples == num_samples
        assert dircon.builder.group("h").size == num_samples - 1
        assert dircon.builder.group("x").size == 4 * num_samples
        assert dircon.builder.group("u").size == num_samples
        assert dircon.builder.group("v_post").size == 2 * len(lengths)
        for mode, n in enumerate(lengths):
            assert dircon.force_vars(mode).size == n
            assert dircon.collocation_force_vars(mode).size == n - 1
            assert dircon.collocation_slack_vars(mode).size == n - 1
            assert dircon.offset_vars(mode).size == 0

    def test_group_names_in_insertion_order(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        names = [group.name for group in dircon.builder.groups]

        assert names == [
            "h",
            "x",
            "u",
            "v_post",
            "lambda[0]",
            "lambda_c[0]",
            "gamma_c[0]",
            "offset[0]",
            "lambda[1]",
            "lambda_c[1]",
            "gamma_c[1]",
            "offset[1]",
        ]

    def test_relative_rows_size_offset_group(self, stance_manifold):
        options = [ModeOptions(constraints_relative=(True,))]
        dircon = _build(stance_manifold, [4], options=options)
        assert dircon.offset_vars(0).size == 1

    def test_mode_starts_overlap_by_one_sample(self, stance_manifold):
        dircon = _build(stance_manifold, [4, 6, 3])
        assert [dircon.mode_start(i) for i in range(3)] == [0, 3, 8]
        assert dircon.num_samples == 11


class TestSingleModeScenario:
    """One mode, three samples, one constraint row, timestep fixed at 0.1."""

    @pytest.fixture
    def dircon(self, stance_manifold):
        return HybridDircon([stance_manifold], [3], [0.1], [0.1])

    def test_binding_counts(self, dircon):
        builder = dircon.builder
        assert len(builder.bindings("dynamics")) == 2
        assert len(builder.bindings("kinematic_interior")) == 1
        assert len(builder.bindings("kinematic_start")) == 1
        assert len(builder.bindings("kinematic_end")) == 1

    def test_force_block_size(self, dircon):
        assert dircon.num_kinematic_constraints(0) == 1
        assert dircon.force_vars(0).size == 3

    def test_empty_force_trajectory_zero_fills(self, dircon):
        dircon.builder.set_initial_guess(dircon.force_vars(0), [1.0, 2.0, 3.0])
        dircon.set_initial_force_trajectory(0, PiecewiseTrajectory.empty())

        guess = dircon.builder.initial_guess(dircon.force_vars(0))
        assert guess.shape == (3,)
        assert_allclose(guess, np.zeros(3))

    def test_timestep_guess_clipped_into_bounds(self, stance_manifold):
        dircon = HybridDircon([stance_manifold], [3], [0.25], [0.5])
        assert_allclose(dircon.builder.initial_guess(dircon.builder.group("h")), [0.25, 0.25])


class TestTransitionIndexing:
    """Two modes of three and four samples."""

    @pytest.fixture
    def dircon(self, stance_manifold):
        return _build(stance_manifold, [3, 4])

    def test_configuration_is_shared_at_transition(self, dircon):
        entering = dircon.state_vars_by_mode(1, 0)
        leaving = dircon.state_vars_by_mode(0, 2)

        assert entering.head(2) == leaving.head(2)
        assert dircon.mode_start(1) == 2

    def test_velocity_is_post_transition_block(self, dircon):
        entering = dircon.state_vars_by_mode(1, 0)
        leaving = dircon.state_vars_by_mode(0, 2)
        velocity = entering.tail(2)

        assert velocity.segments == (dircon.v_post_impact_vars_by_mode(1),)
        assert velocity.segments[0].group == "v_post"
        assert not velocity.overlaps(leaving)
        assert not velocity.overlaps(dircon.v_post_impact_vars_by_mode(0))

    def test_post_transition_block_aliases_no_state(self, dircon):
        velocity = dircon.state_vars_by_mode(1, 0).tail(2)
        for mode, n in enumerate(dircon.mode_lengths):
            for j in range(n):
                if (mode, j) == (1, 0):
                    continue
                assert not velocity.overlaps(dircon.state_vars_by_mode(mode, j))

    def test_other_samples_read_shared_slot(self, dircon):
        x = dircon.builder.group("x")
        for mode, n in enumerate(dircon.mode_lengths):
            for j in range(n):
                if mode > 0 and j == 0:
                    continue
                k = dircon.mode_start(mode) + j
                assert dircon.state_vars_by_mode(mode, j).segments == (x.slice(4 * k, 4),)

    def test_dynamics_binding_reads_post_transition_state(self, dircon):
        first = dircon.builder.bindings("dynamics", 1)[0]

        assert first.slices[0] == dircon.builder.group("h").slice(2, 1)
        assert first.slices[1] == dircon.state_vars_by_mode(1, 0)
        assert first.slices[2] == dircon.state_vars_by_mode(1, 1)

    def test_out_of_range_pairs_rejected(self, dircon):
        with pytest.raises(DataIntegrityError):
            dircon.state_vars_by_mode(2, 0)
        with pytest.raises(DataIntegrityError):
            dircon.state_vars_by_mode(0, 3)
        with pytest.raises(DataIntegrityError):
            dircon.state_vars_by_mode(1, -1)

    def test_out_of_range_sample_names_its_mode(self, dircon):
        with pytest.raises(DataIntegrityError) as excinfo:
            dircon.state_vars_by_mode(1, 5)
        assert excinfo.value.mode == 1
        assert "[mode 1; Hybrid sample indexing]" in str(excinfo.value)


class TestTimestepConstraints:
    def test_equal_timesteps_only_inside_modes(self, stance_manifold):
        lengths = [4, 3, 5]
        dircon = _build(stance_manifold, lengths)
        equalities = dircon.builder.bindings("equal_timestep")

        assert len(equalities) == sum(n - 2 for n in lengths)
        for binding in equalities:
            (pair,) = binding.slices
            steps = dircon.layout.timestep_indices(binding.mode)
            assert pair.start in steps and pair.start + 1 in steps

    def test_timestep_bounds_per_mode(self, stance_manifold):
        dircon = HybridDircon([stance_manifold] * 2, [3, 4], [0.01, 0.05], [0.1, 0.2])
        bounds = dircon.builder.bindings("timestep_bounds")

        assert len(bounds) == 2
        assert_allclose(bounds[0].evaluator.lower_bound, [0.01, 0.01])
        assert_allclose(bounds[1].evaluator.upper_bound, [0.2, 0.2, 0.2])
        assert bounds[1].slices[0] == dircon.builder.group("h").slice(2, 3)

    def test_equal_time_intervals_across_transitions(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4, 3])
        dircon.add_equal_time_intervals_constraints()
        extra = dircon.builder.bindings("equal_time_intervals")

        assert [binding.slices[0].start for binding in extra] == [1, 4]


class TestKinematicPolicies:
    def test_boundary_policies_set_row_counts(self, stance_manifold):
        options = [
            ModeOptions.for_constraints(
                1, start_type=BoundaryPolicy.FREE, end_type=BoundaryPolicy.VELOCITY
            )
        ]
        dircon = _build(stance_manifold, [4], options=options)
        builder = dircon.builder

        assert builder.bindings("kinematic_start")[0].evaluator.num_outputs == 1
        assert builder.bindings("kinematic_end")[0].evaluator.num_outputs == 2
        for binding in builder.bindings("kinematic_interior"):
            assert binding.evaluator.num_outputs == 3

    def test_boundary_bindings_use_mode_boundary_samples(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        start = dircon.builder.bindings("kinematic_start", 1)[0]
        end = dircon.builder.bindings("kinematic_end", 0)[0]

        assert start.slices[0] == dircon.state_vars_by_mode(1, 0)
        assert end.slices[0] == dircon.state_vars_by_mode(0, 2)
        assert end.slices[2] == dircon.force_vars(0).slice(2, 1)


class TestForceWiring:
    def test_legality_bound_at_all_but_last_sample(self, stance_manifold):
        dircon = _build(stance_manifold, [5])
        legality = dircon.builder.bindings("force_legality", 0)

        assert len(legality) == 4
        assert [binding.slices[0] for binding in legality] == [
            dircon.force_vars(0).slice(j, 1) for j in range(4)
        ]

    def test_legality_uses_sub_object_offsets(self, point_mass):
        first = make_ground_contact(point_mass, mu=1.0)
        second = make_ground_contact(point_mass, mu=1.0)
        manifold = KinematicDataSet(point_mass, [first, second])
        dircon = HybridDircon([manifold], [3], [0.01], [0.2])
        slices = [binding.slices[0] for binding in dircon.builder.bindings("force_legality")]

        force = dircon.force_vars(0)
        assert slices == [force.slice(row, 1) for row in range(4)]

    def test_force_cost_at_every_sample(self, stance_manifold):
        dircon = _build(stance_manifold, [5])
        assert len(dircon.builder.bindings("force_cost", 0)) == 5

    def test_force_cost_toggle(self, stance_manifold):
        options = [ModeOptions.for_constraints(1, force_cost=0.0)]
        dircon = _build(stance_manifold, [5], options=options)
        assert dircon.builder.bindings("force_cost") == []

    def test_flight_mode_has_no_force_terms(self, flight_manifold):
        dircon = _build(flight_manifold, [4])
        assert dircon.force_vars(0).size == 0
        assert dircon.builder.bindings("force_legality") == []
        assert dircon.builder.bindings("force_cost") == []


class TestTransitionLaws:
    def test_velocity_continuity_binds_pre_and_post_velocity(
        self, stance_manifold, flight_manifold
    ):
        dircon = HybridDircon(
            [stance_manifold, flight_manifold],
            [3, 3],
            [0.01, 0.01],
            [0.2, 0.2],
            transition_laws=[VelocityContinuityLaw()],
        )
        (binding,) = dircon.builder.bindings("transition")

        assert binding.mode == 1
        assert binding.slices[0] == dircon.state_vars_by_mode(0, 2)
        assert binding.slices[1] == dircon.v_post_impact_vars_by_mode(1)
        assert dircon.impulse_vars(1).size == 0

        values = {group.name: np.zeros(group.size) for group in dircon.builder.groups}
        values["x"][8:12] = [0.0, 0.0, 1.5, -2.0]
        values["v_post"][2:4] = [1.5, -1.0]
        assert_allclose(dircon.builder.evaluate_binding(binding, values), [0.0, 1.0])

    def test_missing_law_warns_free_velocity(self, stance_manifold, caplog):
        with caplog.at_level(logging.WARNING, logger="dirconlab"):
            dircon = _build(stance_manifold, [3, 3])

        assert dircon.builder.bindings("transition") == []
        assert "post-transition velocity is free" in caplog.text


class TestConstructionValidation:
    def test_mismatched_mode_arrays(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            HybridDircon([stance_manifold] * 2, [3, 3], [0.01], [0.2, 0.2])

    def test_no_modes(self):
        with pytest.raises(ConfigurationError):
            HybridDircon([], [], [], [])

    def test_single_sample_mode(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            HybridDircon([stance_manifold], [1], [0.01], [0.2])

    def test_inverted_timestep_bounds(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            HybridDircon([stance_manifold], [3], [0.3], [0.2])

    def test_inverted_timestep_bounds_name_their_mode(self, stance_manifold):
        with pytest.raises(ConfigurationError) as excinfo:
            HybridDircon([stance_manifold] * 2, [3, 3], [0.01, 0.3], [0.2, 0.2])
        assert excinfo.value.mode == 1
        assert str(excinfo.value).endswith("[mode 1]")

    def test_options_length(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            HybridDircon(
                [stance_manifold],
                [3],
                [0.01],
                [0.2],
                options=[ModeOptions.for_constraints(1)] * 2,
            )

    def test_options_row_flags(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            HybridDircon(
                [stance_manifold], [3], [0.01], [0.2], options=[ModeOptions.for_constraints(2)]
            )

    def test_transition_law_count(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            HybridDircon(
                [stance_manifold] * 2,
                [3, 3],
                [0.01] * 2,
                [0.2] * 2,
                transition_laws=[VelocityContinuityLaw(), None],
            )

    def test_modes_must_share_dimensions(self, stance_manifold):
        other = ManipulatorDynamics(
            3,
            1,
            mass_matrix=lambda q: ca.MX.eye(3),
            bias=lambda q, v: ca.MX.zeros(3, 1),
            actuation_matrix=np.array([[1.0], [0.0], [0.0]]),
        )
        with pytest.raises(ConfigurationError):
            HybridDircon(
                [stance_manifold, KinematicDataSet(other)], [3, 3], [0.01] * 2, [0.2] * 2
            )


class TestUserConstraints:
    def test_default_timestep_bounds(self, stance_manifold):
        dircon = HybridDircon([stance_manifold], [3])
        mode = dircon.modes[0]
        assert mode.min_timestep == DEFAULT_MIN_TIMESTEP
        assert mode.max_timestep == DEFAULT_MAX_TIMESTEP
        assert_allclose(dircon.builder.initial_guess(dircon.builder.group("h")), [0.1, 0.1])

    def test_relation_at_every_knot_point(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        dircon.add_constraint_to_all_knot_points(lambda x, u: u <= 5.0)

        bindings = dircon.builder.bindings("knot_point")
        assert len(bindings) == dircon.num_samples
        assert all(binding.kind is BindingKind.RELATION for binding in bindings)
        assert bindings[2].slices[0] == dircon.state_vars_by_mode(0, 2)
        assert bindings[2].slices[1] == dircon.builder.group("u").slice(2, 1)

    def test_boundary_state_expressions(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        assert dircon.initial_state().shape == (4, 1)
        assert dircon.final_state().shape == (4, 1)
        assert ca.depends_on(dircon.final_state(), dircon.builder.group("x").symbol)
        assert dircon.input(5).shape == (1, 1)
        assert dircon.timestep(4).shape == (1, 1)

    def test_bounding_box_on_whole_group(self, stance_manifold):
        dircon = _build(stance_manifold, [3])
        dircon.add_bounding_box_constraint(-2.0, 2.0, dircon.builder.group("u"))

        (binding,) = dircon.builder.bindings("user_bounds")
        assert binding.slices == (dircon.builder.group("u").all(),)
        assert_allclose(binding.evaluator.lower_bound, np.full(3, -2.0))

    def test_duration_bounds_sum_timesteps(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        dircon.add_duration_bounds(0.5, 1.5)

        (binding,) = dircon.builder.bindings("duration")
        values = {group.name: np.zeros(group.size) for group in dircon.builder.groups}
        values["h"][:] = [0.1, 0.2, 0.3, 0.4, 0.5]
        assert_allclose(dircon.builder.evaluate_binding(binding, values), [1.5])

    def test_builder_iterates_all_bindings(self, stance_manifold):
        dircon = _build(stance_manifold, [3])
        assert list(dircon.builder) == dircon.builder.bindings()

    def test_duration_expression_sums_timesteps(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        h = dircon.builder.group("h").symbol
        duration = ca.Function("duration", [h], [dircon.duration()])

        assert float(duration([0.1, 0.2, 0.3, 0.4, 0.5])) == pytest.approx(1.5)

    def test_expression_of_post_transition_state(self, stance_manifold):
        dircon = _build(stance_manifold, [3, 4])
        post = dircon.expression(dircon.state_vars_by_mode(1, 0))
        v_post = dircon.builder.group("v_post").symbol

        assert post.shape == (4, 1)
        assert ca.depends_on(post, v_post)
        assert not ca.depends_on(dircon.state(2), v_post)
