# test_dircon_constraints.py
"""
Mathematical correctness of the collocation defect and kinematic residuals.

The defect is exact for motions that are quadratic in time, so a point mass
under constant force must produce a zero residual.
"""

import casadi as ca
import numpy as np
import pytest
from numpy.testing import assert_allclose

from dirconlab import (
    BoundaryPolicy,
    KinematicDataSet,
    ManipulatorDynamics,
    ModeOptions,
    PointPositionData,
)
from dirconlab.constraints import DirconDynamicConstraint, DirconKinematicConstraint
from dirconlab.exceptions import ConfigurationError

from .point_mass import GRAVITY, MASS


def _defect(constraint, h, x0, x1, u0, u1, l0, l1, lc, vc):
    value = constraint.evaluate(
        ca.DM([h]),
        ca.DM(x0),
        ca.DM(x1),
        ca.DM(np.concatenate([u0, u1])),
        ca.DM(np.concatenate([l0, l1])),
        ca.DM(lc),
        ca.DM(vc),
    )
    return np.asarray(value.full()).flatten()


class TestDirconDynamicConstraint:
    def test_arity_matches_layout(self, stance_manifold):
        constraint = DirconDynamicConstraint(stance_manifold)
        assert constraint.input_sizes == (1, 4, 4, 2, 2, 1, 1)
        assert constraint.num_outputs == 4
        assert constraint.is_equality

    def test_control_width_does_not_shadow_argument_count(self, stance_manifold):
        constraint = DirconDynamicConstraint(stance_manifold)
        assert constraint.num_control_inputs == 1
        assert constraint.num_inputs == 7

    def test_resting_point_has_zero_defect(self, stance_manifold):
        constraint = DirconDynamicConstraint(stance_manifold)
        weight = np.array([MASS * GRAVITY])
        rest = np.zeros(4)

        defect = _defect(
            constraint, 0.1, rest, rest, [0.0], [0.0], weight, weight, weight, [0.0]
        )
        assert_allclose(defect, np.zeros(4), atol=1e-12)

    @pytest.mark.parametrize("h", [0.05, 0.1, 0.3])
    def test_sliding_under_constant_force_is_exact(self, stance_manifold, h):
        constraint = DirconDynamicConstraint(stance_manifold)
        force = 3.0
        weight = np.array([MASS * GRAVITY])
        acceleration = force / MASS
        x0 = np.array([0.0, 0.0, 0.0, 0.0])
        x1 = np.array([0.5 * acceleration * h**2, 0.0, acceleration * h, 0.0])

        defect = _defect(
            constraint, h, x0, x1, [force], [force], weight, weight, weight, [0.0]
        )
        assert_allclose(defect, np.zeros(4), atol=1e-10)

    def test_free_fall_is_exact(self, flight_manifold):
        constraint = DirconDynamicConstraint(flight_manifold)
        h = 0.2
        x0 = np.array([0.0, 1.0, 0.5, 0.0])
        x1 = np.array([0.5 * h, 1.0 - 0.5 * GRAVITY * h**2, 0.5, -GRAVITY * h])

        defect = _defect(constraint, h, x0, x1, [0.0], [0.0], [], [], [], [])
        assert_allclose(defect, np.zeros(4), atol=1e-10)

    def test_wrong_midpoint_force_shows_in_velocity_rows(self, stance_manifold):
        constraint = DirconDynamicConstraint(stance_manifold)
        weight = np.array([MASS * GRAVITY])
        rest = np.zeros(4)

        defect = _defect(
            constraint, 0.1, rest, rest, [0.0], [0.0], weight, weight, weight + 1.0, [0.0]
        )
        assert_allclose(defect[:2], [0.0, 0.0], atol=1e-12)
        assert defect[3] == pytest.approx(-1.0 / MASS)

    def test_slack_relaxes_configuration_rows_through_jacobian(self, stance_manifold):
        constraint = DirconDynamicConstraint(stance_manifold)
        weight = np.array([MASS * GRAVITY])
        rest = np.zeros(4)

        defect = _defect(
            constraint, 0.1, rest, rest, [0.0], [0.0], weight, weight, weight, [0.3]
        )
        # J = [0, 1]: only the height row is relaxed
        assert_allclose(defect, [0.0, -0.3, 0.0, 0.0], atol=1e-12)

    def test_mismatched_positions_and_velocities_rejected(self, stance_manifold):
        class _QuaternionLike:
            num_positions = 3
            num_velocities = 2
            num_inputs = 1
            num_states = 5

            def constraint_dimension(self):
                return 0

        with pytest.raises(ConfigurationError):
            DirconDynamicConstraint(_QuaternionLike())


class TestDirconKinematicConstraint:
    @pytest.mark.parametrize(
        "policy, rows",
        [(BoundaryPolicy.PINNED, 3), (BoundaryPolicy.VELOCITY, 2), (BoundaryPolicy.FREE, 1)],
    )
    def test_rows_per_policy(self, stance_manifold, policy, rows):
        options = ModeOptions.for_constraints(1)
        constraint = DirconKinematicConstraint(stance_manifold, options, policy)

        assert constraint.num_outputs == rows
        assert constraint.input_sizes == (4, 1, 1, 0)

    def test_pinned_residual_levels(self, stance_manifold):
        options = ModeOptions.for_constraints(1)
        constraint = DirconKinematicConstraint(stance_manifold, options, BoundaryPolicy.PINNED)
        state = ca.DM([0.0, 0.2, 0.0, -1.0])

        residual = np.asarray(
            constraint.evaluate(state, ca.DM([0.0]), ca.DM([0.0]), ca.DM.zeros(0, 1)).full()
        ).flatten()
        assert_allclose(residual, [0.2, -1.0, -GRAVITY])

    def test_velocity_policy_ignores_height(self, stance_manifold):
        options = ModeOptions.for_constraints(1)
        constraint = DirconKinematicConstraint(stance_manifold, options, BoundaryPolicy.VELOCITY)
        state = ca.DM([0.0, 0.7, 0.0, 0.0])

        residual = np.asarray(
            constraint.evaluate(
                state, ca.DM([0.0]), ca.DM([MASS * GRAVITY]), ca.DM.zeros(0, 1)
            ).full()
        ).flatten()
        assert_allclose(residual, [0.0, 0.0], atol=1e-12)

    def test_relative_row_floats_with_offset(self, stance_manifold):
        options = ModeOptions(constraints_relative=(True,))
        constraint = DirconKinematicConstraint(stance_manifold, options, BoundaryPolicy.PINNED)
        state = ca.DM([0.0, 0.5, 0.0, 0.0])

        residual = np.asarray(
            constraint.evaluate(
                state, ca.DM([0.0]), ca.DM([MASS * GRAVITY]), ca.DM([0.5])
            ).full()
        ).flatten()
        assert constraint.input_sizes == (4, 1, 1, 1)
        assert_allclose(residual, np.zeros(3), atol=1e-12)

    def test_options_must_flag_every_row(self, stance_manifold):
        with pytest.raises(ConfigurationError):
            DirconKinematicConstraint(stance_manifold, ModeOptions.for_constraints(2))

    def test_relative_map_selects_flagged_rows(self):
        options = ModeOptions(constraints_relative=(False, True, True))
        assert_allclose(options.relative_map(), [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        assert options.num_relative == 2

    def test_unconstrained_manifold_has_no_rows(self, flight_manifold):
        constraint = DirconKinematicConstraint(
            flight_manifold, ModeOptions.for_constraints(0), BoundaryPolicy.PINNED
        )
        assert constraint.num_outputs == 0


def test_multi_row_manifold_dimensions():
    dynamics = ManipulatorDynamics(
        2,
        1,
        mass_matrix=lambda q: ca.MX.eye(2),
        bias=lambda q, v: ca.MX.zeros(2, 1),
        actuation_matrix=np.array([[1.0], [0.0]]),
    )
    manifold = KinematicDataSet(dynamics, [PointPositionData(dynamics, lambda q: q)])
    constraint = DirconDynamicConstraint(manifold)
    assert constraint.input_sizes == (1, 4, 4, 2, 4, 2, 2)
