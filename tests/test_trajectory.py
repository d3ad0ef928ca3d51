# test_trajectory.py
"""
Tests for piecewise polynomial trajectories.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from dirconlab import PiecewiseTrajectory
from dirconlab.exceptions import InterpolationError


class TestFirstOrderHold:
    def test_exact_at_sample_times(self):
        times = np.array([0.0, 0.1, 0.35, 0.5])
        samples = np.array([[1.0, -2.0, 4.0, 0.5], [0.0, 3.0, 3.0, -1.0]])
        trajectory = PiecewiseTrajectory.first_order_hold(times, samples)

        for j, time in enumerate(times):
            assert_allclose(trajectory.value(time), samples[:, j], atol=1e-12)
        assert_allclose(trajectory.breaks, times)

    def test_linear_between_samples(self):
        trajectory = PiecewiseTrajectory.first_order_hold([0.0, 2.0], [[0.0, 4.0]])
        assert_allclose(trajectory.value(0.5), [1.0])

    def test_clamps_outside_span(self):
        trajectory = PiecewiseTrajectory.first_order_hold([1.0, 2.0], [[3.0, 5.0]])
        assert_allclose(trajectory.value(0.0), [3.0])
        assert_allclose(trajectory.value(9.0), [5.0])

    def test_single_sample_is_constant(self):
        trajectory = PiecewiseTrajectory.first_order_hold([0.4], [[2.0], [3.0]])
        assert trajectory.start_time == trajectory.end_time == 0.4
        assert_allclose(trajectory.breaks, [0.4])
        assert "breaks=1" in repr(trajectory)
        assert_allclose(trajectory.value(10.0), [2.0, 3.0])


class TestZeroOrderHold:
    def test_holds_left_value(self):
        trajectory = PiecewiseTrajectory.zero_order_hold([0.0, 1.0, 2.0], [[1.0, 2.0, 3.0]])
        assert_allclose(trajectory.value(0.99), [1.0])
        assert_allclose(trajectory.value(1.5), [2.0])


class TestCubicHermite:
    def test_reproduces_cubic(self):
        times = np.array([0.0, 0.4, 1.0])
        trajectory = PiecewiseTrajectory.cubic_hermite(
            times, [times**3 - times], [3 * times**2 - 1]
        )
        for time in [0.1, 0.5, 0.77]:
            assert trajectory.value(time)[0] == pytest.approx(time**3 - time)

    def test_derivative_trajectory(self):
        times = np.array([0.0, 1.0])
        trajectory = PiecewiseTrajectory.cubic_hermite(times, [[0.0, 1.0]], [[0.0, 2.0]])
        velocity = trajectory.derivative()
        assert_allclose(velocity.value(1.0), [2.0], atol=1e-12)

    def test_derivative_shape_checked(self):
        with pytest.raises(InterpolationError):
            PiecewiseTrajectory.cubic_hermite([0.0, 1.0], [[0.0, 1.0]], [[0.0]])


class TestValidation:
    def test_non_increasing_times_rejected(self):
        with pytest.raises(InterpolationError):
            PiecewiseTrajectory.first_order_hold([0.0, 0.0, 1.0], [[1.0, 2.0, 3.0]])

    def test_sample_count_checked(self):
        with pytest.raises(InterpolationError):
            PiecewiseTrajectory.first_order_hold([0.0, 1.0], [[1.0, 2.0, 3.0]])

    def test_empty_trajectory(self):
        trajectory = PiecewiseTrajectory.empty()
        assert trajectory.is_empty()
        assert trajectory.dimension == 0
        with pytest.raises(InterpolationError):
            trajectory.value(0.0)

    def test_sample_grid_shape(self):
        trajectory = PiecewiseTrajectory.first_order_hold([0.0, 1.0], [[0.0, 1.0], [1.0, 0.0]])
        assert trajectory.sample(np.linspace(0.0, 1.0, 5)).shape == (2, 5)
