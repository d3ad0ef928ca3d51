# dirconlab/trajectory.py
"""
Piecewise polynomial trajectories backed by ``scipy.interpolate.PPoly``.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.interpolate import CubicHermiteSpline, PPoly

from .dl_types import FloatArray, NumericArrayLike
from .exceptions import InterpolationError


logger = logging.getLogger(__name__)


def _validate_samples(times: FloatArray, values: FloatArray, name: str) -> None:
    if times.ndim != 1:
        raise InterpolationError(f"{name} sample times must be one-dimensional")
    if values.ndim != 2 or values.shape[1] != times.size:
        raise InterpolationError(
            f"{name} samples must have shape (dimension, {times.size}), got {values.shape}"
        )
    if times.size >= 2 and np.any(np.diff(times) <= 0):
        raise InterpolationError(
            f"{name} sample times must be strictly increasing",
            "Trajectory construction",
        )
    if np.any(~np.isfinite(values)) or np.any(~np.isfinite(times)):
        raise InterpolationError(f"{name} samples contain NaN or Inf values")


class PiecewiseTrajectory:
    """
    Vector-valued piecewise polynomial of time.

    Evaluation outside ``[start_time, end_time]`` holds the boundary value.
    An empty trajectory has no samples and dimension zero; callers use it to
    mean "no data" (for example, a warm start that should zero-fill).
    """

    def __init__(
        self, polynomial: PPoly | None, dimension: int, instant: bool = False
    ) -> None:
        self._polynomial = polynomial
        self._dimension = int(dimension)
        # Single-sample trajectory: the polynomial spans a dummy unit interval
        self._instant = instant

    @classmethod
    def empty(cls) -> PiecewiseTrajectory:
        return cls(None, 0)

    @classmethod
    def zero_order_hold(
        cls, times: NumericArrayLike, samples: NumericArrayLike
    ) -> PiecewiseTrajectory:
        """Hold ``samples[:, j]`` on ``[times[j], times[j+1])``."""
        breaks, values = cls._prepare(times, samples, "Zero-order hold")
        if breaks.size == 1:
            return cls._constant(breaks[0], values[:, 0])
        coefficients = values[:, :-1].T[np.newaxis, :, :]
        return cls(PPoly(coefficients, breaks, extrapolate=False), values.shape[0])

    @classmethod
    def first_order_hold(
        cls, times: NumericArrayLike, samples: NumericArrayLike
    ) -> PiecewiseTrajectory:
        """Linear interpolation between samples, exact at every sample time."""
        breaks, values = cls._prepare(times, samples, "First-order hold")
        if breaks.size == 1:
            return cls._constant(breaks[0], values[:, 0])
        slopes = np.diff(values, axis=1) / np.diff(breaks)
        coefficients = np.stack([slopes.T, values[:, :-1].T])
        return cls(PPoly(coefficients, breaks, extrapolate=False), values.shape[0])

    @classmethod
    def cubic_hermite(
        cls,
        times: NumericArrayLike,
        samples: NumericArrayLike,
        derivatives: NumericArrayLike,
    ) -> PiecewiseTrajectory:
        """Cubic through every sample with the given derivative at every sample."""
        breaks, values = cls._prepare(times, samples, "Cubic Hermite")
        slopes = np.atleast_2d(np.asarray(derivatives, dtype=np.float64))
        if slopes.shape != values.shape:
            raise InterpolationError(
                f"Derivatives have shape {slopes.shape}, samples have shape {values.shape}"
            )
        if breaks.size == 1:
            return cls._constant(breaks[0], values[:, 0])
        spline = CubicHermiteSpline(breaks, values.T, slopes.T, axis=0, extrapolate=False)
        return cls(PPoly(spline.c, spline.x, extrapolate=False), values.shape[0])

    @staticmethod
    def _prepare(
        times: NumericArrayLike, samples: NumericArrayLike, name: str
    ) -> tuple[FloatArray, FloatArray]:
        breaks = np.asarray(times, dtype=np.float64).reshape(-1)
        values = np.asarray(samples, dtype=np.float64)
        if values.ndim == 1:
            values = values.reshape(1, -1)
        if breaks.size == 0:
            raise InterpolationError(f"{name} requires at least one sample")
        _validate_samples(breaks, values, name)
        return breaks, values

    @classmethod
    def _constant(cls, time: float, value: FloatArray) -> PiecewiseTrajectory:
        coefficients = np.asarray(value, dtype=np.float64).reshape(1, 1, -1)
        polynomial = PPoly(coefficients, np.array([time, time + 1.0]), extrapolate=False)
        return cls(polynomial, value.size, instant=True)

    # ------------------------------------------------------------------

    @property
    def dimension(self) -> int:
        return self._dimension

    def is_empty(self) -> bool:
        return self._polynomial is None

    @property
    def start_time(self) -> float:
        self._require_data()
        return float(self._polynomial.x[0])

    @property
    def end_time(self) -> float:
        self._require_data()
        if self._instant:
            return self.start_time
        return float(self._polynomial.x[-1])

    @property
    def breaks(self) -> FloatArray:
        self._require_data()
        if self._instant:
            return self._polynomial.x[:1].copy()
        return self._polynomial.x.copy()

    def value(self, time: float) -> FloatArray:
        """Value at ``time`` (clamped into the trajectory's time span)."""
        self._require_data()
        clamped = min(max(float(time), self.start_time), self.end_time)
        result = np.asarray(self._polynomial(clamped), dtype=np.float64).reshape(-1)
        if np.any(np.isnan(result)):
            raise InterpolationError(
                f"Trajectory evaluation at t={time} produced NaN", "Trajectory evaluation"
            )
        return result

    def __call__(self, time: float) -> FloatArray:
        return self.value(time)

    def sample(self, times: NumericArrayLike) -> FloatArray:
        """Values at many times, shape ``(dimension, len(times))``."""
        grid = np.asarray(times, dtype=np.float64).reshape(-1)
        if grid.size == 0:
            return np.zeros((self._dimension, 0), dtype=np.float64)
        return np.column_stack([self.value(t) for t in grid])

    def derivative(self, order: int = 1) -> PiecewiseTrajectory:
        self._require_data()
        if self._instant:
            coefficients = np.zeros((1, 1, self._dimension))
            polynomial = PPoly(coefficients, self._polynomial.x.copy(), extrapolate=False)
            return PiecewiseTrajectory(polynomial, self._dimension, instant=True)
        return PiecewiseTrajectory(self._polynomial.derivative(order), self._dimension)

    def _require_data(self) -> None:
        if self._polynomial is None:
            raise InterpolationError("Empty trajectory has no values", "Trajectory evaluation")

    def __repr__(self) -> str:
        if self.is_empty():
            return "PiecewiseTrajectory(empty)"
        return (
            f"PiecewiseTrajectory(dimension={self._dimension}, "
            f"span=[{self.start_time:.6g}, {self.end_time:.6g}], breaks={self.breaks.size})"
        )
