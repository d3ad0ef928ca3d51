import logging
import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from .dl_types import FloatArray
from .exceptions import ConfigurationError, DataIntegrityError


logger = logging.getLogger(__name__)


# ============================================================================
# CORE VALIDATION PRIMITIVES - Used everywhere, defined once
# ============================================================================


def validate_integer(value: Any, name: str, min_value: int = 0) -> None:
    """Single source for bounded integer validation."""
    if isinstance(value, bool) or not isinstance(value, int | np.integer):
        raise ConfigurationError(f"{name} must be integer, got {type(value)}")
    if value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}, got {value}")


def validate_finite_number(value: Any, name: str) -> None:
    """Single source for finite number validation."""
    if isinstance(value, bool) or not isinstance(value, int | float | np.floating | np.integer):
        raise ConfigurationError(f"{name} must be numeric, got {type(value)}")
    if math.isnan(value) or math.isinf(value):
        raise ConfigurationError(f"{name} cannot be NaN or infinite, got {value}")


def validate_string_not_empty(value: Any, name: str) -> None:
    """Single source for non-empty string validation."""
    if not isinstance(value, str):
        raise ConfigurationError(f"{name} must be string, got {type(value)}")
    if not value.strip():
        raise ConfigurationError(f"{name} cannot be empty")


def validate_array_numerical_integrity(
    array: FloatArray, name: str, context: str = "validation"
) -> None:
    """Single source for NaN/Inf validation."""
    if np.any(np.isnan(array)) or np.any(np.isinf(array)):
        raise DataIntegrityError(
            f"{name} contains NaN or Inf values", f"Numerical corruption in {context}"
        )


def validate_dimension_match(actual: int, expected: int, name: str, context: str) -> None:
    """Single source for declared-vs-actual dimension checks at construction time."""
    if actual != expected:
        raise ConfigurationError(f"{name} is {actual}, expected {expected}", context)


# ============================================================================
# MODE VALIDATION - Per-mode construction arrays
# ============================================================================


def validate_mode_array_lengths(num_modes: int, **mode_arrays: Sequence[Any]) -> None:
    """SINGLE SOURCE for per-mode array length validation.

    Every per-mode array must have exactly one entry per mode.
    """
    for name, values in mode_arrays.items():
        if len(values) != num_modes:
            raise ConfigurationError(
                f"{name} has {len(values)} entries but there are {num_modes} modes",
                "Hybrid mode configuration",
            )


def validate_mode_sample_count(num_samples: Any, mode: int) -> None:
    """A mode needs at least one collocation segment."""
    validate_integer(num_samples, f"mode {mode} sample count", min_value=2)


def validate_timestep_bounds(minimum: Any, maximum: Any, mode: int) -> None:
    """SINGLE SOURCE for timestep bound validation."""
    validate_finite_number(minimum, f"mode {mode} minimum timestep")
    validate_finite_number(maximum, f"mode {mode} maximum timestep")
    if minimum < 0:
        raise ConfigurationError(f"Minimum timestep must be >= 0, got {minimum}", mode=mode)
    if minimum > maximum:
        raise ConfigurationError(
            f"Minimum timestep ({minimum}) > maximum timestep ({maximum})", mode=mode
        )


def validate_bounds_pair(lower: FloatArray, upper: FloatArray, name: str) -> None:
    """Lower/upper bound arrays must match in size and be ordered."""
    if lower.shape != upper.shape:
        raise ConfigurationError(
            f"{name} lower bound shape {lower.shape} != upper bound shape {upper.shape}"
        )
    if np.any(np.isnan(lower)) or np.any(np.isnan(upper)):
        raise ConfigurationError(f"{name} bounds cannot be NaN")
    if np.any(lower > upper):
        raise ConfigurationError(f"{name} lower bound exceeds upper bound")
