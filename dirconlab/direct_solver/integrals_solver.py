# dirconlab/direct_solver/integrals_solver.py
"""
Running-cost integration with the trapezoidal rule over the global samples.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import casadi as ca
import numpy as np

from ..dl_types import CasadiValue, FloatArray, RunningCostIntegrand
from ..exceptions import ConfigurationError
from ..program.bindings import ProgramCost
from ..program.builder import ProgramBuilder
from ..program.variables import SliceLike
from ..utils.casadi_utils import as_casadi_mx
from .indexing_solver import adjacent_timesteps_slice, input_slice
from .types_solver import SampleLayout, SharedVariableReferences, SystemDimensions


logger = logging.getLogger(__name__)

SampleStateHook = Callable[[int], SliceLike]
"""Maps a global sample index to the state slice the integrand reads."""


def trapezoidal_weights(timesteps: FloatArray) -> FloatArray:
    """
    Trapezoidal quadrature weights of ``len(h) + 1`` samples.

    ``w[0] = h[0]/2``, ``w[k] = (h[k-1] + h[k])/2`` inside, ``w[-1] = h[-1]/2``.
    """
    h = np.asarray(timesteps, dtype=np.float64).reshape(-1)
    weights = np.zeros(h.size + 1, dtype=np.float64)
    weights[:-1] += 0.5 * h
    weights[1:] += 0.5 * h
    return weights


class TrapezoidalRunningCost(ProgramCost):
    """
    ``0.5 * sum(h_adjacent) * g(x_k, u_k)`` at one sample.

    Arguments: the one or two timesteps touching the sample, the state and
    the input.
    """

    def __init__(
        self,
        integrand: ca.Function,
        num_adjacent_timesteps: int,
        num_states: int,
        num_inputs: int,
    ) -> None:
        super().__init__(
            [num_adjacent_timesteps, num_states, num_inputs], "trapezoidal_running_cost"
        )
        self.integrand = integrand

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        adjacent, state, control = args
        return 0.5 * ca.sum1(adjacent) * self.integrand(state, control)


def build_integrand_function(g: RunningCostIntegrand, dims: SystemDimensions) -> ca.Function:
    """Wrap a user integrand ``g(x, u)`` as a scalar CasADi function."""
    x = ca.MX.sym("x", dims.num_states)
    u = ca.MX.sym("u", dims.num_inputs)
    value = as_casadi_mx(g(x, u))
    if value.numel() != 1:
        raise ConfigurationError(
            f"Running cost integrand must be scalar, got shape {value.shape}",
            "Running cost construction",
        )
    return ca.Function("running_cost_integrand", [x, u], [value], ["x", "u"], ["g"])


def apply_running_cost(
    builder: ProgramBuilder,
    shared: SharedVariableReferences,
    layout: SampleLayout,
    dims: SystemDimensions,
    g: RunningCostIntegrand,
    state_for_sample: SampleStateHook,
) -> None:
    """Bind one trapezoidal cost term per global sample."""
    integrand = build_integrand_function(g, dims)
    interior_cost = TrapezoidalRunningCost(integrand, 2, dims.num_states, dims.num_inputs)
    boundary_cost = TrapezoidalRunningCost(integrand, 1, dims.num_states, dims.num_inputs)

    for k in range(layout.num_samples):
        adjacent = adjacent_timesteps_slice(shared, layout, k)
        cost = interior_cost if adjacent.size == 2 else boundary_cost
        builder.bind_cost(
            cost,
            [adjacent, state_for_sample(k), input_slice(shared, dims, k)],
            "running_cost",
        )

    logger.debug("Bound trapezoidal running cost at %d samples", layout.num_samples)
