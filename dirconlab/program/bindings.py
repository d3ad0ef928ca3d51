# dirconlab/program/bindings.py
"""
Bindable constraint and cost evaluators and the structural binding record.

An evaluator maps an ordered list of argument vectors to an output vector.
Evaluators are written with CasADi operations only, so the same object is
evaluated symbolically on decision variables during transcription and
numerically on DM values when checking a candidate assignment.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field

import casadi as ca
import numpy as np

from ..dl_types import CasadiValue, FloatArray
from ..exceptions import ConfigurationError
from ..input_validation import validate_bounds_pair
from .variables import SliceLike


class ProgramConstraint:
    """
    Base class of bindable constraints ``lower <= evaluate(*args) <= upper``.

    Args:
        input_sizes: Expected size of every positional argument
        lower_bound: Lower bound per output row
        upper_bound: Upper bound per output row
        description: Human readable name used in logs and summaries
    """

    def __init__(
        self,
        input_sizes: Sequence[int],
        lower_bound: FloatArray | Sequence[float],
        upper_bound: FloatArray | Sequence[float],
        description: str = "constraint",
    ) -> None:
        self.input_sizes = tuple(int(size) for size in input_sizes)
        self.lower_bound = np.asarray(lower_bound, dtype=np.float64).reshape(-1)
        self.upper_bound = np.asarray(upper_bound, dtype=np.float64).reshape(-1)
        validate_bounds_pair(self.lower_bound, self.upper_bound, description)
        self.description = description

    @property
    def num_outputs(self) -> int:
        return self.lower_bound.size

    @property
    def num_inputs(self) -> int:
        return len(self.input_sizes)

    @property
    def is_equality(self) -> bool:
        return bool(np.all(self.lower_bound == self.upper_bound))

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        raise NotImplementedError

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.description!r}, inputs={self.input_sizes}, "
            f"outputs={self.num_outputs})"
        )


class FunctionConstraint(ProgramConstraint):
    """Constraint backed by a single-output ``casadi.Function``."""

    def __init__(
        self,
        function: ca.Function,
        lower_bound: FloatArray | Sequence[float],
        upper_bound: FloatArray | Sequence[float],
        description: str | None = None,
    ) -> None:
        input_sizes = [function.size1_in(i) for i in range(function.n_in())]
        super().__init__(input_sizes, lower_bound, upper_bound, description or function.name())
        if function.size1_out(0) != self.num_outputs:
            raise ConfigurationError(
                f"Function '{function.name()}' has {function.size1_out(0)} outputs "
                f"but {self.num_outputs} bounds were given"
            )
        self.function = function

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        return self.function(*args)


class EqualityConstraint(FunctionConstraint):
    """``function(*args) == 0``."""

    def __init__(self, function: ca.Function, description: str | None = None) -> None:
        zeros = np.zeros(function.size1_out(0))
        super().__init__(function, zeros, zeros, description)


class BoundingBoxConstraint(ProgramConstraint):
    """Elementwise ``lower <= x <= upper`` on a single argument."""

    def __init__(
        self,
        lower_bound: FloatArray | Sequence[float],
        upper_bound: FloatArray | Sequence[float],
        description: str = "bounding box",
    ) -> None:
        lower = np.asarray(lower_bound, dtype=np.float64).reshape(-1)
        super().__init__([lower.size], lower, upper_bound, description)

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        return args[0]


class LinearConstraint(ProgramConstraint):
    """``lower <= A @ x <= upper`` on a single argument."""

    def __init__(
        self,
        matrix: FloatArray,
        lower_bound: FloatArray | Sequence[float],
        upper_bound: FloatArray | Sequence[float],
        description: str = "linear",
    ) -> None:
        self.matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
        super().__init__([self.matrix.shape[1]], lower_bound, upper_bound, description)
        if self.matrix.shape[0] != self.num_outputs:
            raise ConfigurationError(
                f"{description}: matrix has {self.matrix.shape[0]} rows "
                f"but {self.num_outputs} bounds were given"
            )

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        return ca.mtimes(ca.DM(self.matrix), args[0])


class ProgramCost:
    """Base class of bindable scalar costs."""

    def __init__(self, input_sizes: Sequence[int], description: str = "cost") -> None:
        self.input_sizes = tuple(int(size) for size in input_sizes)
        self.description = description

    @property
    def num_inputs(self) -> int:
        return len(self.input_sizes)

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r}, inputs={self.input_sizes})"


class QuadraticCost(ProgramCost):
    """``(x - target)^T W (x - target)`` on a single argument."""

    def __init__(
        self,
        weight: FloatArray,
        target: FloatArray | None = None,
        description: str = "quadratic",
    ) -> None:
        self.weight = np.atleast_2d(np.asarray(weight, dtype=np.float64))
        size = self.weight.shape[0]
        if self.weight.shape != (size, size):
            raise ConfigurationError(
                f"{description}: weight must be square, got {self.weight.shape}"
            )
        self.target = (
            np.zeros(size) if target is None else np.asarray(target, dtype=np.float64).reshape(-1)
        )
        if self.target.size != size:
            raise ConfigurationError(
                f"{description}: target has {self.target.size} entries, expected {size}"
            )
        super().__init__([size], description)

    def evaluate(self, *args: CasadiValue) -> CasadiValue:
        error = args[0] - ca.DM(self.target)
        return ca.mtimes([error.T, ca.DM(self.weight), error])


class BindingKind(enum.Enum):
    CONSTRAINT = "constraint"
    BOUNDING_BOX = "bounding_box"
    LINEAR_EQUALITY = "linear_equality"
    RELATION = "relation"
    COST = "cost"


@dataclass(frozen=True)
class Binding:
    """
    Attachment of one constraint or cost to an ordered list of variable slices.

    Purely structural; created once by the program builder and never mutated.
    ``family`` and ``mode`` label the binding for lookups (``"dynamics"``, mode 0).
    """

    kind: BindingKind
    evaluator: ProgramConstraint | ProgramCost | None
    slices: tuple[SliceLike, ...]
    family: str
    mode: int | None = None
    expression: ca.MX | None = field(default=None, compare=False, repr=False)

    @property
    def is_cost(self) -> bool:
        return self.kind is BindingKind.COST
