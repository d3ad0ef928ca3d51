# dirconlab/program/builder.py
"""
CasADi ``Opti`` backed program builder.

The builder is the generic variable/constraint/cost registry consumed by the
hybrid transcription. It keeps, in insertion order, every variable group and
every binding it creates, so the structure of the assembled program can be
inspected without solving it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import casadi as ca
import numpy as np

from ..dl_types import FloatArray
from ..exceptions import ConfigurationError, DataIntegrityError, SolutionExtractionError
from ..input_validation import (
    validate_array_numerical_integrity,
    validate_integer,
    validate_string_not_empty,
)
from ..utils.casadi_utils import as_casadi_mx, casadi_to_numpy
from ..utils.constants import DEFAULT_NLP_OPTIONS
from .bindings import (
    Binding,
    BindingKind,
    BoundingBoxConstraint,
    ProgramConstraint,
    ProgramCost,
)
from .variables import CompositeSlice, SliceLike, VariableGroup, VariableSlice


# Library logger
logger = logging.getLogger(__name__)


@dataclass
class ProgramResult:
    """Variable assignment reported by the NLP solver (or read from a failed solve)."""

    success: bool
    message: str
    objective: float | None
    values: dict[str, FloatArray] = field(default_factory=dict)
    iterations: int | None = None

    def group_value(self, name: str) -> FloatArray:
        if name not in self.values:
            raise SolutionExtractionError(
                f"No value for variable group '{name}'", "Program result lookup"
            )
        return self.values[name]

    def value(self, target: SliceLike | VariableGroup) -> FloatArray:
        """Numeric value of a group or a (composite) slice."""
        if isinstance(target, VariableGroup):
            return self.group_value(target.name).copy()
        pieces = [self.group_value(seg.group)[seg.start : seg.stop] for seg in target.segments]
        if not pieces:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate(pieces)


class ProgramBuilder:
    """
    Incrementally assembled nonlinear program.

    Not safe for concurrent writers: bindings are appended in call order and
    that order defines constraint indexing in the solver.
    """

    def __init__(self, name: str = "program") -> None:
        validate_string_not_empty(name, "Program name")
        self.name = name
        self._opti = ca.Opti()
        self._groups: dict[str, VariableGroup] = {}
        self._bindings: list[Binding] = []
        self._initial_guesses: dict[str, FloatArray] = {}
        self._cost_terms: list[ca.MX] = []
        self._num_variables = 0

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @property
    def opti(self) -> ca.Opti:
        """Underlying CasADi Opti instance, for advanced use."""
        return self._opti

    @property
    def num_variables(self) -> int:
        return self._num_variables

    def new_variables(self, count: int, name: str) -> VariableGroup:
        """Register a new group of ``count`` continuous decision variables."""
        validate_integer(count, f"size of variable group '{name}'", min_value=0)
        validate_string_not_empty(name, "Variable group name")
        if name in self._groups:
            raise ConfigurationError(
                f"Variable group '{name}' already exists", "Program variable registration"
            )

        symbol = self._opti.variable(count) if count > 0 else ca.MX(0, 1)
        group = VariableGroup(
            name=name,
            size=int(count),
            index=len(self._groups),
            offset=self._num_variables,
            symbol=symbol,
        )
        self._groups[name] = group
        self._initial_guesses[name] = np.zeros(count, dtype=np.float64)
        self._num_variables += int(count)

        logger.debug("Created variable group '%s' with %d entries", name, count)
        return group

    def group(self, name: str) -> VariableGroup:
        if name not in self._groups:
            raise DataIntegrityError(f"Unknown variable group '{name}'", "Program lookup")
        return self._groups[name]

    @property
    def groups(self) -> list[VariableGroup]:
        return list(self._groups.values())

    def resolve(self, target: SliceLike | VariableGroup) -> ca.MX:
        """CasADi expression of the decision variables a slice describes."""
        if isinstance(target, VariableGroup):
            return target.symbol
        pieces = []
        for segment in target.segments:
            group = self.group(segment.group)
            if segment.stop > group.size:
                raise DataIntegrityError(
                    f"Slice [{segment.start}:{segment.stop}] outside group '{group.name}'",
                    "Program slice resolution",
                )
            if segment.length > 0:
                pieces.append(group.symbol[segment.start : segment.stop])
        if not pieces:
            return ca.MX(0, 1)
        return ca.vertcat(*pieces)

    # ------------------------------------------------------------------
    # Constraints and costs
    # ------------------------------------------------------------------

    def bind_constraint(
        self,
        constraint: ProgramConstraint,
        slices: Sequence[SliceLike],
        family: str = "constraint",
        mode: int | None = None,
    ) -> Binding:
        """Attach ``constraint`` to the ordered ``slices`` and add it to the program."""
        arguments = self._resolve_arguments(constraint.input_sizes, slices, constraint.description)
        expression = constraint.evaluate(*arguments)
        if expression.size1() != constraint.num_outputs:
            raise DataIntegrityError(
                f"{constraint.description} produced {expression.size1()} rows, "
                f"declared {constraint.num_outputs}",
                "Constraint binding",
            )

        if constraint.num_outputs > 0:
            self._subject_to_bounds(expression, constraint.lower_bound, constraint.upper_bound)

        kind = (
            BindingKind.BOUNDING_BOX
            if isinstance(constraint, BoundingBoxConstraint)
            else BindingKind.CONSTRAINT
        )
        binding = Binding(kind, constraint, tuple(slices), family, mode, expression)
        self._bindings.append(binding)
        return binding

    def bind_cost(
        self,
        cost: ProgramCost,
        slices: Sequence[SliceLike],
        family: str = "cost",
        mode: int | None = None,
    ) -> Binding:
        """Attach a scalar ``cost`` to the ordered ``slices``; costs are summed."""
        arguments = self._resolve_arguments(cost.input_sizes, slices, cost.description)
        expression = cost.evaluate(*arguments)
        if expression.numel() != 1:
            raise ConfigurationError(
                f"{cost.description} must be scalar, got shape {expression.shape}",
                "Cost binding",
            )
        self._cost_terms.append(expression)
        binding = Binding(BindingKind.COST, cost, tuple(slices), family, mode, expression)
        self._bindings.append(binding)
        return binding

    def bounding_box(
        self,
        lower: float | FloatArray,
        upper: float | FloatArray,
        target: SliceLike,
        family: str = "bounding_box",
        mode: int | None = None,
    ) -> Binding:
        """Elementwise bounds on the entries of ``target``."""
        size = target.size
        lower_array = np.broadcast_to(np.asarray(lower, dtype=np.float64), (size,)).copy()
        upper_array = np.broadcast_to(np.asarray(upper, dtype=np.float64), (size,)).copy()
        constraint = BoundingBoxConstraint(lower_array, upper_array, family)
        return self.bind_constraint(constraint, [target], family, mode)

    def linear_equality(
        self,
        expression: ca.MX,
        slices: Sequence[SliceLike] = (),
        family: str = "linear_equality",
        mode: int | None = None,
    ) -> Binding:
        """Add ``expression == 0``; ``slices`` records the variables it involves."""
        expression = as_casadi_mx(expression)
        self._opti.subject_to(expression == 0)
        binding = Binding(
            BindingKind.LINEAR_EQUALITY, None, tuple(slices), family, mode, expression
        )
        self._bindings.append(binding)
        return binding

    def subject_to(
        self,
        relation: ca.MX,
        slices: Sequence[SliceLike] = (),
        family: str = "relation",
        mode: int | None = None,
    ) -> Binding:
        """Add a raw CasADi relation such as ``x[0] <= 1``."""
        self._opti.subject_to(relation)
        binding = Binding(BindingKind.RELATION, None, tuple(slices), family, mode, relation)
        self._bindings.append(binding)
        return binding

    def bindings(
        self,
        family: str | None = None,
        mode: int | None = None,
        kind: BindingKind | None = None,
    ) -> list[Binding]:
        """Bindings in insertion order, optionally filtered."""
        return [
            binding
            for binding in self._bindings
            if (family is None or binding.family == family)
            and (mode is None or binding.mode == mode)
            and (kind is None or binding.kind is kind)
        ]

    def __iter__(self) -> Iterator[Binding]:
        return iter(list(self._bindings))

    def evaluate_binding(
        self,
        binding: Binding,
        values: ProgramResult | Mapping[str, FloatArray],
    ) -> FloatArray:
        """Numeric evaluator output of a constraint/cost binding at an assignment."""
        if binding.evaluator is None:
            raise DataIntegrityError(
                f"Binding of family '{binding.family}' has no evaluator", "Binding evaluation"
            )
        lookup = values.values if isinstance(values, ProgramResult) else values
        arguments = []
        for target in binding.slices:
            pieces = [
                np.asarray(lookup[seg.group], dtype=np.float64).reshape(-1)[seg.start : seg.stop]
                for seg in target.segments
            ]
            arguments.append(ca.DM(np.concatenate(pieces) if pieces else np.zeros(0)))
        return casadi_to_numpy(binding.evaluator.evaluate(*arguments), binding.family)

    # ------------------------------------------------------------------
    # Initial guesses
    # ------------------------------------------------------------------

    def set_initial_guess(self, target: SliceLike | VariableGroup, values: Any) -> None:
        """Record and forward an initial guess for the entries of ``target``."""
        if isinstance(target, VariableGroup):
            target = target.all()
        array = np.asarray(values, dtype=np.float64).reshape(-1)
        if array.size != target.size:
            raise DataIntegrityError(
                f"Initial guess has {array.size} entries, target has {target.size}",
                "Initial guess assignment",
            )
        validate_array_numerical_integrity(array, "initial guess")

        cursor = 0
        touched: list[str] = []
        for segment in target.segments:
            if segment.length == 0:
                continue
            chunk = array[cursor : cursor + segment.length]
            cursor += segment.length
            self._initial_guesses[segment.group][segment.start : segment.stop] = chunk
            if segment.group not in touched:
                touched.append(segment.group)

        # Opti receives whole groups; partial slices are merged locally first
        for name in touched:
            group = self.group(name)
            self._opti.set_initial(group.symbol, self._initial_guesses[name])

    def initial_guess(self, target: SliceLike | VariableGroup) -> FloatArray:
        """Current initial guess of a group or slice (zeros unless set)."""
        if isinstance(target, VariableGroup):
            return self._initial_guesses[target.name].copy()
        pieces = [self._initial_guesses[seg.group][seg.start : seg.stop] for seg in target.segments]
        if not pieces:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate(pieces)

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def objective_expression(self) -> ca.MX:
        if not self._cost_terms:
            return ca.MX(0)
        return ca.sum1(ca.vertcat(*self._cost_terms))

    def solve(self, nlp_options: dict[str, object] | None = None) -> ProgramResult:
        """
        Solve the assembled program with IPOPT.

        Solver failure is not raised: the returned result has ``success=False``,
        the solver status message, and the last iterate's values.
        """
        final_options = {**DEFAULT_NLP_OPTIONS, **(nlp_options or {})}
        objective = self.objective_expression()
        self._opti.minimize(objective)
        self._opti.solver("ipopt", final_options)

        logger.info(
            "Solving program '%s': %d variables in %d groups, %d bindings",
            self.name,
            self._num_variables,
            len(self._groups),
            len(self._bindings),
        )

        try:
            solution = self._opti.solve()
            result = self._collect_result(solution.value, solution.stats(), objective, True)
            logger.debug("NLP solver completed successfully")
        except RuntimeError as e:
            # Failed solve still reports the last iterate
            logger.warning("NLP solver failed: %s", str(e))
            try:
                result = self._collect_result(
                    self._opti.debug.value, self._opti.stats(), objective, False
                )
            except RuntimeError as debug_error:
                logger.warning("Last iterate unavailable: %s", str(debug_error))
                result = self._initial_guess_result()
            if not result.message:
                result.message = f"Solver runtime error: {e}"

        if result.success:
            logger.info("Solve completed: objective=%.6e", result.objective or 0.0)
        else:
            logger.warning("Solve failed: %s", result.message)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collect_result(
        self,
        value_of: Any,
        stats: dict[str, Any],
        objective: ca.MX,
        success: bool,
    ) -> ProgramResult:
        values: dict[str, FloatArray] = {}
        for group in self._groups.values():
            if not self._appears_in_program(group):
                # Opti has no value for symbols outside f and g
                values[group.name] = self._initial_guesses[group.name].copy()
                continue
            values[group.name] = np.atleast_1d(
                np.asarray(value_of(group.symbol), dtype=np.float64)
            ).reshape(-1)

        try:
            objective_value: float | None = float(value_of(objective))
        except RuntimeError:
            objective_value = None

        return ProgramResult(
            success=success and bool(stats.get("success", success)),
            message=str(stats.get("return_status", "")),
            objective=objective_value,
            values=values,
            iterations=stats.get("iter_count"),
        )

    def _appears_in_program(self, group: VariableGroup) -> bool:
        if group.size == 0:
            return False
        used = ca.vertcat(self._opti.f, self._opti.g)
        return bool(ca.depends_on(used, group.symbol))

    def _initial_guess_result(self) -> ProgramResult:
        values = {name: guess.copy() for name, guess in self._initial_guesses.items()}
        return ProgramResult(success=False, message="", objective=None, values=values)

    def _resolve_arguments(
        self,
        input_sizes: Sequence[int],
        slices: Sequence[SliceLike],
        description: str,
    ) -> list[ca.MX]:
        if len(slices) != len(input_sizes):
            raise DataIntegrityError(
                f"{description} takes {len(input_sizes)} arguments, got {len(slices)} slices",
                "Binding argument count",
            )
        arguments = []
        for position, (expected, target) in enumerate(zip(input_sizes, slices, strict=True)):
            if not isinstance(target, VariableSlice | CompositeSlice):
                raise DataIntegrityError(
                    f"{description} argument {position} is not a variable slice: {type(target)}",
                    "Binding argument type",
                )
            if target.size != expected:
                raise DataIntegrityError(
                    f"{description} argument {position} has size {target.size}, "
                    f"expected {expected}",
                    "Binding argument size",
                )
            arguments.append(self.resolve(target))
        return arguments

    def _subject_to_bounds(
        self, expression: ca.MX, lower: FloatArray, upper: FloatArray
    ) -> None:
        if np.all(lower == upper):
            self._opti.subject_to(expression == ca.DM(lower))
            return

        equal_rows = [i for i in range(lower.size) if lower[i] == upper[i]]
        ranged = lower != upper
        lower_rows = [i for i in range(lower.size) if ranged[i] and np.isfinite(lower[i])]
        upper_rows = [i for i in range(upper.size) if ranged[i] and np.isfinite(upper[i])]
        if equal_rows:
            self._opti.subject_to(expression[equal_rows] == ca.DM(lower[equal_rows]))
        if lower_rows:
            self._opti.subject_to(expression[lower_rows] >= ca.DM(lower[lower_rows]))
        if upper_rows:
            self._opti.subject_to(expression[upper_rows] <= ca.DM(upper[upper_rows]))
