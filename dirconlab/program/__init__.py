"""
Generic mathematical-program layer: variable groups, slices, bindable
constraints and costs, and the CasADi ``Opti`` backed builder.
"""

from .bindings import (
    Binding,
    BindingKind,
    BoundingBoxConstraint,
    EqualityConstraint,
    FunctionConstraint,
    LinearConstraint,
    ProgramConstraint,
    ProgramCost,
    QuadraticCost,
)
from .builder import ProgramBuilder, ProgramResult
from .variables import CompositeSlice, SliceLike, VariableGroup, VariableSlice


__all__ = [
    "Binding",
    "BindingKind",
    "BoundingBoxConstraint",
    "CompositeSlice",
    "EqualityConstraint",
    "FunctionConstraint",
    "LinearConstraint",
    "ProgramBuilder",
    "ProgramConstraint",
    "ProgramCost",
    "ProgramResult",
    "QuadraticCost",
    "SliceLike",
    "VariableGroup",
    "VariableSlice",
]
