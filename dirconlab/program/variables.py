# dirconlab/program/variables.py
"""
Decision variable groups and pure slice descriptions.

A ``VariableGroup`` owns a CasADi decision vector. ``VariableSlice`` and
``CompositeSlice`` only *describe* which entries of which groups are meant;
they hold no CasADi objects and compare by value, so two descriptions of the
same entries are equal.
"""

from __future__ import annotations

from dataclasses import dataclass

import casadi as ca

from ..exceptions import DataIntegrityError


@dataclass(frozen=True, eq=False)
class VariableGroup:
    """Named, fixed-size block of scalar unknowns registered with a program."""

    name: str
    size: int
    index: int
    offset: int
    symbol: ca.MX

    def slice(self, start: int, length: int) -> VariableSlice:
        """Describe ``length`` entries starting at ``start``."""
        if start < 0 or length < 0 or start + length > self.size:
            raise DataIntegrityError(
                f"Slice [{start}:{start + length}] outside group '{self.name}' of size {self.size}",
                "Variable slice construction",
            )
        return VariableSlice(self.name, start, length)

    def all(self) -> VariableSlice:
        return VariableSlice(self.name, 0, self.size)

    def __repr__(self) -> str:
        return f"VariableGroup(name={self.name!r}, size={self.size}, offset={self.offset})"


@dataclass(frozen=True)
class VariableSlice:
    """Contiguous entries ``[start, start + length)`` of the group called ``group``."""

    group: str
    start: int
    length: int

    @property
    def stop(self) -> int:
        return self.start + self.length

    @property
    def size(self) -> int:
        return self.length

    @property
    def segments(self) -> tuple[VariableSlice, ...]:
        return (self,)

    def overlaps(self, other: VariableSlice) -> bool:
        return (
            self.group == other.group
            and self.length > 0
            and other.length > 0
            and self.start < other.stop
            and other.start < self.stop
        )

    def sub(self, start: int, length: int) -> VariableSlice:
        if start < 0 or length < 0 or start + length > self.length:
            raise DataIntegrityError(
                f"Sub-slice [{start}:{start + length}] outside slice of length {self.length}",
                "Variable slice construction",
            )
        return VariableSlice(self.group, self.start + start, length)


@dataclass(frozen=True)
class CompositeSlice:
    """Ordered concatenation of variable slices, possibly from different groups."""

    segments: tuple[VariableSlice, ...]

    @property
    def size(self) -> int:
        return sum(segment.length for segment in self.segments)

    def sub(self, start: int, length: int) -> CompositeSlice:
        """Entries ``[start, start + length)`` of the concatenation."""
        if start < 0 or length < 0 or start + length > self.size:
            raise DataIntegrityError(
                f"Sub-slice [{start}:{start + length}] outside composite slice of size {self.size}",
                "Composite slice construction",
            )
        pieces: list[VariableSlice] = []
        cursor = 0
        stop = start + length
        for segment in self.segments:
            seg_begin = max(start, cursor)
            seg_end = min(stop, cursor + segment.length)
            if seg_end > seg_begin:
                pieces.append(segment.sub(seg_begin - cursor, seg_end - seg_begin))
            cursor += segment.length
        return CompositeSlice(tuple(pieces))

    def head(self, length: int) -> CompositeSlice:
        return self.sub(0, length)

    def tail(self, length: int) -> CompositeSlice:
        return self.sub(self.size - length, length)

    def overlaps(self, other: SliceLike) -> bool:
        return any(
            mine.overlaps(theirs) for mine in self.segments for theirs in other.segments
        )


SliceLike = VariableSlice | CompositeSlice
