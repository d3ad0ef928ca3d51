from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from .exceptions import SolutionExtractionError


if TYPE_CHECKING:
    from .direct_solver.core_solver import HybridDircon
    from .program.builder import ProgramResult


logger = logging.getLogger(__name__)


def print_solution_summary(dircon: HybridDircon, result: ProgramResult) -> None:
    """
    Present factual solve data without analysis or interpretation.

    Args:
        dircon: Transcription the result belongs to
        result: Solver output
    """
    print("\n" + "=" * 80)
    print("DIRCONLAB SOLUTION DATA")
    print("=" * 80)

    # 1. Program Structure
    _print_program_structure_section(dircon)

    # 2. Solution Status
    _print_solution_status_section(result)

    # 3. Mode Data
    _print_mode_data_section(dircon, result)

    print("=" * 80)
    print("END SOLUTION DATA")
    print("=" * 80 + "\n")


def _print_program_structure_section(dircon: HybridDircon) -> None:
    """Present variable and binding counts."""
    builder = dircon.builder
    print("\n┌─ PROGRAM STRUCTURE")
    print("│")
    print(f"│  Name: {builder.name}")
    print(f"│  Modes: {dircon.num_modes}")
    print(f"│  Samples: {dircon.num_samples}")
    print(f"│  State Dimension: {dircon.dims.num_states}")
    print(f"│  Input Dimension: {dircon.dims.num_inputs}")
    print(f"│  Decision Variables: {builder.num_variables}")
    num_costs = sum(1 for binding in builder.bindings() if binding.is_cost)
    print(f"│  Constraint Bindings: {len(builder.bindings()) - num_costs}")
    print(f"│  Cost Bindings: {num_costs}")
    print("│")


def _print_solution_status_section(result: ProgramResult) -> None:
    """Present raw solution status data."""
    print("┌─ SOLUTION STATUS")
    print("│")
    print(f"│  Success: {result.success}")
    print(f"│  Message: {result.message}")

    if result.objective is not None:
        print(f"│  Objective: {result.objective:.12e}")
    else:
        print("│  Objective: Not available")

    if result.iterations is not None:
        print(f"│  Iterations: {result.iterations}")
    print("│")


def _print_mode_data_section(dircon: HybridDircon, result: ProgramResult) -> None:
    """Present per-mode timing data."""
    print("┌─ MODE DATA")
    print("│")

    try:
        durations = dircon.mode_durations(result)
        times = dircon.sample_times(result)
    except SolutionExtractionError as e:
        logger.debug("Mode data unavailable: %s", str(e))
        print("│  Mode data: Not available")
        print("│")
        return

    for mode in range(dircon.num_modes):
        start = dircon.mode_start(mode)
        k = dircon.num_kinematic_constraints(mode)
        print(f"│  Mode {mode}:")
        stop = start + dircon.mode_lengths[mode] - 1
        print(f"│    Samples: {dircon.mode_lengths[mode]} (global {start}..{stop})")
        print(f"│    Constraint Rows: {k}")
        print(f"│    Start Time: {times[start]:.6f}")
        print(f"│    Duration: {durations[mode]:.6f}")

    print(f"│  Total Duration: {float(np.sum(durations)):.6f}")
    print("│")
