# test_summary.py
"""
Text summary of a solve result.
"""

import numpy as np

from dirconlab import HybridDircon, ProgramResult
from dirconlab.program.bindings import BindingKind


def _result_for(dircon, h):
    values = {group.name: np.zeros(group.size) for group in dircon.builder.groups}
    values["h"][:] = h
    return ProgramResult(success=True, message="Solve_Succeeded", objective=1.25, values=values)


class TestSolutionSummary:
    def test_reports_structure_and_modes(self, stance_manifold, flight_manifold, capsys):
        dircon = HybridDircon(
            [stance_manifold, flight_manifold], [3, 4], [0.01, 0.01], [0.2, 0.2]
        )
        dircon.print_solution(_result_for(dircon, 0.1))

        output = capsys.readouterr().out
        assert "Modes: 2" in output
        assert "Samples: 6" in output
        assert "Mode 1:" in output
        assert "(global 2..5)" in output
        assert "Total Duration: 0.500000" in output
        assert "Objective: 1.250000000000e+00" in output

    def test_missing_values_reported(self, stance_manifold, capsys):
        dircon = HybridDircon([stance_manifold], [3], [0.01], [0.2])
        empty = ProgramResult(success=False, message="Infeasible", objective=None)
        dircon.print_solution(empty)

        output = capsys.readouterr().out
        assert "Mode data: Not available" in output
        assert "Objective: Not available" in output

    def test_costs_counted_apart_from_constraints(self, stance_manifold, capsys):
        dircon = HybridDircon([stance_manifold], [3], [0.01], [0.2])
        dircon.add_running_cost(lambda x, u: u**2)
        dircon.print_solution(_result_for(dircon, 0.1))

        output = capsys.readouterr().out
        bindings = dircon.builder.bindings()
        costs = [binding for binding in bindings if binding.is_cost]
        assert len(costs) == len(dircon.builder.bindings(kind=BindingKind.COST))
        assert len(dircon.builder.bindings("running_cost")) == 3
        assert f"Cost Bindings: {len(costs)}" in output
        assert f"Constraint Bindings: {len(bindings) - len(costs)}" in output
