"""CP-SAT progress reporting for the proposal pass."""

from __future__ import annotations

from ortools.sat.python import cp_model

from .logging import ConstraintLogger


class ProposalProgressCallback(cp_model.CpSolverSolutionCallback):
    """Appends each improving CP-SAT solution to the run's progress trace."""

    def __init__(self, constraint_logger: ConstraintLogger) -> None:
        cp_model.CpSolverSolutionCallback.__init__(self)
        self.constraint_logger = constraint_logger
        self.solution_count = 0

    def on_solution_callback(self) -> None:
        self.solution_count += 1
        self.constraint_logger.log_progress(
            f"CP-SAT proposal #{self.solution_count} at {self.WallTime():.2f}s, penalty {self.ObjectiveValue():g}"
        )
