"""
Schedule Solver - fills empty grid slots under the configured constraints.

This package contains:
- ScheduleSolver: greedy solver with local backtracking
- CpRefiner: OR-Tools CP-SAT proposal pass for the "thorough" level
- StaffAssigner: specialty-matched, workload-balanced staff picks
- Feasibility pre-checks and solution analysis
"""

from .callbacks import ProposalProgressCallback
from .cp_refiner import CpRefiner
from .feasibility import FeasibilityIssue, FeasibilityResult, FeasibilityStats, check_feasibility
from .logging import ConstraintLogger
from .models import OptimizationLevel, SlotViolation, SolverInput, SolverOutput, SolverStatus
from .schedule_solver import ScheduleSolver, solve_schedule
from .solution import analyze_solution
from .staff_assignment import (
    AutoAssignResult,
    StaffAssigner,
    StaffAssignment,
    StaffMinutes,
    StaffWorkload,
    auto_assign_staff,
    availability_key,
    calculate_staff_workload,
    staff_availability_matrix,
    suggest_staff,
)

__all__ = [
    "AutoAssignResult",
    "ConstraintLogger",
    "CpRefiner",
    "FeasibilityIssue",
    "FeasibilityResult",
    "FeasibilityStats",
    "OptimizationLevel",
    "ProposalProgressCallback",
    "ScheduleSolver",
    "SlotViolation",
    "SolverInput",
    "SolverOutput",
    "SolverStatus",
    "StaffAssigner",
    "StaffAssignment",
    "StaffMinutes",
    "StaffWorkload",
    "analyze_solution",
    "auto_assign_staff",
    "availability_key",
    "calculate_staff_workload",
    "check_feasibility",
    "solve_schedule",
    "staff_availability_matrix",
    "suggest_staff",
]
