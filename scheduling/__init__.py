"""
Scheduling - Core logic for building and checking camp activity schedules.

This package contains:
- models: Domain models (Session, Group, Activity, ScheduleSlot, Constraint, etc.)
- grid_builder: Empty slot grid from day templates
- constraints: Per-kind constraint evaluators and the ConstraintEngine
- solver: Greedy/backtracking solver with an OR-Tools CP-SAT pass
- conflict_detector: Re-validation of a grid into classified conflicts
- weather: Weather impact and substitution proposals
- analytics, views: Read-only aggregates and projections
"""

from scheduling.analytics import ScheduleAnalytics, calculate_schedule_analytics
from scheduling.conflict_detector import (
    ConflictDetector,
    ConflictSummary,
    detect_conflicts,
    get_slot_conflicts,
    is_schedule_valid,
    summarize_conflicts,
)
from scheduling.constraints import ConstraintEngine, Verdict, VerdictStatus, evaluate
from scheduling.errors import (
    ApplyFailure,
    InfeasibleGridError,
    InvalidStateError,
    SchedulingError,
    SubstitutionApplyError,
    ValidationError,
)
from scheduling.grid_builder import build_slot_grid
from scheduling.solver import ScheduleSolver, SolverInput, SolverOutput, check_feasibility, solve_schedule
from scheduling.views import GridViews
from scheduling.weather import (
    WeatherImpact,
    WeatherPlanner,
    apply_substitutions,
    check_weather_impact,
    summarize_weather,
)

__all__ = [
    "ApplyFailure",
    "ConflictDetector",
    "ConflictSummary",
    "ConstraintEngine",
    "GridViews",
    "InfeasibleGridError",
    "InvalidStateError",
    "ScheduleAnalytics",
    "ScheduleSolver",
    "SchedulingError",
    "SolverInput",
    "SolverOutput",
    "SubstitutionApplyError",
    "ValidationError",
    "Verdict",
    "VerdictStatus",
    "WeatherImpact",
    "WeatherPlanner",
    "apply_substitutions",
    "build_slot_grid",
    "calculate_schedule_analytics",
    "check_feasibility",
    "check_weather_impact",
    "detect_conflicts",
    "evaluate",
    "get_slot_conflicts",
    "is_schedule_valid",
    "solve_schedule",
    "summarize_conflicts",
    "summarize_weather",
]
