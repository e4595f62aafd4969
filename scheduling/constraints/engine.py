"""
Constraint Engine - evaluates a candidate assignment against the active rule set.

Every applicable constraint is evaluated; nothing short-circuits, so the verdict
does not depend on constraint order and all soft violations are reported.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from scheduling.config import ConfigLoader
from scheduling.grid_index import GridIndex
from scheduling.models import Activity, Constraint, ScheduleSlot, SchedulingResources, WeatherCondition

from .age_gender import check_age_gender
from .base import ConstraintEvaluator, EvaluationContext, Verdict, Violation, WeatherInput, normalize_weather
from .blackout import check_blackout
from .capacity import check_capacity
from .consecutive_limit import check_consecutive_limit
from .facility_exclusivity import check_facility_exclusivity
from .group_separation import check_group_separation
from .helpers import constraint_in_scope
from .max_per_day import check_max_per_day
from .repeat_gap import check_repeat_gap
from .sequencing import check_sequencing
from .staff_availability import check_staff_availability
from .time_window import check_time_window
from .weather_dependency import check_weather_dependency

logger = logging.getLogger(__name__)

CONSTRAINT_EVALUATORS: dict[str, ConstraintEvaluator] = {
    "time_window": check_time_window,
    "sequencing": check_sequencing,
    "max_per_day": check_max_per_day,
    "repeat_gap": check_repeat_gap,
    "age_gender": check_age_gender,
    "facility_exclusivity": check_facility_exclusivity,
    "staff_availability": check_staff_availability,
    "weather_dependency": check_weather_dependency,
    "blackout": check_blackout,
    "capacity": check_capacity,
    "consecutive_limit": check_consecutive_limit,
    "group_separation": check_group_separation,
}


class ConstraintEngine:
    """Reusable evaluator bound to one constraint set, resource snapshot and forecast.

    Args:
        constraints: All constraints; inactive ones are dropped up front
        resources: Activities, facilities, groups and staff
        weather: Per-date conditions, as a mapping or WeatherAssignment rows
        config: Config loader (defaults to the singleton)
        disabled_kinds: Constraint kinds to skip, for debugging a rule set
    """

    def __init__(
        self,
        constraints: Iterable[Constraint],
        resources: SchedulingResources,
        weather: WeatherInput = None,
        config: ConfigLoader | None = None,
        disabled_kinds: Iterable[str] | None = None,
    ):
        config = config or ConfigLoader.get_instance()
        self.constraints = sorted((c for c in constraints if c.is_active), key=lambda c: c.id)
        self.resources = resources
        self.weather = normalize_weather(weather)
        self.blocking_conditions = frozenset(
            WeatherCondition(c) for c in config.get_json("weather.outdoor_blocking_conditions")
        )
        self.disabled_kinds = set(disabled_kinds or ())
        self.evaluation_count = 0

    def is_constraint_disabled(self, kind: str) -> bool:
        """Check if a constraint kind is disabled in debug mode."""
        return kind in self.disabled_kinds

    def applicable(self, candidate: ScheduleSlot) -> list[Constraint]:
        """Constraints whose session and group scope cover the candidate."""
        return [
            c
            for c in self.constraints
            if constraint_in_scope(c, candidate) and not self.is_constraint_disabled(c.kind)
        ]

    def evaluate(self, candidate: ScheduleSlot, grid: GridIndex | Iterable[ScheduleSlot]) -> Verdict:
        """Judge ``candidate`` against the current grid.

        Any slot in ``grid`` sharing the candidate's id is treated as the candidate's
        previous state and ignored.
        """
        index = grid if isinstance(grid, GridIndex) else GridIndex(grid)
        ctx = EvaluationContext(
            candidate=candidate,
            grid=index,
            resources=self.resources,
            weather=self.weather,
            blocking_conditions=self.blocking_conditions,
        )
        self.evaluation_count += 1

        violations: list[Violation] = []
        for constraint in self.applicable(candidate):
            evaluator = CONSTRAINT_EVALUATORS.get(constraint.kind)
            if evaluator is None:
                logger.debug(f"No evaluator registered for constraint kind '{constraint.kind}'")
                continue
            detail = evaluator(ctx, constraint)
            if detail is None:
                continue
            violations.append(
                Violation(
                    constraint_id=constraint.id,
                    constraint_name=constraint.name,
                    kind=constraint.kind,
                    severity=constraint.severity,
                    priority=constraint.priority,
                    message=constraint.error_message or detail,
                    detail=detail,
                )
            )

        return Verdict.from_violations(violations)

    def valid_activities(
        self,
        slot: ScheduleSlot,
        grid: GridIndex | Iterable[ScheduleSlot],
        activities: Iterable[Activity] | None = None,
    ) -> list[Activity]:
        """Activities no hard constraint blocks in ``slot``, in the order given.

        Defaults to every active activity. The slot's facility and staff are kept as they are.
        """
        index = grid if isinstance(grid, GridIndex) else GridIndex(grid)
        pool = self.resources.active_activities if activities is None else list(activities)
        return [a for a in pool if self.evaluate(slot.model_copy(update={"activity_id": a.id}), index).is_allowed]


def evaluate(
    candidate: ScheduleSlot,
    grid: GridIndex | Iterable[ScheduleSlot],
    constraints: Iterable[Constraint],
    resources: SchedulingResources,
    weather: WeatherInput = None,
    config: ConfigLoader | None = None,
) -> Verdict:
    """One-shot evaluation of a candidate assignment."""
    return ConstraintEngine(constraints, resources, weather=weather, config=config).evaluate(candidate, grid)
