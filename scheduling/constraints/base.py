"""
Base types and context for constraint evaluators.

Provides the EvaluationContext dataclass that holds everything a constraint
module needs to judge one candidate assignment, and the Verdict it produces.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from scheduling.grid_index import GridIndex
from scheduling.models import (
    Activity,
    Constraint,
    ConstraintSeverity,
    Facility,
    Group,
    ScheduleSlot,
    SchedulingResources,
    WeatherAssignment,
    WeatherCondition,
)

WeatherInput = Mapping[date, WeatherCondition] | Iterable[WeatherAssignment] | None


def normalize_weather(weather: WeatherInput) -> dict[date, WeatherCondition]:
    """Accept either a date->condition mapping or a list of WeatherAssignment rows."""
    if weather is None:
        return {}
    if isinstance(weather, Mapping):
        return {d: WeatherCondition(c) for d, c in weather.items()}
    return {w.date: w.condition for w in weather}


@dataclass
class EvaluationContext:
    """
    Shared context passed to every constraint evaluator.

    ``grid`` is the current snapshot; the candidate is always looked at on its own
    and any grid slot with the candidate's id is ignored by the evaluators.
    """

    candidate: ScheduleSlot
    grid: GridIndex
    resources: SchedulingResources
    weather: dict[date, WeatherCondition] = field(default_factory=dict)
    blocking_conditions: frozenset[WeatherCondition] = frozenset(
        {WeatherCondition.RAINY, WeatherCondition.STORMY}
    )

    @property
    def activity(self) -> Activity | None:
        if self.candidate.activity_id is None:
            return None
        return self.resources.activity_by_id.get(self.candidate.activity_id)

    @property
    def facility(self) -> Facility | None:
        if self.candidate.facility_id is None:
            return None
        return self.resources.facility_by_id.get(self.candidate.facility_id)

    @property
    def group(self) -> Group | None:
        return self.resources.group_by_id.get(self.candidate.group_id)

    def activity_name(self, activity_id: str | None) -> str:
        if activity_id is None:
            return "(empty)"
        activity = self.resources.activity_by_id.get(activity_id)
        return activity.name if activity else activity_id

    def group_name(self, group_id: str) -> str:
        group = self.resources.group_by_id.get(group_id)
        return group.name if group else group_id

    def staff_name(self, staff_id: str) -> str:
        member = self.resources.staff_by_id.get(staff_id)
        return member.name if member else staff_id


class VerdictStatus(str, Enum):
    ALLOWED = "allowed"
    SOFT_VIOLATION = "soft_violation"
    HARD_VIOLATION = "hard_violation"


class Violation(BaseModel):
    """One triggered constraint."""

    constraint_id: str
    constraint_name: str
    kind: str
    severity: ConstraintSeverity
    priority: int = 5
    message: str
    detail: str = ""

    @property
    def is_hard(self) -> bool:
        return self.severity == ConstraintSeverity.HARD


class Verdict(BaseModel):
    """Outcome of evaluating one candidate against every applicable constraint."""

    status: VerdictStatus = VerdictStatus.ALLOWED
    violations: list[Violation] = Field(default_factory=list)

    @classmethod
    def from_violations(cls, violations: list[Violation]) -> Verdict:
        ordered = sorted(violations, key=lambda v: (not v.is_hard, -v.priority, v.constraint_id))
        if any(v.is_hard for v in ordered):
            status = VerdictStatus.HARD_VIOLATION
        elif ordered:
            status = VerdictStatus.SOFT_VIOLATION
        else:
            status = VerdictStatus.ALLOWED
        return cls(status=status, violations=ordered)

    @property
    def is_allowed(self) -> bool:
        """True unless a hard constraint blocks the assignment."""
        return self.status != VerdictStatus.HARD_VIOLATION

    @property
    def hard_violations(self) -> list[Violation]:
        return [v for v in self.violations if v.is_hard]

    @property
    def soft_violations(self) -> list[Violation]:
        return [v for v in self.violations if not v.is_hard]

    @property
    def reason(self) -> str | None:
        return self.violations[0].message if self.violations else None


class ConstraintEvaluator(Protocol):
    """
    Protocol for per-kind evaluators.

    Returns a human-readable violation detail, or None when the candidate
    satisfies the constraint (or the constraint does not apply to it).
    """

    def __call__(self, ctx: EvaluationContext, constraint: Constraint) -> str | None: ...
