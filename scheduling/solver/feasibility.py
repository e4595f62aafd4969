"""
Feasibility checking for schedule generation.

Pre-solve checks that identify blocking problems and likely trouble before the
solver runs. Nothing here mutates input; results are returned, not raised.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Literal, cast

import networkx as nx
from pydantic import BaseModel, Field

from scheduling.config import ConfigLoader
from scheduling.models import (
    Activity,
    Constraint,
    DayTemplate,
    Facility,
    Group,
    SequencingParams,
    Session,
    SessionStatus,
)

logger = logging.getLogger(__name__)

SCHEDULABLE_STATUSES = {SessionStatus.PLANNING, SessionStatus.ACTIVE}


class FeasibilityIssue(BaseModel):
    severity: Literal["error", "warning"]
    category: Literal["dates", "groups", "activities", "facilities", "template", "constraints"]
    message: str
    details: str = ""


class FeasibilityStats(BaseModel):
    total_days: int = 0
    total_groups: int = 0
    total_activities: int = 0
    total_facilities: int = 0
    slots_per_day: int = 0
    total_slots: int = 0
    hard_constraints: int = 0
    soft_constraints: int = 0


class FeasibilityResult(BaseModel):
    can_generate: bool
    issues: list[FeasibilityIssue] = Field(default_factory=list)
    warnings: list[FeasibilityIssue] = Field(default_factory=list)
    stats: FeasibilityStats = Field(default_factory=FeasibilityStats)


def find_sequencing_problems(constraints: list[Constraint], activity_names: dict[str, str]) -> list[str]:
    """Detect hard sequencing rules that contradict each other or box in the day.

    Checks for an activity required to be followed by two different activities,
    the same pair ruled both "must" and "must not", and precedence cycles, which
    force every remaining slot of the day once any activity on them is placed.
    """
    rules = [
        (c, cast(SequencingParams, c.params))
        for c in constraints
        if c.is_active and c.is_hard and c.kind == "sequencing"
    ]

    def name(activity_id: str) -> str:
        return activity_names.get(activity_id, activity_id)

    problems: list[str] = []
    graph = nx.DiGraph()
    required_successors: dict[str, set[str]] = defaultdict(set)
    polarity: dict[tuple[str, str], set[bool]] = defaultdict(set)

    for _constraint, params in rules:
        pair = (params.before_activity_id, params.after_activity_id)
        polarity[pair].add(params.must_follow)
        if params.must_follow:
            graph.add_edge(*pair)
            required_successors[params.before_activity_id].add(params.after_activity_id)

    for cycle in sorted(nx.simple_cycles(graph), key=lambda c: sorted(c)):
        path = " -> ".join(name(a) for a in [*cycle, cycle[0]])
        problems.append(f"Sequencing cycle fills the rest of the day once started: {path}")

    for before_id, afters in sorted(required_successors.items()):
        if len(afters) > 1:
            options = ", ".join(sorted(name(a) for a in afters))
            problems.append(f"{name(before_id)} must be directly followed by each of {options}; at most one can hold")

    for (before_id, after_id), values in sorted(polarity.items()):
        if values == {True, False}:
            problems.append(f"{name(after_id)} is required both to follow and not to follow {name(before_id)}")

    return problems


def check_feasibility(
    session: Session,
    groups: list[Group],
    activities: list[Activity],
    facilities: list[Facility],
    template: DayTemplate | None,
    constraints: list[Constraint],
    config: ConfigLoader | None = None,
) -> FeasibilityResult:
    """Run pre-generation checks.

    Errors make ``can_generate`` False; warnings are advisory.
    """
    config = config or ConfigLoader.get_instance()
    issues: list[FeasibilityIssue] = []
    warnings: list[FeasibilityIssue] = []

    total_days = session.day_count
    if total_days <= 0:
        issues.append(
            FeasibilityIssue(
                severity="error",
                category="dates",
                message="Session dates are invalid",
                details="The end date must not be before the start date",
            )
        )

    if session.status not in SCHEDULABLE_STATUSES:
        issues.append(
            FeasibilityIssue(
                severity="error",
                category="dates",
                message="Session is not in a planning state",
                details=f"Current status: {session.status.value}",
            )
        )

    active_groups = [g for g in groups if g.is_active and not g.is_deleted]
    if not active_groups:
        issues.append(
            FeasibilityIssue(
                severity="error",
                category="groups",
                message="No active groups",
                details="At least one active group is needed to generate a schedule",
            )
        )

    active_activities = [a for a in activities if a.is_available]
    min_activities = config.get_int("feasibility.min_activities")
    if not active_activities:
        issues.append(
            FeasibilityIssue(
                severity="error",
                category="activities",
                message="No active activities",
                details="At least one active activity is needed",
            )
        )
    elif len(active_activities) < min_activities:
        warnings.append(
            FeasibilityIssue(
                severity="warning",
                category="activities",
                message="Few activities available",
                details=f"Only {len(active_activities)} activities; schedules will repeat heavily",
            )
        )

    for group in active_groups:
        if active_activities and not any(a.accepts_group(group) for a in active_activities):
            warnings.append(
                FeasibilityIssue(
                    severity="warning",
                    category="groups",
                    message=f"No activity fits group {group.name}",
                    details=f"No active activity accepts ages {group.age_label}; its slots will stay empty",
                )
            )

    active_facilities = [f for f in facilities if f.is_available]
    if not active_facilities:
        warnings.append(
            FeasibilityIssue(
                severity="warning",
                category="facilities",
                message="No facilities",
                details="The schedule will be generated without facility assignments",
            )
        )

    schedulable_slots = template.schedulable_slots if template else []
    if template is None:
        issues.append(
            FeasibilityIssue(
                severity="error",
                category="template",
                message="No default day template",
                details="Mark a day template as the default",
            )
        )
    elif not schedulable_slots:
        issues.append(
            FeasibilityIssue(
                severity="error",
                category="template",
                message="Day template has no activity slots",
                details=f"Add schedulable activity slots to '{template.name}'",
            )
        )

    active_constraints = [c for c in constraints if c.is_active]
    hard = [c for c in active_constraints if c.is_hard]
    soft = [c for c in active_constraints if not c.is_hard]

    max_hard = config.get_int("feasibility.max_hard_constraints")
    if len(hard) > max_hard:
        warnings.append(
            FeasibilityIssue(
                severity="warning",
                category="constraints",
                message="Many hard constraints",
                details=f"{len(hard)} hard constraints may make a valid schedule hard to find",
            )
        )

    exclusive = [c for c in hard if c.kind == "facility_exclusivity"]
    if exclusive and len(active_facilities) < len(active_groups):
        warnings.append(
            FeasibilityIssue(
                severity="warning",
                category="constraints",
                message="Possible facility exclusivity conflict",
                details=(
                    f"{len(active_groups)} groups but only {len(active_facilities)} facilities "
                    "under exclusivity rules"
                ),
            )
        )

    activity_names = {a.id: a.name for a in activities}
    for problem in find_sequencing_problems(active_constraints, activity_names):
        warnings.append(
            FeasibilityIssue(
                severity="warning", category="constraints", message="Contradictory sequencing", details=problem
            )
        )

    days = max(total_days, 0)
    stats = FeasibilityStats(
        total_days=days,
        total_groups=len(active_groups),
        total_activities=len(active_activities),
        total_facilities=len(active_facilities),
        slots_per_day=len(schedulable_slots),
        total_slots=days * len(active_groups) * len(schedulable_slots),
        hard_constraints=len(hard),
        soft_constraints=len(soft),
    )

    if stats.total_slots > config.get_int("feasibility.large_grid_threshold"):
        warnings.append(
            FeasibilityIssue(
                severity="warning",
                category="dates",
                message="Large schedule",
                details=f"{stats.total_slots} slots to generate; this may take a while",
            )
        )

    logger.debug(f"Feasibility for '{session.name}': {len(issues)} issues, {len(warnings)} warnings")
    return FeasibilityResult(can_generate=not issues, issues=issues, warnings=warnings, stats=stats)
