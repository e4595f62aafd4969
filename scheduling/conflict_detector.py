"""
Conflict detection for schedule grids.

Re-validates a populated (or user-edited) grid and classifies every finding:
critical = operationally broken (double booking, hard rule breach),
warning = works but suboptimal, info = advisory.

Detection is pure and deterministic: the same grid always yields the same
conflicts, ids and order.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, Field

from .config import ConfigLoader
from .constraints import ConstraintEngine
from .constraints.base import WeatherInput
from .errors import InfeasibleGridError
from .grid_index import GridIndex, find_broken_references
from .models import (
    Activity,
    Conflict,
    ConflictSeverity,
    ConflictType,
    Constraint,
    ConstraintSeverity,
    Facility,
    Group,
    ScheduleSlot,
    SchedulingResources,
    Staff,
)
from .time_utils import format_hhmm

logger = logging.getLogger(__name__)

CONFLICT_NAMESPACE = uuid.UUID("b3e0d5a1-7c2f-5d94-8e61-2a9f0c7b4d18")

_SEVERITY_RANK = {ConflictSeverity.CRITICAL: 0, ConflictSeverity.WARNING: 1, ConflictSeverity.INFO: 2}


def overlap_clusters(slots: list[ScheduleSlot]) -> list[list[ScheduleSlot]]:
    """Group slots into clusters of transitively overlapping time ranges (same date assumed)."""
    ordered = sorted(slots, key=lambda s: (s.start_time, s.end_time, s.id))
    clusters: list[list[ScheduleSlot]] = []
    current: list[ScheduleSlot] = []
    current_end = None
    for slot in ordered:
        if current and current_end is not None and slot.start_time < current_end:
            current.append(slot)
            current_end = max(current_end, slot.end_time)
        else:
            if len(current) > 1:
                clusters.append(current)
            current = [slot]
            current_end = slot.end_time
    if len(current) > 1:
        clusters.append(current)
    return clusters


class ConflictSummary(BaseModel):
    total: int = 0
    critical: int = 0
    warning: int = 0
    info: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)


class ConflictDetector:
    """Detect conflicts in a schedule grid."""

    def __init__(
        self,
        activities: list[Activity],
        facilities: list[Facility],
        constraints: list[Constraint],
        groups: list[Group] | None = None,
        staff: list[Staff] | None = None,
        weather: WeatherInput = None,
        config: ConfigLoader | None = None,
    ) -> None:
        self.config = config or ConfigLoader.get_instance()
        self.groups_loaded = groups is not None
        self.staff_loaded = staff is not None
        self.resources = SchedulingResources(
            activities=list(activities),
            facilities=list(facilities),
            groups=list(groups or []),
            staff=list(staff or []),
        )
        self.engine = ConstraintEngine(constraints, self.resources, weather=weather, config=self.config)
        self.warning_ratio = self.config.get_float("conflicts.understaffing.warning_ratio")
        self.max_repeats = self.config.get_int("conflicts.low_variety.max_repeats_per_day")
        self.conflicts: list[Conflict] = []

    def detect_conflicts(self, grid: list[ScheduleSlot]) -> list[Conflict]:
        """Detect all conflicts in a grid.

        Raises:
            InfeasibleGridError: If a slot references a missing or deleted record
        """
        reasons = find_broken_references(
            grid, self.resources, check_groups=self.groups_loaded, check_staff=self.staff_loaded
        )
        if reasons:
            raise InfeasibleGridError(f"Grid has {len(reasons)} broken reference(s)", reasons)

        self.conflicts = []
        index = GridIndex(grid)

        self._detect_group_double_booking(grid)
        self._detect_facility_double_booking(grid)
        self._detect_staff_double_booking(grid)
        self._detect_constraint_violations(grid, index)
        self._detect_understaffing(grid)
        self._detect_mismatches(grid)
        self._detect_advisories(grid)

        self.conflicts.sort(
            key=lambda c: (
                _SEVERITY_RANK[c.severity], c.type.value, c.affected_slot_ids, c.constraint_id or "", c.message
            )
        )
        logger.debug(f"Detected {len(self.conflicts)} conflicts in {len(grid)} slots")
        return self.conflicts

    # ------------------------------------------------------------------

    def _add(
        self,
        conflict_type: ConflictType,
        severity: ConflictSeverity,
        message: str,
        slot_ids: Iterable[str],
        description: str = "",
        suggestion: str | None = None,
        constraint_id: str | None = None,
        discriminator: str = "",
    ) -> None:
        affected = sorted(set(slot_ids))
        seed = f"{conflict_type.value}:{constraint_id or ''}:{discriminator}:{','.join(affected)}"
        self.conflicts.append(
            Conflict(
                id=str(uuid.uuid5(CONFLICT_NAMESPACE, seed)),
                type=conflict_type,
                severity=severity,
                message=message,
                description=description,
                suggestion=suggestion,
                affected_slot_ids=affected,
                constraint_id=constraint_id,
            )
        )

    def _activity_name(self, activity_id: str | None) -> str:
        if activity_id is None:
            return "(empty)"
        activity = self.resources.activity_by_id.get(activity_id)
        return activity.name if activity else activity_id

    def _group_name(self, group_id: str) -> str:
        group = self.resources.group_by_id.get(group_id)
        return group.name if group else group_id

    @staticmethod
    def _window(slots: list[ScheduleSlot]) -> str:
        start = min(s.start_time for s in slots)
        end = max(s.end_time for s in slots)
        return f"{slots[0].date} {format_hhmm(start)}-{format_hhmm(end)}"

    # ------------------------------------------------------------------
    # Double bookings
    # ------------------------------------------------------------------

    def _detect_group_double_booking(self, grid: list[ScheduleSlot]) -> None:
        """Overlapping slots of one group on one date, reported once per overlap cluster."""
        by_group_day: dict[tuple[str, date], list[ScheduleSlot]] = defaultdict(list)
        for slot in grid:
            by_group_day[(slot.group_id, slot.date)].append(slot)

        for (group_id, _day), slots in sorted(by_group_day.items()):
            for cluster in overlap_clusters(slots):
                activities = {s.activity_id for s in cluster}
                group_name = self._group_name(group_id)
                if len(activities) > 1:
                    names = ", ".join(sorted(self._activity_name(a) for a in activities))
                    self._add(
                        ConflictType.DOUBLE_BOOKING,
                        ConflictSeverity.CRITICAL,
                        f"{group_name} is double-booked on {self._window(cluster)}",
                        [s.id for s in cluster],
                        description=f"{len(cluster)} overlapping slots with different activities: {names}",
                        suggestion="Remove or move all but one of the overlapping slots",
                    )
                else:
                    self._add(
                        ConflictType.DUPLICATE_SLOT,
                        ConflictSeverity.WARNING,
                        f"{group_name} has duplicate slots on {self._window(cluster)}",
                        [s.id for s in cluster],
                        description=f"{len(cluster)} overlapping slots with the same activity",
                        suggestion="Delete the duplicate slots",
                    )

    def _detect_facility_double_booking(self, grid: list[ScheduleSlot]) -> None:
        """Peak concurrent groups (or shared headcount) above what the facility allows."""
        by_facility_day: dict[tuple[str, date], list[ScheduleSlot]] = defaultdict(list)
        for slot in grid:
            if slot.facility_id is not None:
                by_facility_day[(slot.facility_id, slot.date)].append(slot)

        for (facility_id, _day), slots in sorted(by_facility_day.items()):
            facility = self.resources.facility_by_id[facility_id]
            for cluster in overlap_clusters(slots):
                if len({s.group_id for s in cluster}) < 2:
                    continue

                shareable = all(
                    s.activity_id is not None and self.resources.activity_by_id[s.activity_id].allows_shared_facility
                    for s in cluster
                )
                allowance = facility.max_concurrent_groups if shareable else 1

                peak_groups = 0
                peak_headcount = 0
                for point in sorted({s.start_time for s in cluster}):
                    present = {s.group_id for s in cluster if s.start_time <= point < s.end_time}
                    peak_groups = max(peak_groups, len(present))
                    headcount = sum(
                        self.resources.group_by_id[g].current_count for g in present if g in self.resources.group_by_id
                    )
                    peak_headcount = max(peak_headcount, headcount)

                over_groups = peak_groups > allowance
                over_capacity = facility.capacity is not None and shareable and peak_headcount > facility.capacity
                if not (over_groups or over_capacity):
                    continue

                if over_groups:
                    description = f"{peak_groups} groups at once; {facility.name} allows {allowance}"
                else:
                    description = f"{peak_headcount} campers at once; {facility.name} holds {facility.capacity}"
                self._add(
                    ConflictType.FACILITY_DOUBLE_BOOKING,
                    ConflictSeverity.CRITICAL,
                    f"{facility.name} is double-booked on {self._window(cluster)}",
                    [s.id for s in cluster],
                    description=description,
                    suggestion="Move one of the groups to another facility or time",
                )

    def _detect_staff_double_booking(self, grid: list[ScheduleSlot]) -> None:
        by_staff_day: dict[tuple[str, date], list[ScheduleSlot]] = defaultdict(list)
        for slot in grid:
            for staff_id in set(slot.staff_ids):
                by_staff_day[(staff_id, slot.date)].append(slot)

        for (staff_id, _day), slots in sorted(by_staff_day.items()):
            member = self.resources.staff_by_id.get(staff_id)
            name = member.name if member else staff_id
            for cluster in overlap_clusters(slots):
                self._add(
                    ConflictType.STAFF_DOUBLE_BOOKING,
                    ConflictSeverity.CRITICAL,
                    f"{name} is assigned to {len(cluster)} concurrent slots on {self._window(cluster)}",
                    [s.id for s in cluster],
                    description=", ".join(
                        f"{self._group_name(s.group_id)}: {self._activity_name(s.activity_id)}" for s in cluster
                    ),
                    suggestion="Assign a different staff member to one of the slots",
                    discriminator=staff_id,
                )

    # ------------------------------------------------------------------
    # Rules and staffing
    # ------------------------------------------------------------------

    def _detect_constraint_violations(self, grid: list[ScheduleSlot], index: GridIndex) -> None:
        """Re-run the constraint engine on every filled slot."""
        for slot in sorted(grid, key=lambda s: s.id):
            if not slot.is_filled:
                continue
            verdict = self.engine.evaluate(slot, index)
            for violation in verdict.violations:
                hard = violation.severity == ConstraintSeverity.HARD
                self._add(
                    ConflictType.CONSTRAINT_VIOLATION,
                    ConflictSeverity.CRITICAL if hard else ConflictSeverity.WARNING,
                    violation.message,
                    [slot.id],
                    description=(
                        f"{'Hard' if hard else 'Soft'} constraint '{violation.constraint_name}': {violation.detail}"
                    ),
                    suggestion="Change the slot's activity, facility, time or staff",
                    constraint_id=violation.constraint_id,
                )

    def _detect_understaffing(self, grid: list[ScheduleSlot]) -> None:
        for slot in grid:
            if slot.activity_id is None:
                continue
            activity = self.resources.activity_by_id[slot.activity_id]
            required = activity.required_staff_count
            assigned = len(set(slot.staff_ids))
            if required <= 0 or assigned >= required:
                continue
            ratio = (required - assigned) / required
            severity = ConflictSeverity.WARNING if ratio >= self.warning_ratio else ConflictSeverity.INFO
            self._add(
                ConflictType.UNDERSTAFFED,
                severity,
                f"{activity.name} for {self._group_name(slot.group_id)} has {assigned} of {required} staff",
                [slot.id],
                description=f"{slot.date} {format_hhmm(slot.start_time)}: short by {required - assigned}",
                suggestion="Assign more staff or pick an activity needing fewer",
            )

    def _detect_mismatches(self, grid: list[ScheduleSlot]) -> None:
        """Age and capacity mismatches between a slot's group, activity and facility."""
        for slot in grid:
            group = self.resources.group_by_id.get(slot.group_id)
            if group is None or slot.activity_id is None:
                continue
            activity = self.resources.activity_by_id[slot.activity_id]

            if not activity.accepts_group(group):
                self._add(
                    ConflictType.AGE_MISMATCH,
                    ConflictSeverity.WARNING,
                    f"{activity.name} does not suit {group.name} (ages {group.age_label})",
                    [slot.id],
                    description=f"Activity ages {activity.min_age}-{activity.max_age}",
                    suggestion="Pick an age-appropriate activity",
                )

            size = group.current_count
            problems = []
            if activity.max_participants is not None and size > activity.max_participants:
                problems.append(f"{activity.name} allows at most {activity.max_participants}")
            if activity.min_participants is not None and size < activity.min_participants:
                problems.append(f"{activity.name} needs at least {activity.min_participants}")
            if slot.facility_id is not None:
                facility = self.resources.facility_by_id[slot.facility_id]
                if facility.capacity is not None and size > facility.capacity:
                    problems.append(f"{facility.name} holds {facility.capacity}")
            if problems:
                self._add(
                    ConflictType.CAPACITY_EXCEEDED,
                    ConflictSeverity.WARNING,
                    f"{group.name} ({size} campers) does not fit {activity.name}",
                    [slot.id],
                    description="; ".join(problems),
                    suggestion="Split the group or choose a larger facility",
                )

    # ------------------------------------------------------------------
    # Advisories
    # ------------------------------------------------------------------

    def _detect_advisories(self, grid: list[ScheduleSlot]) -> None:
        empty: dict[tuple[str, date], list[str]] = defaultdict(list)
        repeats: Counter[tuple[str, date, str]] = Counter()
        repeat_slots: dict[tuple[str, date, str], list[str]] = defaultdict(list)
        used_facilities: set[str] = set()

        for slot in grid:
            if slot.activity_id is None:
                if not slot.is_locked:
                    empty[(slot.group_id, slot.date)].append(slot.id)
                continue
            key = (slot.group_id, slot.date, slot.activity_id)
            repeats[key] += 1
            repeat_slots[key].append(slot.id)
            if slot.facility_id:
                used_facilities.add(slot.facility_id)

        for (group_id, day), slot_ids in sorted(empty.items()):
            self._add(
                ConflictType.MISSING_ACTIVITY,
                ConflictSeverity.INFO,
                f"{self._group_name(group_id)} has {len(slot_ids)} empty slot(s) on {day}",
                slot_ids,
                suggestion="Run auto-schedule or assign activities manually",
            )

        for (group_id, day, activity_id), count in sorted(repeats.items()):
            if count > self.max_repeats:
                self._add(
                    ConflictType.LOW_VARIETY,
                    ConflictSeverity.INFO,
                    f"{self._group_name(group_id)} does {self._activity_name(activity_id)} {count} times on {day}",
                    repeat_slots[(group_id, day, activity_id)],
                    suggestion="Swap some repeats for other activities",
                )

        if used_facilities:
            for facility in sorted(self.resources.active_facilities, key=lambda f: (f.name, f.id)):
                if facility.id not in used_facilities:
                    self._add(
                        ConflictType.UNUSED_FACILITY,
                        ConflictSeverity.INFO,
                        f"{facility.name} is not used anywhere in the schedule",
                        [],
                        discriminator=facility.id,
                    )


def detect_conflicts(
    grid: list[ScheduleSlot],
    activities: list[Activity],
    facilities: list[Facility],
    constraints: list[Constraint],
    groups: list[Group] | None = None,
    staff: list[Staff] | None = None,
    weather: WeatherInput = None,
    config: ConfigLoader | None = None,
) -> list[Conflict]:
    """Detect every conflict in ``grid``. Pure; safe to call after each edit."""
    detector = ConflictDetector(activities, facilities, constraints, groups, staff, weather, config)
    return detector.detect_conflicts(grid)


def get_slot_conflicts(conflicts: list[Conflict], slot_id: str) -> list[Conflict]:
    return [c for c in conflicts if slot_id in c.affected_slot_ids]


def summarize_conflicts(conflicts: list[Conflict]) -> ConflictSummary:
    by_type = Counter(c.type.value for c in conflicts)
    return ConflictSummary(
        total=len(conflicts),
        critical=sum(1 for c in conflicts if c.severity == ConflictSeverity.CRITICAL),
        warning=sum(1 for c in conflicts if c.severity == ConflictSeverity.WARNING),
        info=sum(1 for c in conflicts if c.severity == ConflictSeverity.INFO),
        by_type=dict(sorted(by_type.items())),
    )


def is_schedule_valid(conflicts: list[Conflict]) -> bool:
    """A schedule is operationally valid when nothing is critical."""
    return not any(c.severity == ConflictSeverity.CRITICAL for c in conflicts)
