"""
Staff assignment and workload accounting.

Staff are matched on specialties against activity tags, never double-booked,
kept under a daily hours cap, and balanced towards whoever has worked least.
Every pick is re-checked through the constraint engine so staff availability
rules apply.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from scheduling.config import ConfigLoader
from scheduling.constraints import ConstraintEngine
from scheduling.grid_index import GridIndex
from scheduling.models import Activity, Constraint, ScheduleSlot, SchedulingResources, Staff
from scheduling.time_utils import format_hhmm, ranges_overlap

logger = logging.getLogger(__name__)


class StaffWorkload(BaseModel):
    staff_id: str
    staff_name: str
    total_slots: int = 0
    slots_by_day: dict[date, int] = Field(default_factory=dict)
    slots_by_activity: dict[str, int] = Field(default_factory=dict)
    hours_per_day: dict[date, float] = Field(default_factory=dict)
    total_hours: float = 0.0


class StaffAssignment(BaseModel):
    slot_id: str
    staff_id: str
    role: Literal["lead", "assistant"]


class AutoAssignResult(BaseModel):
    slots: list[ScheduleSlot]
    assignments: list[StaffAssignment] = Field(default_factory=list)
    understaffed_slot_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def _slot_hours(slot: ScheduleSlot) -> float:
    return slot.duration_minutes / 60


def availability_key(slot: ScheduleSlot) -> str:
    """Matrix key for a slot's time window: ``YYYY-MM-DD_HH:MM``."""
    return f"{slot.date.isoformat()}_{format_hhmm(slot.start_time)}"


def is_qualified(member: Staff, activity: Activity) -> bool:
    """Specialties must intersect the activity's tags; untagged activities take anyone."""
    if not activity.tags:
        return True
    tags = {t.lower() for t in activity.tags}
    return any(s.lower() in tags for s in member.specialties)


class StaffMinutes:
    """Running minutes worked per staff member, kept in step with the grid by slot id."""

    def __init__(self, slots: Iterable[ScheduleSlot] = ()):
        self.total: dict[str, int] = defaultdict(int)
        self.per_day: dict[tuple[str, date], int] = defaultdict(int)
        self._booked: dict[str, ScheduleSlot] = {}
        for slot in slots:
            self.put(slot)

    def _apply(self, slot: ScheduleSlot, sign: int) -> None:
        minutes = sign * slot.duration_minutes
        for staff_id in slot.staff_ids:
            self.total[staff_id] += minutes
            self.per_day[(staff_id, slot.date)] += minutes

    def put(self, slot: ScheduleSlot) -> None:
        """Record ``slot``, replacing whatever was booked under its id."""
        self.remove(slot.id)
        if slot.staff_ids:
            self._apply(slot, 1)
            self._booked[slot.id] = slot

    def remove(self, slot_id: str) -> None:
        previous = self._booked.pop(slot_id, None)
        if previous is not None:
            self._apply(previous, -1)

    def load(self, staff_id: str, day: date, exclude_id: str | None = None) -> tuple[int, int]:
        """(total, on ``day``) minutes for one staff member, ignoring slot ``exclude_id``."""
        total = self.total[staff_id]
        on_day = self.per_day[(staff_id, day)]
        previous = self._booked.get(exclude_id) if exclude_id else None
        if previous is not None and staff_id in previous.staff_ids:
            total -= previous.duration_minutes
            if previous.date == day:
                on_day -= previous.duration_minutes
        return total, on_day


class StaffAssigner:
    """Picks staff for a candidate slot against the current grid.

    Worked minutes are tracked incrementally; callers that change the grid must
    report each written slot through ``record``.
    """

    def __init__(
        self,
        resources: SchedulingResources,
        engine: ConstraintEngine,
        config: ConfigLoader,
        slots: Iterable[ScheduleSlot] = (),
    ):
        self.resources = resources
        self.engine = engine
        self.max_minutes_per_day = round(config.get_float("solver.staff.max_hours_per_day") * 60)
        self.minutes = StaffMinutes(slots)

    def record(self, slot: ScheduleSlot) -> None:
        self.minutes.put(slot)

    def available(self, candidate: ScheduleSlot, activity: Activity | None, grid: GridIndex) -> list[Staff]:
        """Staff who could join ``candidate``, least loaded first.

        Active, not already on the slot, free at that time, qualified for the
        activity (when one is set) and under the daily cap.
        """
        busy = {
            staff_id
            for slot in grid.overlapping(candidate.date, candidate.start_time, candidate.end_time, candidate.id)
            for staff_id in slot.staff_ids
        }
        slot_minutes = candidate.duration_minutes
        loads = {
            member.id: self.minutes.load(member.id, candidate.date, candidate.id)
            for member in self.resources.active_staff
        }

        pool = [
            member
            for member in self.resources.active_staff
            if member.id not in candidate.staff_ids
            and member.id not in busy
            and (activity is None or is_qualified(member, activity))
            and loads[member.id][1] + slot_minutes <= self.max_minutes_per_day
        ]
        pool.sort(key=lambda m: (*loads[m.id], m.name, m.id))
        return pool

    def allows(self, candidate: ScheduleSlot, staff_ids: list[str], grid: GridIndex) -> bool:
        """Whether the constraint engine accepts ``candidate`` staffed by ``staff_ids``."""
        trial = candidate.model_copy(update={"staff_ids": staff_ids})
        return self.engine.evaluate(trial, grid).is_allowed

    def assign(self, candidate: ScheduleSlot, activity: Activity, grid: GridIndex) -> tuple[list[str], bool]:
        """Top up ``candidate.staff_ids`` to the activity's requirement.

        Returns:
            (staff ids, understaffed flag). Staff already on the slot are kept.
        """
        chosen = list(candidate.staff_ids)
        required = activity.required_staff_count
        if len(chosen) >= required:
            return chosen, False

        for member in self.available(candidate, activity, grid):
            if len(chosen) >= required:
                break
            if self.allows(candidate, [*chosen, member.id], grid):
                chosen.append(member.id)

        understaffed = len(chosen) < required
        if understaffed:
            logger.debug(f"Slot {candidate.id}: {activity.name} needs {required} staff, found {len(chosen)}")
        return chosen, understaffed


def auto_assign_staff(
    slots: list[ScheduleSlot],
    resources: SchedulingResources,
    constraints: Iterable[Constraint] = (),
    config: ConfigLoader | None = None,
) -> AutoAssignResult:
    """Staff every filled slot that is short of its activity's requirement.

    Slots are handled in date/time order. Returns a new grid; the input is not modified.
    """
    config = config or ConfigLoader.get_instance()
    engine = ConstraintEngine(constraints, resources, config=config)
    assigner = StaffAssigner(resources, engine, config, slots)
    grid = GridIndex(slots)

    result = AutoAssignResult(slots=[])
    ordered = sorted(slots, key=lambda s: (s.date, s.start_time, s.group_id, s.id))
    for slot in ordered:
        if slot.activity_id is None:
            continue
        activity = resources.activity_by_id.get(slot.activity_id)
        if activity is None or len(slot.staff_ids) >= activity.required_staff_count:
            continue

        before = set(slot.staff_ids)
        staff_ids, understaffed = assigner.assign(slot, activity, grid)
        updated = slot.model_copy(update={"staff_ids": staff_ids})
        grid.put(updated)
        assigner.record(updated)

        for position, staff_id in enumerate(staff_ids):
            if staff_id in before:
                continue
            role: Literal["lead", "assistant"] = "lead" if position == 0 else "assistant"
            result.assignments.append(StaffAssignment(slot_id=slot.id, staff_id=staff_id, role=role))

        if understaffed:
            result.understaffed_slot_ids.append(slot.id)
            result.warnings.append(
                f"{slot.date} {slot.start_time:%H:%M}: {activity.name} needs "
                f"{activity.required_staff_count} staff, assigned {len(staff_ids)}"
            )

    result.slots = [grid.get(s.id) or s for s in slots]
    return result


def suggest_staff(
    slot: ScheduleSlot,
    slots: Iterable[ScheduleSlot],
    resources: SchedulingResources,
    constraints: Iterable[Constraint] = (),
    config: ConfigLoader | None = None,
) -> list[Staff]:
    """Staff who could be added to ``slot`` as the grid stands, least loaded first.

    Same filters the solver uses: free at that time, qualified for the slot's
    activity, under the daily hours cap, and accepted by the constraint engine.
    """
    config = config or ConfigLoader.get_instance()
    grid = GridIndex(slots)
    assigner = StaffAssigner(resources, ConstraintEngine(constraints, resources, config=config), config, grid.slots)
    activity = resources.activity_by_id.get(slot.activity_id) if slot.activity_id else None
    return [
        member
        for member in assigner.available(slot, activity, grid)
        if assigner.allows(slot, [*slot.staff_ids, member.id], grid)
    ]


def staff_availability_matrix(staff: Iterable[Staff], slots: Iterable[ScheduleSlot]) -> dict[str, dict[str, bool]]:
    """Per staff id, whether they are free in each time window of the grid.

    Windows are keyed by ``availability_key``. A member is busy in a window when
    any slot they staff overlaps it on the same day.
    """
    slots = list(slots)
    windows: dict[str, ScheduleSlot] = {}
    for slot in sorted(slots, key=lambda s: (s.date, s.start_time, s.end_time)):
        windows.setdefault(availability_key(slot), slot)

    matrix: dict[str, dict[str, bool]] = {}
    for member in staff:
        worked = [s for s in slots if member.id in s.staff_ids]
        matrix[member.id] = {
            key: not any(
                s.date == window.date and ranges_overlap(s.start_time, s.end_time, window.start_time, window.end_time)
                for s in worked
            )
            for key, window in windows.items()
        }
    return matrix


def calculate_staff_workload(
    member: Staff,
    slots: Iterable[ScheduleSlot],
    activities: Iterable[Activity],
) -> StaffWorkload:
    """Slots and hours worked by one staff member, per day and per activity."""
    activity_names = {a.id: a.name for a in activities}
    workload = StaffWorkload(staff_id=member.id, staff_name=member.name)

    for slot in slots:
        if member.id not in slot.staff_ids:
            continue
        hours = _slot_hours(slot)
        workload.total_slots += 1
        workload.total_hours += hours
        workload.slots_by_day[slot.date] = workload.slots_by_day.get(slot.date, 0) + 1
        workload.hours_per_day[slot.date] = workload.hours_per_day.get(slot.date, 0.0) + hours
        if slot.activity_id:
            name = activity_names.get(slot.activity_id, slot.activity_id)
            workload.slots_by_activity[name] = workload.slots_by_activity.get(name, 0) + 1

    return workload
