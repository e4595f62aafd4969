"""
In-memory index over a slot grid.

Shared by the constraint engine, solver, conflict detector and weather engine so
each lookup (by id, by group/day, by date) is built once per snapshot.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, time

from .models import Activity, Facility, Group, ScheduleSlot, SchedulingResources
from .time_utils import ranges_overlap


def slot_sort_key(slot: ScheduleSlot, groups: dict[str, Group]) -> tuple:
    """Deterministic grid order: date, start time, group sort order, group name, slot id."""
    group = groups.get(slot.group_id)
    sort_order = group.sort_order if group else 0
    group_name = group.name if group else ""
    return (slot.date, slot.start_time, sort_order, group_name, slot.group_id, slot.id)


class GridIndex:
    """Lookup structure over a list of slots.

    Mutations (``put``/``remove``) keep every view consistent, which lets the solver
    update the index as it commits assignments.
    """

    def __init__(self, slots: Iterable[ScheduleSlot] = ()):
        self._by_id: dict[str, ScheduleSlot] = {}
        self._by_group_date: dict[tuple[str, date], dict[str, ScheduleSlot]] = defaultdict(dict)
        self._by_date: dict[date, dict[str, ScheduleSlot]] = defaultdict(dict)
        for slot in slots:
            self.put(slot)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, slot_id: object) -> bool:
        return slot_id in self._by_id

    @property
    def slots(self) -> list[ScheduleSlot]:
        return list(self._by_id.values())

    def get(self, slot_id: str) -> ScheduleSlot | None:
        return self._by_id.get(slot_id)

    def put(self, slot: ScheduleSlot) -> None:
        """Insert or replace a slot (matched by id)."""
        if slot.id in self._by_id:
            self.remove(slot.id)
        self._by_id[slot.id] = slot
        self._by_group_date[(slot.group_id, slot.date)][slot.id] = slot
        self._by_date[slot.date][slot.id] = slot

    def remove(self, slot_id: str) -> None:
        slot = self._by_id.pop(slot_id, None)
        if slot is None:
            return
        self._by_group_date[(slot.group_id, slot.date)].pop(slot_id, None)
        self._by_date[slot.date].pop(slot_id, None)

    def group_day(self, group_id: str, day: date, exclude_id: str | None = None) -> list[ScheduleSlot]:
        """Slots of one group on one date, ordered by start time."""
        slots = [s for s in self._by_group_date.get((group_id, day), {}).values() if s.id != exclude_id]
        return sorted(slots, key=lambda s: (s.start_time, s.end_time, s.id))

    def day(self, day: date, exclude_id: str | None = None) -> list[ScheduleSlot]:
        slots = [s for s in self._by_date.get(day, {}).values() if s.id != exclude_id]
        return sorted(slots, key=lambda s: (s.start_time, s.group_id, s.id))

    def overlapping(
        self, day: date, start: time, end: time, exclude_id: str | None = None
    ) -> list[ScheduleSlot]:
        """Every slot (any group) on ``day`` whose time range overlaps [start, end)."""
        return [s for s in self.day(day, exclude_id) if ranges_overlap(start, end, s.start_time, s.end_time)]

    def previous_in_day(self, slot: ScheduleSlot) -> ScheduleSlot | None:
        """The group's slot immediately before ``slot`` on the same date, if any."""
        earlier = [s for s in self.group_day(slot.group_id, slot.date, slot.id) if s.start_time < slot.start_time]
        return earlier[-1] if earlier else None

    def next_in_day(self, slot: ScheduleSlot) -> ScheduleSlot | None:
        """The group's slot immediately after ``slot`` on the same date, if any."""
        later = [s for s in self.group_day(slot.group_id, slot.date, slot.id) if s.start_time > slot.start_time]
        return later[0] if later else None

    def dates(self) -> list[date]:
        return sorted(d for d, slots in self._by_date.items() if slots)


def find_broken_references(
    slots: Iterable[ScheduleSlot],
    resources: SchedulingResources,
    session_id: str | None = None,
    check_groups: bool = True,
    check_staff: bool = True,
) -> list[str]:
    """Describe every slot pointing at a missing or deleted record.

    Returns one human-readable reason per broken reference, in slot order.
    ``check_groups``/``check_staff`` are off when the caller did not load those rows.
    """
    reasons: list[str] = []
    for slot in slots:
        if session_id is not None and slot.session_id != session_id:
            reasons.append(f"Slot {slot.id} belongs to session {slot.session_id}, not {session_id}")

        if check_groups:
            group = resources.group_by_id.get(slot.group_id)
            if group is None:
                reasons.append(f"Slot {slot.id} references missing group {slot.group_id}")
            elif group.is_deleted:
                reasons.append(f"Slot {slot.id} references deleted group {group.name}")

        if slot.activity_id is not None:
            activity = resources.activity_by_id.get(slot.activity_id)
            if activity is None:
                reasons.append(f"Slot {slot.id} references missing activity {slot.activity_id}")
            elif activity.is_deleted:
                reasons.append(f"Slot {slot.id} references deleted activity {activity.name}")

        if slot.facility_id is not None:
            facility = resources.facility_by_id.get(slot.facility_id)
            if facility is None:
                reasons.append(f"Slot {slot.id} references missing facility {slot.facility_id}")
            elif facility.is_deleted:
                reasons.append(f"Slot {slot.id} references deleted facility {facility.name}")

        for staff_id in slot.staff_ids if check_staff else ():
            member = resources.staff_by_id.get(staff_id)
            if member is None:
                reasons.append(f"Slot {slot.id} references missing staff member {staff_id}")
            elif member.deleted_at is not None:
                reasons.append(f"Slot {slot.id} references deleted staff member {member.name}")
    return reasons


def facility_has_room(
    grid: GridIndex, resources: SchedulingResources, slot: ScheduleSlot, facility: Facility, activity: Activity
) -> bool:
    """Built-in double-booking guard, independent of configured constraints.

    Other groups overlapping ``slot`` in ``facility`` may only be joined when every
    activity involved allows sharing and the facility's concurrency limit has room.
    """
    occupants = [
        s
        for s in grid.overlapping(slot.date, slot.start_time, slot.end_time, exclude_id=slot.id)
        if s.facility_id == facility.id and s.group_id != slot.group_id
    ]
    if not occupants:
        return True

    def shares(other: ScheduleSlot) -> bool:
        other_activity = resources.activity_by_id.get(other.activity_id or "")
        return other_activity is not None and other_activity.allows_shared_facility

    shareable = activity.allows_shared_facility and all(shares(s) for s in occupants)
    allowance = facility.max_concurrent_groups if shareable else 1
    return len({s.group_id for s in occupants}) + 1 <= allowance
