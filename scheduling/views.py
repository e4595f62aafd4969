"""Read-only grid projections used by export and display collaborators."""

from __future__ import annotations

from collections import defaultdict
from datetime import date

from pydantic import BaseModel, Field

from .grid_index import slot_sort_key
from .models import Activity, Facility, Group, ScheduleSlot, Staff
from .time_utils import format_hhmm


class SlotView(BaseModel):
    """A slot with display names resolved."""

    slot_id: str
    date: date
    start_time: str
    end_time: str
    group_id: str
    group_name: str
    activity_id: str | None = None
    activity_name: str | None = None
    facility_id: str | None = None
    facility_name: str | None = None
    staff_names: list[str] = Field(default_factory=list)
    notes: str | None = None
    is_locked: bool = False
    substitution_reason: str | None = None


class DayColumn(BaseModel):
    group_id: str
    group_name: str
    slots: list[SlotView] = Field(default_factory=list)


class MasterDay(BaseModel):
    date: date
    groups: list[DayColumn] = Field(default_factory=list)


class GridViews:
    """Builds projections over one grid snapshot."""

    def __init__(
        self,
        slots: list[ScheduleSlot],
        groups: list[Group],
        activities: list[Activity],
        facilities: list[Facility],
        staff: list[Staff] | None = None,
    ):
        self.groups = {g.id: g for g in groups}
        self.activities = {a.id: a for a in activities}
        self.facilities = {f.id: f for f in facilities}
        self.staff = {s.id: s for s in staff or []}
        self.slots = sorted(slots, key=lambda s: slot_sort_key(s, self.groups))

    def to_view(self, slot: ScheduleSlot) -> SlotView:
        group = self.groups.get(slot.group_id)
        activity = self.activities.get(slot.activity_id) if slot.activity_id else None
        facility = self.facilities.get(slot.facility_id) if slot.facility_id else None
        return SlotView(
            slot_id=slot.id,
            date=slot.date,
            start_time=format_hhmm(slot.start_time),
            end_time=format_hhmm(slot.end_time),
            group_id=slot.group_id,
            group_name=group.name if group else slot.group_id,
            activity_id=slot.activity_id,
            activity_name=activity.name if activity else None,
            facility_id=slot.facility_id,
            facility_name=facility.name if facility else None,
            staff_names=[self.staff[s].name if s in self.staff else s for s in slot.staff_ids],
            notes=slot.notes,
            is_locked=slot.is_locked,
            substitution_reason=slot.substitution_reason,
        )

    def master(self) -> list[MasterDay]:
        """Date -> group columns -> slots, groups in display order."""
        days: dict[date, dict[str, list[SlotView]]] = defaultdict(lambda: defaultdict(list))
        for slot in self.slots:
            days[slot.date][slot.group_id].append(self.to_view(slot))

        result = []
        for day in sorted(days):
            columns = days[day]
            group_ids = sorted(
                columns,
                key=lambda g: (self.groups[g].sort_order, self.groups[g].name, g) if g in self.groups else (0, "", g),
            )
            result.append(
                MasterDay(
                    date=day,
                    groups=[
                        DayColumn(group_id=g, group_name=columns[g][0].group_name, slots=columns[g]) for g in group_ids
                    ],
                )
            )
        return result

    def for_group(self, group_id: str) -> list[SlotView]:
        return [self.to_view(s) for s in self.slots if s.group_id == group_id]

    def for_day(self, day: date) -> list[SlotView]:
        return [self.to_view(s) for s in self.slots if s.date == day]

    def for_facility(self, facility_id: str) -> list[SlotView]:
        """Bookings of one facility in time order."""
        return [self.to_view(s) for s in self.slots if s.facility_id == facility_id]
