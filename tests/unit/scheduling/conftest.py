"""
Shared factories for scheduling unit tests.

Every factory returns a fully valid record with sensible defaults so a test only
spells out the fields it is about.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any

from scheduling.grid_index import GridIndex
from scheduling.models import (
    Activity,
    Constraint,
    ConstraintSeverity,
    ConstraintTargets,
    DayTemplate,
    DayTemplateSlot,
    Facility,
    Group,
    ScheduleSlot,
    SchedulingResources,
    Session,
    SessionStatus,
    SlotType,
    Staff,
)

DAY1 = date(2024, 7, 1)
DAY2 = date(2024, 7, 2)
DAY3 = date(2024, 7, 3)
SESSION_ID = "sess-1"


def t(value: str) -> time:
    """Shorthand for HH:MM literals."""
    return time.fromisoformat(value)


def create_session(
    session_id: str = SESSION_ID,
    start: date = DAY1,
    end: date = DAY3,
    status: SessionStatus = SessionStatus.PLANNING,
) -> Session:
    return Session(
        id=session_id, organization_id="org-1", name="Summer 1", start_date=start, end_date=end, status=status
    )


def create_group(
    group_id: str = "g1",
    name: str | None = None,
    age_min: int | None = 8,
    age_max: int | None = 10,
    current_count: int = 12,
    sort_order: int = 0,
    session_id: str = SESSION_ID,
    **kwargs: Any,
) -> Group:
    return Group(
        id=group_id,
        session_id=session_id,
        name=name or group_id.upper(),
        age_min=age_min,
        age_max=age_max,
        current_count=current_count,
        sort_order=sort_order,
        **kwargs,
    )


def create_activity(
    activity_id: str = "a1",
    name: str | None = None,
    duration_minutes: int = 60,
    required_staff_count: int = 0,
    **kwargs: Any,
) -> Activity:
    return Activity(
        id=activity_id,
        organization_id="org-1",
        name=name or activity_id.capitalize(),
        duration_minutes=duration_minutes,
        required_staff_count=required_staff_count,
        **kwargs,
    )


def create_facility(facility_id: str = "f1", name: str | None = None, **kwargs: Any) -> Facility:
    return Facility(id=facility_id, organization_id="org-1", name=name or facility_id.upper(), **kwargs)


def create_staff(staff_id: str = "s1", first_name: str | None = None, **kwargs: Any) -> Staff:
    return Staff(id=staff_id, organization_id="org-1", first_name=first_name or staff_id.upper(), **kwargs)


def create_template(
    times: list[tuple[str, str]] | None = None,
    template_id: str = "tpl-1",
    extra_slots: list[DayTemplateSlot] | None = None,
) -> DayTemplate:
    """Template with one activity slot per (start, end) pair."""
    times = times if times is not None else [("09:00", "10:00")]
    slots = [
        DayTemplateSlot(id=f"{template_id}-s{i}", name=f"Block {i}", start_time=t(start), end_time=t(end))
        for i, (start, end) in enumerate(times)
    ]
    slots.extend(extra_slots or [])
    return DayTemplate(id=template_id, organization_id="org-1", name="Standard day", slots=slots)


def create_meal_slot(slot_id: str = "meal", start: str = "12:00", end: str = "13:00") -> DayTemplateSlot:
    return DayTemplateSlot(
        id=slot_id, name="Lunch", start_time=t(start), end_time=t(end), slot_type=SlotType.MEAL, is_schedulable=False
    )


def create_slot(
    slot_id: str = "slot-1",
    group_id: str = "g1",
    day: date = DAY1,
    start: str = "09:00",
    end: str = "10:00",
    activity_id: str | None = None,
    facility_id: str | None = None,
    staff_ids: list[str] | None = None,
    **kwargs: Any,
) -> ScheduleSlot:
    return ScheduleSlot(
        id=slot_id,
        session_id=kwargs.pop("session_id", SESSION_ID),
        group_id=group_id,
        date=day,
        start_time=t(start),
        end_time=t(end),
        activity_id=activity_id,
        facility_id=facility_id,
        staff_ids=staff_ids or [],
        **kwargs,
    )


def create_constraint(
    params: Any,
    constraint_id: str = "c1",
    severity: ConstraintSeverity = ConstraintSeverity.HARD,
    activity_ids: list[str] | None = None,
    facility_ids: list[str] | None = None,
    group_ids: list[str] | None = None,
    staff_ids: list[str] | None = None,
    **kwargs: Any,
) -> Constraint:
    return Constraint(
        id=constraint_id,
        organization_id="org-1",
        name=kwargs.pop("name", f"Rule {constraint_id}"),
        severity=severity,
        targets=ConstraintTargets(
            activity_ids=activity_ids or [],
            facility_ids=facility_ids or [],
            group_ids=group_ids or [],
            staff_ids=staff_ids or [],
        ),
        params=params,
        **kwargs,
    )


def build_resources(
    activities: list[Activity] | None = None,
    facilities: list[Facility] | None = None,
    groups: list[Group] | None = None,
    staff: list[Staff] | None = None,
) -> SchedulingResources:
    return SchedulingResources(
        activities=activities or [],
        facilities=facilities or [],
        groups=groups if groups is not None else [create_group()],
        staff=staff or [],
    )


def build_grid(*slots: ScheduleSlot) -> GridIndex:
    return GridIndex(slots)
