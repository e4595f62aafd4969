"""
Pydantic schemas for schedule endpoints.

Requests carry the full snapshot the core needs; the API holds no state of its own.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from scheduling.conflict_detector import ConflictSummary
from scheduling.models import (
    Activity,
    Conflict,
    Constraint,
    DayTemplate,
    Facility,
    Group,
    ScheduleSlot,
    Session,
    Staff,
    WeatherAssignment,
)
from scheduling.solver import SolverInput


class GridRequest(BaseModel):
    """Request to build (or rebuild) a session's slot grid."""

    session: Session
    groups: list[Group]
    template: DayTemplate | None = None
    templates_by_date: dict[date, DayTemplate | None] | None = None
    existing_slots: list[ScheduleSlot] = Field(default_factory=list)


class GridResponse(BaseModel):
    slots: list[ScheduleSlot]
    count: int


class SolveRequest(SolverInput):
    """Solver snapshot plus response options."""

    include_analysis: bool = False


class ConflictsRequest(BaseModel):
    slots: list[ScheduleSlot]
    activities: list[Activity]
    facilities: list[Facility] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    groups: list[Group] | None = None
    staff: list[Staff] | None = None
    weather: list[WeatherAssignment] = Field(default_factory=list)


class ConflictsResponse(BaseModel):
    conflicts: list[Conflict]
    summary: ConflictSummary
    is_valid: bool


class FeasibilityRequest(BaseModel):
    session: Session
    groups: list[Group]
    activities: list[Activity]
    facilities: list[Facility] = Field(default_factory=list)
    template: DayTemplate | None = None
    constraints: list[Constraint] = Field(default_factory=list)


class AnalyticsRequest(BaseModel):
    session: Session
    groups: list[Group]
    activities: list[Activity]
    facilities: list[Facility] = Field(default_factory=list)
    slots: list[ScheduleSlot]
    staff: list[Staff] = Field(default_factory=list)


class ViewRequest(BaseModel):
    """Grid snapshot plus the selector for group/day/facility views."""

    slots: list[ScheduleSlot]
    groups: list[Group]
    activities: list[Activity]
    facilities: list[Facility] = Field(default_factory=list)
    staff: list[Staff] = Field(default_factory=list)
    group_id: str | None = None
    day: date | None = None
    facility_id: str | None = None


class SlotOptionsRequest(BaseModel):
    """Grid snapshot plus the slot a planner is editing."""

    slot_id: str
    slots: list[ScheduleSlot]
    activities: list[Activity]
    groups: list[Group]
    facilities: list[Facility] = Field(default_factory=list)
    staff: list[Staff] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    weather: list[WeatherAssignment] = Field(default_factory=list)


class SlotOptionsResponse(BaseModel):
    slot_id: str
    activities: list[Activity]
    staff: list[Staff]


class StaffAvailabilityRequest(BaseModel):
    staff: list[Staff]
    slots: list[ScheduleSlot]


class StaffAvailabilityResponse(BaseModel):
    """Per staff id, free (true) or busy in each ``YYYY-MM-DD_HH:MM`` window."""

    availability: dict[str, dict[str, bool]]
