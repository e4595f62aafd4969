"""
Pydantic schemas for weather endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from scheduling.models import (
    Activity,
    Constraint,
    Facility,
    Group,
    ScheduleSlot,
    Substitution,
    WeatherAssignment,
)
from scheduling.weather import WeatherSummary


class WeatherImpactRequest(BaseModel):
    slots: list[ScheduleSlot]
    activities: list[Activity]
    constraints: list[Constraint] = Field(default_factory=list)
    weather: list[WeatherAssignment]
    facilities: list[Facility] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)


class WeatherImpactResponse(BaseModel):
    affected_slot_ids: list[str]
    warnings: list[str]
    substitutions: list[Substitution]
    summary: WeatherSummary


class WeatherApplyRequest(BaseModel):
    """Apply a selection of previously proposed substitutions."""

    session_id: str
    slots: list[ScheduleSlot]
    substitutions: list[Substitution]
    selected_slot_ids: list[str] | None = None  # None = every proposal
    activities: list[Activity] | None = None


class WeatherApplyResponse(BaseModel):
    slots: list[ScheduleSlot]
    applied_count: int
