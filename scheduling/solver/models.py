"""
Solver input/output models.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from scheduling.constraints.base import Violation
from scheduling.models import (
    Activity,
    Constraint,
    Facility,
    Group,
    ScheduleSlot,
    SchedulingContext,
    SchedulingResources,
    Staff,
    WeatherAssignment,
)


class OptimizationLevel(str, Enum):
    FAST = "fast"
    BALANCED = "balanced"
    THOROUGH = "thorough"


class SolverStatus(str, Enum):
    COMPLETED = "completed"  # Every empty slot was filled
    PARTIAL = "partial"  # Some filled, some left empty
    FAILED = "failed"  # Empty slots existed but none could be filled
    INFEASIBLE = "infeasible"  # Grid is malformed; nothing was attempted


class SolverInput(BaseModel):
    """Snapshot handed to the solver. Everything is loaded up front."""

    context: SchedulingContext | None = None
    slots: list[ScheduleSlot]
    activities: list[Activity] = Field(default_factory=list)
    facilities: list[Facility] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
    staff: list[Staff] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    weather: list[WeatherAssignment] = Field(default_factory=list)
    optimization_level: OptimizationLevel | None = None  # None = configured default
    disabled_constraint_kinds: list[str] = Field(default_factory=list)

    def resources(self) -> SchedulingResources:
        return SchedulingResources(
            activities=list(self.activities),
            facilities=list(self.facilities),
            groups=list(self.groups),
            staff=list(self.staff),
        )


class SlotViolation(BaseModel):
    """A soft violation accepted while filling a slot."""

    slot_id: str
    violation: Violation


class SolverOutput(BaseModel):
    """Full next-state grid plus a summary of what the run did."""

    slots: list[ScheduleSlot]
    status: SolverStatus
    filled_slot_ids: list[str] = Field(default_factory=list)
    unfillable_slot_ids: list[str] = Field(default_factory=list)
    understaffed_slot_ids: list[str] = Field(default_factory=list)
    soft_violations: list[SlotViolation] = Field(default_factory=list)
    infeasible_reasons: list[str] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    trace: dict[str, Any] = Field(default_factory=dict)
    analysis: dict[str, Any] | None = None

    @property
    def unfillable_count(self) -> int:
        return len(self.unfillable_slot_ids)

    @property
    def filled_count(self) -> int:
        return len(self.filled_slot_ids)
