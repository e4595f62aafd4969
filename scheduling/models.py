"""
Domain models for the scheduling core.

Rows arrive fully loaded from the storage collaborator; nothing here performs I/O.
Times are local wall-clock values serialized as HH:MM, dates are plain calendar dates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_serializer, model_validator

from .time_utils import format_hhmm, minutes_between

# =============================================================================
# Enumerations
# =============================================================================


class SessionStatus(str, Enum):
    DRAFT = "draft"
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    MIXED = "mixed"


class SlotType(str, Enum):
    ACTIVITY = "activity"
    MEAL = "meal"
    BREAK = "break"
    REST = "rest"
    FREE = "free"
    ASSEMBLY = "assembly"
    TRANSITION = "transition"


class WeatherCondition(str, Enum):
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    VERY_HOT = "very_hot"
    VERY_COLD = "very_cold"


class WeatherSource(str, Enum):
    MANUAL = "manual"
    FORECAST = "forecast"


class ConstraintSeverity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


class ConflictSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ConflictType(str, Enum):
    DOUBLE_BOOKING = "double_booking"
    DUPLICATE_SLOT = "duplicate_slot"
    FACILITY_DOUBLE_BOOKING = "facility_double_booking"
    STAFF_DOUBLE_BOOKING = "staff_double_booking"
    CONSTRAINT_VIOLATION = "constraint_violation"
    UNDERSTAFFED = "understaffed"
    AGE_MISMATCH = "age_mismatch"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    MISSING_ACTIVITY = "missing_activity"
    LOW_VARIETY = "low_variety"
    UNUSED_FACILITY = "unused_facility"


# Allowed forward transitions; cancelled is reachable from any non-terminal state
_SESSION_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.DRAFT: {SessionStatus.PLANNING, SessionStatus.CANCELLED},
    SessionStatus.PLANNING: {SessionStatus.ACTIVE, SessionStatus.CANCELLED},
    SessionStatus.ACTIVE: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.CANCELLED: set(),
}


# =============================================================================
# Entities
# =============================================================================


class Session(BaseModel):
    """A camp session spanning a calendar date range."""

    id: str
    organization_id: str = ""
    name: str
    start_date: date
    end_date: date
    status: SessionStatus = SessionStatus.DRAFT
    max_campers: int | None = None
    current_campers: int = 0
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def day_count(self) -> int:
        """Number of calendar days covered (inclusive)."""
        return (self.end_date - self.start_date).days + 1

    def can_transition_to(self, new_status: SessionStatus) -> bool:
        """Check whether the lifecycle allows moving to ``new_status``."""
        return new_status in _SESSION_TRANSITIONS[self.status]


class Group(BaseModel):
    """A camper group; the unit that occupies a slot."""

    id: str
    session_id: str
    name: str
    color: str | None = None
    capacity: int | None = None
    current_count: int = 0
    age_min: int | None = None
    age_max: int | None = None
    gender: Gender = Gender.MIXED
    sort_order: int = 0
    is_active: bool = True
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def age_label(self) -> str:
        if self.age_min is None and self.age_max is None:
            return "any age"
        low = self.age_min if self.age_min is not None else "?"
        high = self.age_max if self.age_max is not None else "?"
        return f"{low}-{high}"


class Activity(BaseModel):
    """Organization-level activity definition, reusable across sessions."""

    id: str
    organization_id: str = ""
    name: str
    duration_minutes: int = Field(default=60, ge=1)
    min_participants: int | None = None
    max_participants: int | None = None
    min_age: int | None = None
    max_age: int | None = None
    required_staff_count: int = Field(default=1, ge=0)
    weather_dependent: bool = False
    allowed_weather: list[WeatherCondition] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    facility_ids: list[str] = Field(default_factory=list)  # Empty = any facility
    allows_shared_facility: bool = False
    is_active: bool = True
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_deleted

    def accepts_group(self, group: Group) -> bool:
        """Whether the group's age range fits inside the activity's age bounds.

        Unknown bounds on either side never exclude.
        """
        if self.min_age is not None and group.age_min is not None and group.age_min < self.min_age:
            return False
        return not (self.max_age is not None and group.age_max is not None and group.age_max > self.max_age)

    def can_use_facility(self, facility_id: str) -> bool:
        return not self.facility_ids or facility_id in self.facility_ids


class Facility(BaseModel):
    """Organization-level facility; ``indoor`` drives weather decisions."""

    id: str
    organization_id: str = ""
    name: str
    capacity: int | None = None
    indoor: bool = False
    max_concurrent_groups: int = Field(default=1, ge=1)
    is_active: bool = True
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_deleted


class Staff(BaseModel):
    id: str
    organization_id: str = ""
    first_name: str
    last_name: str = ""
    role: str | None = None
    specialties: list[str] = Field(default_factory=list)
    is_active: bool = True
    deleted_at: datetime | None = None

    @property
    def name(self) -> str:
        """Full name for display."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_available(self) -> bool:
        return self.is_active and self.deleted_at is None


class DayTemplateSlot(BaseModel):
    id: str
    name: str = ""
    start_time: time
    end_time: time
    slot_type: SlotType = SlotType.ACTIVITY
    is_schedulable: bool = True
    sort_order: int = 0

    @property
    def is_activity_slot(self) -> bool:
        """Only schedulable activity slots become grid cells."""
        return self.slot_type == SlotType.ACTIVITY and self.is_schedulable

    @model_validator(mode="after")
    def _check_times(self) -> DayTemplateSlot:
        if self.end_time <= self.start_time:
            raise ValueError(f"Template slot '{self.name or self.id}' ends before it starts")
        return self

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value: time) -> str:
        return format_hhmm(value)


class DayTemplate(BaseModel):
    """Reusable daily skeleton of time ranges."""

    id: str
    organization_id: str = ""
    name: str
    slots: list[DayTemplateSlot] = Field(default_factory=list)
    is_default: bool = False

    @property
    def schedulable_slots(self) -> list[DayTemplateSlot]:
        return sorted(
            (s for s in self.slots if s.is_activity_slot),
            key=lambda s: (s.start_time, s.sort_order, s.id),
        )


class ScheduleSlot(BaseModel):
    """One (group, date, time range) cell of the grid."""

    id: str
    session_id: str
    group_id: str
    date: date
    start_time: time
    end_time: time
    activity_id: str | None = None
    facility_id: str | None = None
    staff_ids: list[str] = Field(default_factory=list)
    notes: str | None = None
    day_template_slot_id: str | None = None
    is_locked: bool = False
    original_activity_id: str | None = None
    substitution_reason: str | None = None

    @model_validator(mode="after")
    def _check_times(self) -> ScheduleSlot:
        if self.end_time <= self.start_time:
            raise ValueError(f"Slot {self.id} ends before it starts")
        return self

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value: time) -> str:
        return format_hhmm(value)

    @property
    def key(self) -> tuple[str, date, time]:
        """Grid identity: a group may hold one slot per (date, start_time)."""
        return (self.group_id, self.date, self.start_time)

    @property
    def is_filled(self) -> bool:
        return self.activity_id is not None

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_time, self.end_time)


# =============================================================================
# Constraints - one parameter record per kind, discriminated on ``kind``
# =============================================================================


class TimeRange(BaseModel):
    start_time: time
    end_time: time


class TimeWindowParams(BaseModel):
    kind: Literal["time_window"] = "time_window"
    allowed_start_times: list[time] = Field(default_factory=list)
    blocked_start_times: list[time] = Field(default_factory=list)
    not_before: time | None = None
    not_after: time | None = None  # Latest allowed end time


class SequencingParams(BaseModel):
    """The slot right after ``before_activity_id`` must (or must not) be ``after_activity_id``."""

    kind: Literal["sequencing"] = "sequencing"
    before_activity_id: str
    after_activity_id: str
    must_follow: bool = True


class MaxPerDayParams(BaseModel):
    kind: Literal["max_per_day"] = "max_per_day"
    max_count: int = Field(default=1, ge=0)


class RepeatGapParams(BaseModel):
    kind: Literal["repeat_gap"] = "repeat_gap"
    min_gap_minutes: int = Field(default=60, ge=0)


class AgeGenderParams(BaseModel):
    kind: Literal["age_gender"] = "age_gender"
    min_age: int | None = None
    max_age: int | None = None
    allowed_genders: list[Gender] = Field(default_factory=list)


class FacilityExclusivityParams(BaseModel):
    kind: Literal["facility_exclusivity"] = "facility_exclusivity"
    max_concurrent_groups: int = Field(default=1, ge=1)


class StaffAvailabilityParams(BaseModel):
    kind: Literal["staff_availability"] = "staff_availability"
    unavailable_dates: list[date] = Field(default_factory=list)
    unavailable_windows: list[TimeRange] = Field(default_factory=list)
    max_slots_per_day: int | None = None


class WeatherDependencyParams(BaseModel):
    kind: Literal["weather_dependency"] = "weather_dependency"
    allowed_weather: list[WeatherCondition] = Field(default_factory=list)
    substitute_activity_id: str | None = None


class BlackoutParams(BaseModel):
    kind: Literal["blackout"] = "blackout"
    start_date: date
    end_date: date
    start_time: time | None = None
    end_time: time | None = None


class CapacityParams(BaseModel):
    kind: Literal["capacity"] = "capacity"
    check_participants: bool = True
    check_facility: bool = True
    tolerance: int = Field(default=0, ge=0)


class ConsecutiveLimitParams(BaseModel):
    kind: Literal["consecutive_limit"] = "consecutive_limit"
    max_consecutive: int = Field(default=1, ge=1)


class GroupSeparationParams(BaseModel):
    kind: Literal["group_separation"] = "group_separation"
    separate_by: Literal["facility", "activity"] = "facility"


ConstraintParams = Annotated[
    TimeWindowParams
    | SequencingParams
    | MaxPerDayParams
    | RepeatGapParams
    | AgeGenderParams
    | FacilityExclusivityParams
    | StaffAvailabilityParams
    | WeatherDependencyParams
    | BlackoutParams
    | CapacityParams
    | ConsecutiveLimitParams
    | GroupSeparationParams,
    Field(discriminator="kind"),
]


class ConstraintTargets(BaseModel):
    """Target refs; an empty list means "all" for that dimension."""

    activity_ids: list[str] = Field(default_factory=list)
    facility_ids: list[str] = Field(default_factory=list)
    group_ids: list[str] = Field(default_factory=list)
    staff_ids: list[str] = Field(default_factory=list)


class Constraint(BaseModel):
    id: str
    organization_id: str = ""
    session_id: str | None = None  # None = organization-wide
    name: str
    description: str | None = None
    severity: ConstraintSeverity = ConstraintSeverity.HARD
    priority: int = Field(default=5, ge=1, le=10)
    is_active: bool = True
    error_message: str | None = None
    targets: ConstraintTargets = Field(default_factory=ConstraintTargets)
    params: ConstraintParams

    @property
    def kind(self) -> str:
        return self.params.kind

    @property
    def is_hard(self) -> bool:
        return self.severity == ConstraintSeverity.HARD


# =============================================================================
# Derived records
# =============================================================================


class Conflict(BaseModel):
    """A re-computable finding about the grid. Never persisted as ground truth."""

    id: str
    type: ConflictType
    severity: ConflictSeverity
    message: str
    description: str = ""
    suggestion: str | None = None
    affected_slot_ids: list[str] = Field(default_factory=list)
    constraint_id: str | None = None


class WeatherAssignment(BaseModel):
    date: date
    condition: WeatherCondition
    source: WeatherSource = WeatherSource.MANUAL
    temperature: float | None = None
    description: str | None = None


class Substitution(BaseModel):
    """Proposed replacement for a weather-incompatible slot."""

    slot_id: str
    original_activity_id: str
    original_activity_name: str
    substitute_activity_id: str
    substitute_activity_name: str
    reason: str
    substitute_facility_id: str | None = None


class SchedulingContext(BaseModel):
    """Explicit caller context; the core never reads a "current" org or session."""

    organization_id: str
    session_id: str
    as_of: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class SchedulingResources:
    """Organization resources plus session groups, indexed by id.

    Lookups include inactive and deleted rows so callers can tell a deleted
    reference apart from a missing one.
    """

    activities: list[Activity] = field(default_factory=list)
    facilities: list[Facility] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    staff: list[Staff] = field(default_factory=list)
    activity_by_id: dict[str, Activity] = field(init=False, repr=False)
    facility_by_id: dict[str, Facility] = field(init=False, repr=False)
    group_by_id: dict[str, Group] = field(init=False, repr=False)
    staff_by_id: dict[str, Staff] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.activity_by_id = {a.id: a for a in self.activities}
        self.facility_by_id = {f.id: f for f in self.facilities}
        self.group_by_id = {g.id: g for g in self.groups}
        self.staff_by_id = {s.id: s for s in self.staff}

    @property
    def active_activities(self) -> list[Activity]:
        return [a for a in self.activities if a.is_available]

    @property
    def active_facilities(self) -> list[Facility]:
        return [f for f in self.facilities if f.is_available]

    @property
    def active_staff(self) -> list[Staff]:
        return [s for s in self.staff if s.is_available]
