"""
Weather Impact & Substitution Engine.

Flags slots whose activity cannot run in the day's weather and proposes a
replacement for each. Proposals never touch the grid; ``apply_substitutions``
is the explicit, all-or-nothing write, after which conflicts must be re-checked.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from .config import ConfigLoader
from .constraints.base import WeatherInput, normalize_weather
from .constraints.helpers import constraint_in_scope
from .errors import ApplyFailure, InvalidStateError, SubstitutionApplyError
from .grid_index import GridIndex, facility_has_room, slot_sort_key
from .models import (
    Activity,
    Constraint,
    Facility,
    Group,
    ScheduleSlot,
    SchedulingResources,
    Substitution,
    WeatherCondition,
    WeatherDependencyParams,
)
from .time_utils import format_hhmm

logger = logging.getLogger(__name__)


class WeatherImpact(BaseModel):
    """Affected slots, human-readable warnings and substitution proposals."""

    affected_slots: list[ScheduleSlot] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    substitutions: list[Substitution] = Field(default_factory=list)

    @property
    def affected_slot_ids(self) -> list[str]:
        return [s.id for s in self.affected_slots]


class WeatherSummary(BaseModel):
    good_days: int = 0
    bad_days: int = 0
    by_condition: dict[WeatherCondition, int] = Field(default_factory=dict)


def _weather_rules(activity: Activity, slot: ScheduleSlot, constraints: list[Constraint]) -> list[Constraint]:
    """Weather-dependency constraints naming this activity, highest priority first."""
    rules = [
        c
        for c in constraints
        if c.kind == "weather_dependency"
        and constraint_in_scope(c, slot)
        and activity.id in c.targets.activity_ids
    ]
    return sorted(rules, key=lambda c: (-c.priority, c.id))


class _ImpactChecker:
    """Per-call state: resources, forecast and the working grid used for facility availability."""

    def __init__(
        self,
        slots: list[ScheduleSlot],
        resources: SchedulingResources,
        constraints: list[Constraint],
        weather: dict[date, WeatherCondition],
        config: ConfigLoader,
    ):
        self.resources = resources
        self.constraints = [c for c in constraints if c.is_active]
        self.weather = weather
        self.grid = GridIndex(slots)
        self.blocking = frozenset(WeatherCondition(c) for c in config.get_json("weather.outdoor_blocking_conditions"))
        self.tolerance = config.get_int("weather.substitution.duration_tolerance_minutes")

    def is_affected(self, activity: Activity, slot: ScheduleSlot, facility: Facility | None) -> bool:
        """Whether ``activity`` in ``facility`` cannot run in the slot's weather."""
        condition = self.weather.get(slot.date)
        if condition is None:
            return False

        rules = _weather_rules(activity, slot, self.constraints)
        if not activity.weather_dependent and not rules:
            return False

        allowed = activity.allowed_weather
        for rule in rules:
            if isinstance(rule.params, WeatherDependencyParams) and rule.params.allowed_weather:
                allowed = rule.params.allowed_weather
                break
        if allowed:
            return condition not in allowed
        return condition in self.blocking and not (facility is not None and facility.indoor)

    def explicit_substitute(self, activity: Activity, slot: ScheduleSlot) -> str | None:
        for rule in _weather_rules(activity, slot, self.constraints):
            if isinstance(rule.params, WeatherDependencyParams) and rule.params.substitute_activity_id:
                return rule.params.substitute_activity_id
        return None

    def placement(self, candidate: Activity, slot: ScheduleSlot, prefer_indoor: bool) -> tuple[bool, str | None]:
        """Pick where ``candidate`` would run instead of the slot's activity.

        Returns (found, facility_id). The slot's own facility is kept when the
        candidate may use it, unless an indoor move is preferred and possible.
        """
        group = self.resources.group_by_id.get(slot.group_id)
        current = self.resources.facility_by_id.get(slot.facility_id) if slot.facility_id else None

        options: list[Facility | None] = []
        if current is not None and candidate.can_use_facility(current.id):
            options.append(current)
        for facility in sorted(self.resources.active_facilities, key=lambda f: (not f.indoor, f.name, f.id)):
            if facility is current or not candidate.can_use_facility(facility.id):
                continue
            if group is not None and facility.capacity is not None and group.current_count > facility.capacity:
                continue
            if facility_has_room(self.grid, self.resources, slot, facility, candidate):
                options.append(facility)
        if current is None and not candidate.facility_ids:
            options.append(None)

        if prefer_indoor:
            options.sort(key=lambda f: not (f is not None and f.indoor))

        for facility in options:
            if not self.is_affected(candidate, slot, facility):
                return True, facility.id if facility else None
        return False, None

    def accepts(self, candidate: Activity, original: Activity, slot: ScheduleSlot) -> bool:
        if not candidate.is_available or candidate.id == original.id:
            return False
        group = self.resources.group_by_id.get(slot.group_id)
        return group is None or candidate.accepts_group(group)

    def find_substitute(
        self, slot: ScheduleSlot, original: Activity, facility: Facility | None
    ) -> tuple[Activity, str | None] | None:
        """Best replacement for an affected slot, or None when nothing fits."""
        prefer_indoor = facility is None or not facility.indoor

        explicit_id = self.explicit_substitute(original, slot)
        if explicit_id is not None:
            explicit = self.resources.activity_by_id.get(explicit_id)
            if explicit is not None and self.accepts(explicit, original, slot):
                found, facility_id = self.placement(explicit, slot, prefer_indoor)
                if found:
                    return explicit, facility_id
            logger.debug(f"Configured substitute {explicit_id} does not fit slot {slot.id}")

        ranked: list[tuple[tuple, Activity, str | None]] = []
        for candidate in self.resources.active_activities:
            if not self.accepts(candidate, original, slot):
                continue
            if abs(candidate.duration_minutes - slot.duration_minutes) > self.tolerance:
                continue
            found, facility_id = self.placement(candidate, slot, prefer_indoor)
            if not found:
                continue
            target = self.resources.facility_by_id.get(facility_id) if facility_id else None
            indoor = target is not None and target.indoor
            ranked.append(((prefer_indoor and not indoor, candidate.name, candidate.id), candidate, facility_id))

        if not ranked:
            return None
        ranked.sort(key=lambda item: item[0])
        _, best, facility_id = ranked[0]
        return best, facility_id

    def run(self, slots: list[ScheduleSlot]) -> WeatherImpact:
        impact = WeatherImpact()
        per_day: Counter[date] = Counter()
        ordered = sorted(slots, key=lambda s: slot_sort_key(s, self.resources.group_by_id))

        for slot in ordered:
            if slot.activity_id is None:
                continue
            activity = self.resources.activity_by_id.get(slot.activity_id)
            if activity is None:
                continue
            facility = self.resources.facility_by_id.get(slot.facility_id) if slot.facility_id else None
            if not self.is_affected(activity, slot, facility):
                continue

            impact.affected_slots.append(slot)
            per_day[slot.date] += 1

            result = self.find_substitute(slot, activity, facility)
            if result is None:
                impact.warnings.append(
                    f"No substitute for {activity.name} ({self._group_name(slot.group_id)}) "
                    f"on {slot.date} {format_hhmm(slot.start_time)}"
                )
                continue

            substitute, facility_id = result
            condition = self.weather[slot.date]
            changes_facility = facility_id != slot.facility_id
            impact.substitutions.append(
                Substitution(
                    slot_id=slot.id,
                    original_activity_id=activity.id,
                    original_activity_name=activity.name,
                    substitute_activity_id=substitute.id,
                    substitute_activity_name=substitute.name,
                    reason=f"{activity.name} replaced by {substitute.name} ({condition.value} weather)",
                    substitute_facility_id=facility_id if changes_facility else None,
                )
            )
            # Later proposals must see the facility this one would take
            self.grid.put(slot.model_copy(update={"activity_id": substitute.id, "facility_id": facility_id}))

        day_warnings = [
            f"{day}: {self.weather[day].value} weather affects {count} scheduled activit{'y' if count == 1 else 'ies'}"
            for day, count in sorted(per_day.items())
        ]
        impact.warnings = day_warnings + impact.warnings
        return impact

    def _group_name(self, group_id: str) -> str:
        group = self.resources.group_by_id.get(group_id)
        return group.name if group else group_id


def check_weather_impact(
    slots: list[ScheduleSlot],
    activities: list[Activity],
    constraints: list[Constraint],
    weather: WeatherInput,
    facilities: list[Facility] | None = None,
    groups: list[Group] | None = None,
    config: ConfigLoader | None = None,
) -> WeatherImpact:
    """Find weather-incompatible slots and propose substitutes.

    Args:
        slots: Current grid snapshot (not modified)
        activities: Organization activities
        constraints: Constraint set; weather-dependency rules override allow-lists
            and may name an explicit substitute
        weather: Per-date conditions; dates without a condition are never affected
        facilities: Organization facilities (indoor flag, availability)
        groups: Session groups (age matching, sizes)
        config: Config loader (defaults to the singleton)

    Returns:
        WeatherImpact with the same ordering for the same input
    """
    config = config or ConfigLoader.get_instance()
    resources = SchedulingResources(
        activities=list(activities), facilities=list(facilities or []), groups=list(groups or [])
    )
    checker = _ImpactChecker(slots, resources, constraints, normalize_weather(weather), config)
    impact = checker.run(slots)
    logger.debug(
        f"Weather impact: {len(impact.affected_slots)} affected, {len(impact.substitutions)} substitutions"
    )
    return impact


def apply_substitutions(
    grid: list[ScheduleSlot],
    substitutions: list[Substitution],
    selected_slot_ids: list[str] | None = None,
    activities: list[Activity] | None = None,
) -> list[ScheduleSlot]:
    """Write the selected substitutions into a copy of ``grid``.

    All-or-nothing: if any selected substitution is stale (slot gone, activity
    changed since the proposal) or refers to an unusable activity, nothing is
    applied and ``SubstitutionApplyError`` lists every failure.
    """
    by_slot = {s.slot_id: s for s in substitutions}
    selected = list(by_slot) if selected_slot_ids is None else list(dict.fromkeys(selected_slot_ids))
    slots_by_id = {s.id: s for s in grid}
    activity_by_id = {a.id: a for a in activities} if activities is not None else None

    failures: list[ApplyFailure] = []
    updates: dict[str, ScheduleSlot] = {}
    for slot_id in selected:
        substitution = by_slot.get(slot_id)
        slot = slots_by_id.get(slot_id)
        if substitution is None:
            failures.append(ApplyFailure(slot_id=slot_id, reason="No substitution was proposed for this slot"))
            continue
        if slot is None:
            failures.append(ApplyFailure(slot_id=slot_id, reason="Slot no longer exists"))
            continue
        if slot.activity_id != substitution.original_activity_id:
            failures.append(
                ApplyFailure(
                    slot_id=slot_id,
                    reason=f"Slot changed since the proposal (expected {substitution.original_activity_name})",
                )
            )
            continue
        if activity_by_id is not None:
            substitute = activity_by_id.get(substitution.substitute_activity_id)
            if substitute is None or not substitute.is_available:
                failures.append(
                    ApplyFailure(
                        slot_id=slot_id,
                        reason=f"Substitute activity {substitution.substitute_activity_name} is not available",
                    )
                )
                continue

        update = {
            "activity_id": substitution.substitute_activity_id,
            "original_activity_id": slot.original_activity_id or substitution.original_activity_id,
            "substitution_reason": substitution.reason,
        }
        if substitution.substitute_facility_id is not None:
            update["facility_id"] = substitution.substitute_facility_id
        updates[slot_id] = slot.model_copy(update=update)

    if failures:
        raise SubstitutionApplyError(failures)

    logger.debug(f"Applied {len(updates)} weather substitutions")
    return [updates.get(s.id, s) for s in grid]


def summarize_weather(weather: WeatherInput, config: ConfigLoader | None = None) -> WeatherSummary:
    """Count good and bad days; bad means the condition blocks outdoor activities."""
    config = config or ConfigLoader.get_instance()
    blocking = {WeatherCondition(c) for c in config.get_json("weather.outdoor_blocking_conditions")}
    conditions = normalize_weather(weather)

    by_condition = {condition: 0 for condition in WeatherCondition}
    bad = 0
    for condition in conditions.values():
        by_condition[condition] += 1
        if condition in blocking:
            bad += 1
    return WeatherSummary(good_days=len(conditions) - bad, bad_days=bad, by_condition=by_condition)


# =============================================================================
# Planner state machine
# =============================================================================


class PlannerState(str, Enum):
    IDLE = "idle"
    WEATHER_SET = "weather_set"
    IMPACT_COMPUTED = "impact_computed"
    APPLYING = "applying"
    APPLIED = "applied"


class WeatherPlanner:
    """Drives one weather review: set forecast, compute impact, apply a selection.

    A failed apply leaves the planner at ``IMPACT_COMPUTED`` with ``last_error``
    set and the grid untouched, so the user can adjust the selection and retry.
    """

    def __init__(
        self,
        activities: list[Activity],
        facilities: list[Facility],
        constraints: list[Constraint],
        groups: list[Group] | None = None,
        config: ConfigLoader | None = None,
    ):
        self.activities = activities
        self.facilities = facilities
        self.constraints = constraints
        self.groups = groups
        self.config = config or ConfigLoader.get_instance()

        self.state = PlannerState.IDLE
        self.weather: dict[date, WeatherCondition] = {}
        self.grid: list[ScheduleSlot] = []
        self.impact: WeatherImpact | None = None
        self.result: list[ScheduleSlot] | None = None
        self.last_error: SubstitutionApplyError | None = None

    def _require(self, *states: PlannerState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidStateError(f"Planner is {self.state.value}; expected one of: {allowed}")

    def set_weather(self, weather: WeatherInput) -> None:
        """Set (or replace) the per-day forecast. Any computed impact is discarded."""
        self._require(PlannerState.IDLE, PlannerState.WEATHER_SET, PlannerState.IMPACT_COMPUTED, PlannerState.APPLIED)
        self.weather = normalize_weather(weather)
        self.impact = None
        self.result = None
        self.last_error = None
        self.state = PlannerState.WEATHER_SET

    def compute_impact(self, grid: list[ScheduleSlot]) -> WeatherImpact:
        self._require(PlannerState.WEATHER_SET, PlannerState.IMPACT_COMPUTED)
        self.grid = list(grid)
        self.impact = check_weather_impact(
            self.grid,
            self.activities,
            self.constraints,
            self.weather,
            facilities=self.facilities,
            groups=self.groups,
            config=self.config,
        )
        self.last_error = None
        self.state = PlannerState.IMPACT_COMPUTED
        return self.impact

    def apply(self, selected_slot_ids: list[str] | None = None) -> list[ScheduleSlot]:
        """Apply the selected substitutions (all proposed when None).

        Raises:
            SubstitutionApplyError: If any selection cannot be applied; state
                returns to IMPACT_COMPUTED
        """
        self._require(PlannerState.IMPACT_COMPUTED)
        if self.impact is None:
            raise InvalidStateError("No impact has been computed")
        self.state = PlannerState.APPLYING
        try:
            result = apply_substitutions(
                self.grid, self.impact.substitutions, selected_slot_ids, activities=self.activities
            )
        except SubstitutionApplyError as e:
            self.last_error = e
            self.state = PlannerState.IMPACT_COMPUTED
            logger.debug(f"Weather apply failed: {e}")
            raise

        self.result = result
        self.state = PlannerState.APPLIED
        return result

    def reset(self) -> None:
        """Finish the review and return to idle."""
        self.state = PlannerState.IDLE
        self.weather = {}
        self.grid = []
        self.impact = None
        self.result = None
        self.last_error = None
