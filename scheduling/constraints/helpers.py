"""
Shared helper functions for constraint modules.

Target lists follow one rule everywhere: an empty list means "every".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scheduling.models import Constraint, ScheduleSlot


def matches_target(target_ids: list[str], value: str | None) -> bool:
    """Empty target list matches anything; otherwise the value must be listed."""
    if not target_ids:
        return True
    return value is not None and value in target_ids


def constraint_in_scope(constraint: Constraint, slot: ScheduleSlot) -> bool:
    """Session and group scoping, applied before any kind-specific logic."""
    if not constraint.is_active:
        return False
    if constraint.session_id is not None and constraint.session_id != slot.session_id:
        return False
    return matches_target(constraint.targets.group_ids, slot.group_id)


def targets_activity(constraint: Constraint, slot: ScheduleSlot) -> bool:
    return matches_target(constraint.targets.activity_ids, slot.activity_id)


def targets_facility(constraint: Constraint, slot: ScheduleSlot) -> bool:
    return matches_target(constraint.targets.facility_ids, slot.facility_id)


def targeted_staff(constraint: Constraint, slot: ScheduleSlot) -> list[str]:
    """Staff on the slot that the constraint covers."""
    return [s for s in slot.staff_ids if matches_target(constraint.targets.staff_ids, s)]
