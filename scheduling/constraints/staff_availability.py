"""
Staff Availability - days off, blocked windows and a per-day slot cap for staff.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, StaffAvailabilityParams
from scheduling.time_utils import format_hhmm, ranges_overlap

from .base import EvaluationContext
from .helpers import targeted_staff


def check_staff_availability(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(StaffAvailabilityParams, constraint.params)
    slot = ctx.candidate

    for staff_id in targeted_staff(constraint, slot):
        name = ctx.staff_name(staff_id)
        if slot.date in params.unavailable_dates:
            return f"{name} is unavailable on {slot.date}"

        for window in params.unavailable_windows:
            if ranges_overlap(slot.start_time, slot.end_time, window.start_time, window.end_time):
                return (
                    f"{name} is unavailable between {format_hhmm(window.start_time)} "
                    f"and {format_hhmm(window.end_time)}"
                )

        if params.max_slots_per_day is not None:
            assigned = sum(1 for s in ctx.grid.day(slot.date, exclude_id=slot.id) if staff_id in s.staff_ids)
            if assigned + 1 > params.max_slots_per_day:
                return f"{name} would work {assigned + 1} slots on {slot.date} (max {params.max_slots_per_day})"
    return None
