"""
Facility Exclusivity - limit how many groups share a facility at the same time.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, FacilityExclusivityParams

from .base import EvaluationContext
from .helpers import targets_facility


def check_facility_exclusivity(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(FacilityExclusivityParams, constraint.params)
    slot = ctx.candidate
    if slot.facility_id is None or not targets_facility(constraint, slot):
        return None

    overlapping = ctx.grid.overlapping(slot.date, slot.start_time, slot.end_time, exclude_id=slot.id)
    others = {s.group_id for s in overlapping if s.facility_id == slot.facility_id and s.group_id != slot.group_id}
    if len(others) + 1 > params.max_concurrent_groups:
        facility = ctx.facility
        facility_name = facility.name if facility else slot.facility_id
        return (
            f"{facility_name} would host {len(others) + 1} groups at once "
            f"(max {params.max_concurrent_groups})"
        )
    return None
