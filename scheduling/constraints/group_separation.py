"""
Group Separation - keep the targeted groups apart at the same time.

``separate_by="facility"`` forbids sharing a facility, ``"activity"`` forbids
doing the same activity concurrently.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, GroupSeparationParams

from .base import EvaluationContext


def check_group_separation(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(GroupSeparationParams, constraint.params)
    slot = ctx.candidate
    separated = constraint.targets.group_ids
    if len(separated) < 2 or slot.group_id not in separated:
        return None

    overlapping = ctx.grid.overlapping(slot.date, slot.start_time, slot.end_time, exclude_id=slot.id)
    for other in overlapping:
        if other.group_id == slot.group_id or other.group_id not in separated:
            continue
        if params.separate_by == "facility":
            if slot.facility_id is not None and other.facility_id == slot.facility_id:
                return f"{ctx.group_name(slot.group_id)} and {ctx.group_name(other.group_id)} may not share a facility"
        elif slot.activity_id is not None and other.activity_id == slot.activity_id:
            return (
                f"{ctx.group_name(slot.group_id)} and {ctx.group_name(other.group_id)} "
                f"may not do {ctx.activity_name(slot.activity_id)} at the same time"
            )
    return None
