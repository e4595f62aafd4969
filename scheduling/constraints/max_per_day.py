"""
Max Per Day - cap how often a group does the same activity on one date.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, MaxPerDayParams

from .base import EvaluationContext
from .helpers import targets_activity


def check_max_per_day(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(MaxPerDayParams, constraint.params)
    slot = ctx.candidate
    if slot.activity_id is None or not targets_activity(constraint, slot):
        return None

    same_day = ctx.grid.group_day(slot.group_id, slot.date, exclude_id=slot.id)
    count = sum(1 for s in same_day if s.activity_id == slot.activity_id)
    if count + 1 > params.max_count:
        return (
            f"{ctx.activity_name(slot.activity_id)} would occur {count + 1} times on {slot.date} "
            f"for {ctx.group_name(slot.group_id)} (max {params.max_count})"
        )
    return None
