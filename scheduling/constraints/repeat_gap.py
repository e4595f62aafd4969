"""
Repeat Gap - require a minimum break between repeats of an activity within a day.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, RepeatGapParams
from scheduling.time_utils import gap_minutes

from .base import EvaluationContext
from .helpers import targets_activity


def check_repeat_gap(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(RepeatGapParams, constraint.params)
    slot = ctx.candidate
    if slot.activity_id is None or not targets_activity(constraint, slot):
        return None

    for other in ctx.grid.group_day(slot.group_id, slot.date, exclude_id=slot.id):
        if other.activity_id != slot.activity_id:
            continue
        gap = gap_minutes(slot.start_time, slot.end_time, other.start_time, other.end_time)
        if gap < params.min_gap_minutes:
            return (
                f"{ctx.activity_name(slot.activity_id)} repeats after {gap} minutes "
                f"(needs at least {params.min_gap_minutes})"
            )
    return None
