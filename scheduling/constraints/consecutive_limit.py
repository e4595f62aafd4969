"""
Consecutive Limit - cap back-to-back repeats of an activity for a group.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, ConsecutiveLimitParams

from .base import EvaluationContext
from .helpers import targets_activity


def check_consecutive_limit(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(ConsecutiveLimitParams, constraint.params)
    slot = ctx.candidate
    if slot.activity_id is None or not targets_activity(constraint, slot):
        return None

    run = 1
    prev = ctx.grid.previous_in_day(slot)
    while prev is not None and prev.activity_id == slot.activity_id:
        run += 1
        prev = ctx.grid.previous_in_day(prev)

    nxt = ctx.grid.next_in_day(slot)
    while nxt is not None and nxt.activity_id == slot.activity_id:
        run += 1
        nxt = ctx.grid.next_in_day(nxt)

    if run > params.max_consecutive:
        return (
            f"{ctx.activity_name(slot.activity_id)} would run {run} slots in a row "
            f"(max {params.max_consecutive})"
        )
    return None
