"""
Sequencing - precedence between two activities on the same group's day.

``must_follow=True``: whenever the "before" activity runs, the slot directly
behind it must hold the "after" activity. ``must_follow=False``: the "after"
activity may never sit directly behind the "before" activity.

Only immediately adjacent slots are compared. A neighbour with no activity yet
is unknown, and a missing neighbour (start or end of the day) leaves nothing to
check; neither produces a violation.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, ScheduleSlot, SequencingParams

from .base import EvaluationContext


def _pair_violation(
    ctx: EvaluationContext, params: SequencingParams, prev: ScheduleSlot, nxt: ScheduleSlot
) -> str | None:
    """Check one filled (previous, next) adjacency."""
    if prev.activity_id != params.before_activity_id or nxt.activity_id is None:
        return None

    before_name = ctx.activity_name(params.before_activity_id)
    after_name = ctx.activity_name(params.after_activity_id)
    if params.must_follow:
        if nxt.activity_id != params.after_activity_id:
            return f"{before_name} must be directly followed by {after_name}, not {ctx.activity_name(nxt.activity_id)}"
        return None

    if nxt.activity_id == params.after_activity_id:
        return f"{after_name} may not directly follow {before_name}"
    return None


def check_sequencing(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(SequencingParams, constraint.params)
    slot = ctx.candidate
    if slot.activity_id is None:
        return None

    prev = ctx.grid.previous_in_day(slot)
    if prev is not None:
        problem = _pair_violation(ctx, params, prev, slot)
        if problem:
            return problem

    # The candidate may itself be the "before" activity of the slot behind it
    nxt = ctx.grid.next_in_day(slot)
    if nxt is not None:
        return _pair_violation(ctx, params, slot, nxt)
    return None
