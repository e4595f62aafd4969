"""
Time Window - restrict the wall-clock times an activity may occupy.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, TimeWindowParams
from scheduling.time_utils import format_hhmm

from .base import EvaluationContext
from .helpers import targets_activity, targets_facility


def check_time_window(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(TimeWindowParams, constraint.params)
    slot = ctx.candidate
    if not (targets_activity(constraint, slot) and targets_facility(constraint, slot)):
        return None

    start = format_hhmm(slot.start_time)
    name = ctx.activity_name(slot.activity_id)

    if params.allowed_start_times and slot.start_time not in params.allowed_start_times:
        allowed = ", ".join(format_hhmm(t) for t in sorted(params.allowed_start_times))
        return f"{name} may only start at {allowed}, not {start}"

    if slot.start_time in params.blocked_start_times:
        return f"{name} may not start at {start}"

    if params.not_before is not None and slot.start_time < params.not_before:
        return f"{name} may not start before {format_hhmm(params.not_before)}"

    if params.not_after is not None and slot.end_time > params.not_after:
        return f"{name} must end by {format_hhmm(params.not_after)}"

    return None
