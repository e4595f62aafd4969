"""
Blackout - periods during which targeted activities, facilities or groups are unavailable.
"""

from __future__ import annotations

from datetime import time
from typing import cast

from scheduling.models import BlackoutParams, Constraint
from scheduling.time_utils import ranges_overlap

from .base import EvaluationContext
from .helpers import targeted_staff, targets_activity, targets_facility

_DAY_START = time(0, 0)
_DAY_END = time(23, 59)


def check_blackout(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(BlackoutParams, constraint.params)
    slot = ctx.candidate

    if not (params.start_date <= slot.date <= params.end_date):
        return None
    if not (targets_activity(constraint, slot) and targets_facility(constraint, slot)):
        return None
    if constraint.targets.staff_ids and not targeted_staff(constraint, slot):
        return None

    window_start = params.start_time or _DAY_START
    window_end = params.end_time or _DAY_END
    if not ranges_overlap(slot.start_time, slot.end_time, window_start, window_end):
        return None

    if params.start_date == params.end_date:
        period = f"{params.start_date}"
    else:
        period = f"{params.start_date} to {params.end_date}"
    return f"{constraint.name}: blackout period {period}"
