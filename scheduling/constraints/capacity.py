"""
Capacity - participant bounds and facility capacity against the group's size.

Occupancy is the group's own ``current_count``; groups using the facility at
other times are never summed in.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import CapacityParams, Constraint

from .base import EvaluationContext
from .helpers import targets_activity, targets_facility


def check_capacity(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(CapacityParams, constraint.params)
    slot = ctx.candidate
    group = ctx.group
    if group is None or not (targets_activity(constraint, slot) and targets_facility(constraint, slot)):
        return None

    size = group.current_count
    activity = ctx.activity
    if params.check_participants and activity is not None:
        if activity.min_participants is not None and size < activity.min_participants - params.tolerance:
            return f"{group.name} has {size} campers; {activity.name} needs at least {activity.min_participants}"
        if activity.max_participants is not None and size > activity.max_participants + params.tolerance:
            return f"{group.name} has {size} campers; {activity.name} allows at most {activity.max_participants}"

    facility = ctx.facility
    if params.check_facility and facility is not None and facility.capacity is not None:
        if size > facility.capacity + params.tolerance:
            return f"{group.name} has {size} campers; {facility.name} holds {facility.capacity}"
    return None
