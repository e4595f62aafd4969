"""
Age/Gender - restrict activities to groups within an age band and of given genders.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import AgeGenderParams, Constraint

from .base import EvaluationContext
from .helpers import targets_activity


def check_age_gender(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(AgeGenderParams, constraint.params)
    slot = ctx.candidate
    group = ctx.group
    if group is None or slot.activity_id is None or not targets_activity(constraint, slot):
        return None

    name = ctx.activity_name(slot.activity_id)
    if params.min_age is not None and group.age_min is not None and group.age_min < params.min_age:
        return f"{group.name} (ages {group.age_label}) is below the minimum age {params.min_age} for {name}"
    if params.max_age is not None and group.age_max is not None and group.age_max > params.max_age:
        return f"{group.name} (ages {group.age_label}) is above the maximum age {params.max_age} for {name}"
    if params.allowed_genders and group.gender not in params.allowed_genders:
        allowed = ", ".join(g.value for g in params.allowed_genders)
        return f"{name} is limited to {allowed} groups; {group.name} is {group.gender.value}"
    return None
