"""
Weather Dependency - keep weather-sensitive activities off days with unsuitable weather.

Only applies when the day's condition is known. Without an explicit target list
the rule covers every weather-dependent activity.
"""

from __future__ import annotations

from typing import cast

from scheduling.models import Constraint, WeatherDependencyParams

from .base import EvaluationContext


def check_weather_dependency(ctx: EvaluationContext, constraint: Constraint) -> str | None:
    params = cast(WeatherDependencyParams, constraint.params)
    slot = ctx.candidate
    activity = ctx.activity
    if activity is None:
        return None

    if constraint.targets.activity_ids:
        if activity.id not in constraint.targets.activity_ids:
            return None
    elif not activity.weather_dependent:
        return None

    condition = ctx.weather.get(slot.date)
    if condition is None:
        return None

    allowed = params.allowed_weather or activity.allowed_weather
    if allowed:
        if condition not in allowed:
            return f"{activity.name} is not suitable in {condition.value} weather"
        return None

    facility = ctx.facility
    if condition in ctx.blocking_conditions and not (facility is not None and facility.indoor):
        return f"{activity.name} cannot run outdoors in {condition.value} weather"
    return None
