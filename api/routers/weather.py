"""
Weather Router - Endpoints for weather impact and substitutions.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from scheduling.config import ConfigLoader
from scheduling.weather import apply_substitutions, check_weather_impact, summarize_weather

from ..dependencies import get_config, get_session_lock
from ..schemas import WeatherApplyRequest, WeatherApplyResponse, WeatherImpactRequest, WeatherImpactResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/weather", tags=["weather"])


@router.post("/impact")
async def weather_impact(
    request: WeatherImpactRequest, config: ConfigLoader = Depends(get_config)
) -> WeatherImpactResponse:
    """Flag weather-incompatible slots and propose substitutes. Never writes."""
    impact = check_weather_impact(
        request.slots,
        request.activities,
        request.constraints,
        request.weather,
        facilities=request.facilities,
        groups=request.groups,
        config=config,
    )
    return WeatherImpactResponse(
        affected_slot_ids=impact.affected_slot_ids,
        warnings=impact.warnings,
        substitutions=impact.substitutions,
        summary=summarize_weather(request.weather, config=config),
    )


@router.post("/apply")
async def weather_apply(request: WeatherApplyRequest) -> WeatherApplyResponse:
    """Apply selected substitutions, all or nothing. Failures map to 409."""
    async with get_session_lock(request.session_id):
        slots = apply_substitutions(
            request.slots, request.substitutions, request.selected_slot_ids, activities=request.activities
        )

    selected = request.selected_slot_ids
    applied = len(set(selected)) if selected is not None else len(request.substitutions)
    logger.info(f"Applied {applied} weather substitutions to session {request.session_id}")
    return WeatherApplyResponse(slots=slots, applied_count=applied)
