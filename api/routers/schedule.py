"""
Schedule Router - Endpoints for building, solving and checking schedule grids.

This router handles:
- Building the empty slot grid from day templates
- Running the schedule solver
- Conflict detection and feasibility pre-checks
- Per-slot activity and staff options for manual editing
- Analytics and read-only grid views
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from scheduling.analytics import ScheduleAnalytics, calculate_schedule_analytics
from scheduling.config import ConfigLoader
from scheduling.conflict_detector import detect_conflicts, is_schedule_valid, summarize_conflicts
from scheduling.constraints import ConstraintEngine
from scheduling.grid_builder import build_slot_grid
from scheduling.models import SchedulingResources
from scheduling.solver import (
    FeasibilityResult,
    OptimizationLevel,
    SolverOutput,
    check_feasibility,
    solve_schedule,
    staff_availability_matrix,
    suggest_staff,
)
from scheduling.views import GridViews

from ..dependencies import get_config, get_session_lock
from ..schemas import (
    AnalyticsRequest,
    ConflictsRequest,
    ConflictsResponse,
    FeasibilityRequest,
    GridRequest,
    GridResponse,
    SlotOptionsRequest,
    SlotOptionsResponse,
    SolveRequest,
    StaffAvailabilityRequest,
    StaffAvailabilityResponse,
    ViewRequest,
)
from ..settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedule", tags=["schedule"])

VIEWS = ("master", "group", "day", "facility")


# ========================================
# Grid construction and solving
# ========================================


@router.post("/grid")
async def build_grid(request: GridRequest, config: ConfigLoader = Depends(get_config)) -> GridResponse:
    """Build the session's slot grid, keeping any existing assignments."""
    slots = build_slot_grid(
        request.session,
        request.groups,
        template=request.template,
        templates_by_date=request.templates_by_date,
        existing_slots=request.existing_slots,
        config=config,
    )
    logger.info(f"Built grid for session {request.session.id}: {len(slots)} slots")
    return GridResponse(slots=slots, count=len(slots))


@router.post("/solve")
async def solve(request: SolveRequest, config: ConfigLoader = Depends(get_config)) -> SolverOutput:
    """Fill empty slots. Runs serialized per session, off the event loop."""
    if request.context is not None:
        session_id = request.context.session_id
    elif request.slots:
        session_id = request.slots[0].session_id
    else:
        session_id = "_empty"

    solver_input = request.model_copy(
        update={
            "optimization_level": request.optimization_level
            or OptimizationLevel(get_settings().default_optimization_level)
        }
    )

    async with get_session_lock(session_id):
        logger.info(
            f"Solving session {session_id}: {len(request.slots)} slots, "
            f"level={solver_input.optimization_level.value if solver_input.optimization_level else 'default'}"
        )
        output = await asyncio.to_thread(solve_schedule, solver_input, config)

    logger.info(
        f"Solver finished for session {session_id}: status={output.status.value}, "
        f"filled={output.filled_count}, unfillable={output.unfillable_count}"
    )
    if not request.include_analysis:
        output = output.model_copy(update={"analysis": None})
    return output


# ========================================
# Checks
# ========================================


@router.post("/conflicts")
async def conflicts(request: ConflictsRequest, config: ConfigLoader = Depends(get_config)) -> ConflictsResponse:
    """Re-validate a grid and classify every conflict."""
    found = detect_conflicts(
        request.slots,
        request.activities,
        request.facilities,
        request.constraints,
        groups=request.groups,
        staff=request.staff,
        weather=request.weather,
        config=config,
    )
    return ConflictsResponse(conflicts=found, summary=summarize_conflicts(found), is_valid=is_schedule_valid(found))


@router.post("/feasibility")
async def feasibility(request: FeasibilityRequest, config: ConfigLoader = Depends(get_config)) -> FeasibilityResult:
    """Check whether generation can run before building anything."""
    return check_feasibility(
        request.session,
        request.groups,
        request.activities,
        request.facilities,
        request.template,
        request.constraints,
        config=config,
    )


@router.post("/slot-options")
async def slot_options(request: SlotOptionsRequest, config: ConfigLoader = Depends(get_config)) -> SlotOptionsResponse:
    """Activities and staff that could go into one slot without breaking a hard rule."""
    slot = next((s for s in request.slots if s.id == request.slot_id), None)
    if slot is None:
        raise HTTPException(status_code=404, detail=f"Slot '{request.slot_id}' is not in the grid")

    resources = SchedulingResources(
        activities=request.activities, facilities=request.facilities, groups=request.groups, staff=request.staff
    )
    engine = ConstraintEngine(request.constraints, resources, weather=request.weather, config=config)
    return SlotOptionsResponse(
        slot_id=slot.id,
        activities=engine.valid_activities(slot, request.slots),
        staff=suggest_staff(slot, request.slots, resources, request.constraints, config=config),
    )


@router.post("/staff-availability")
async def staff_availability(request: StaffAvailabilityRequest) -> StaffAvailabilityResponse:
    return StaffAvailabilityResponse(availability=staff_availability_matrix(request.staff, request.slots))


# ========================================
# Read-only projections
# ========================================


@router.post("/analytics")
async def analytics(request: AnalyticsRequest) -> ScheduleAnalytics:
    return calculate_schedule_analytics(
        request.session, request.groups, request.activities, request.facilities, request.slots, request.staff
    )


@router.post("/views/{view}")
async def grid_view(view: str, request: ViewRequest) -> dict[str, Any]:
    """Master, per-group, per-day or per-facility view of a grid."""
    if view not in VIEWS:
        raise HTTPException(status_code=404, detail=f"Unknown view '{view}'. Use one of: {', '.join(VIEWS)}")

    views = GridViews(request.slots, request.groups, request.activities, request.facilities, request.staff)
    if view == "master":
        return {"view": view, "days": [d.model_dump(mode="json") for d in views.master()]}

    if view == "group":
        if request.group_id is None:
            raise HTTPException(status_code=422, detail="group_id is required for the group view")
        slots = views.for_group(request.group_id)
    elif view == "day":
        if request.day is None:
            raise HTTPException(status_code=422, detail="day is required for the day view")
        slots = views.for_day(request.day)
    else:
        if request.facility_id is None:
            raise HTTPException(status_code=422, detail="facility_id is required for the facility view")
        slots = views.for_facility(request.facility_id)
    return {"view": view, "slots": [s.model_dump(mode="json") for s in slots]}
