"""
Pydantic schemas for the Scheduling API.

Re-exports all schemas for convenient importing.
"""

from __future__ import annotations

from .schedule import (
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
from .weather import (
    WeatherApplyRequest,
    WeatherApplyResponse,
    WeatherImpactRequest,
    WeatherImpactResponse,
)

__all__ = [
    "AnalyticsRequest",
    "ConflictsRequest",
    "ConflictsResponse",
    "FeasibilityRequest",
    "GridRequest",
    "GridResponse",
    "SlotOptionsRequest",
    "SlotOptionsResponse",
    "SolveRequest",
    "StaffAvailabilityRequest",
    "StaffAvailabilityResponse",
    "ViewRequest",
    "WeatherApplyRequest",
    "WeatherApplyResponse",
    "WeatherImpactRequest",
    "WeatherImpactResponse",
]
