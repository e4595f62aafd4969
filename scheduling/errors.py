"""Typed errors raised by the scheduling core.

Unfillable slots and conflicts are results, not errors; only malformed input
and stale writes raise.
"""

from __future__ import annotations

from pydantic import BaseModel


class SchedulingError(Exception):
    """Base exception for scheduling errors."""

    pass


class ValidationError(SchedulingError):
    """Raised when grid-building input is malformed (bad date range, empty template, no groups)."""

    pass


class InfeasibleGridError(SchedulingError):
    """Raised when a grid references a missing or deleted group, activity, facility or staff member."""

    def __init__(self, message: str, reasons: list[str] | None = None):
        super().__init__(message)
        self.reasons = reasons or []


class ApplyFailure(BaseModel):
    """Why a single substitution could not be written."""

    slot_id: str
    reason: str


class SubstitutionApplyError(SchedulingError):
    """Raised when any selected substitution cannot be applied. Nothing is written."""

    def __init__(self, failures: list[ApplyFailure]):
        self.failures = failures
        summary = "; ".join(f"{f.slot_id}: {f.reason}" for f in failures)
        super().__init__(f"{len(failures)} substitution(s) could not be applied: {summary}")


class InvalidStateError(SchedulingError):
    """Raised when a planner step is called out of order."""

    pass
