"""
Constraint Logger - decision trace for the schedule solver.

Tracks rejected candidates per constraint kind, unfillable slots, backtracking
and solver progress. The summary is returned with the solver output.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

logger = logging.getLogger(__name__)

# Keep a bounded number of example messages per constraint kind
MAX_SAMPLES_PER_KIND = 5


class ConstraintLogger:
    """Logger for tracking constraint decisions during solving."""

    def __init__(self, debug_mode: bool = False) -> None:
        self.debug_mode = debug_mode
        self.rejections: dict[str, int] = defaultdict(int)
        self.rejection_samples: dict[str, list[str]] = defaultdict(list)
        self.unfillable: dict[str, str] = {}
        self.backtracks: list[str] = []
        self.feasibility_warnings: list[str] = []
        self.solver_progress: list[str] = []

    def log_rejection(self, slot_id: str, kind: str, message: str) -> None:
        """Log a candidate rejected by a hard constraint."""
        self.rejections[kind] += 1
        samples = self.rejection_samples[kind]
        if len(samples) < MAX_SAMPLES_PER_KIND:
            samples.append(f"{slot_id}: {message}")
        if self.debug_mode:
            logger.debug(f"[REJECT] {kind} on slot {slot_id}: {message}")

    def log_unfillable(self, slot_id: str, reason: str) -> None:
        self.unfillable[slot_id] = reason
        if self.debug_mode:
            logger.debug(f"[UNFILLABLE] slot {slot_id}: {reason}")

    def log_backtrack(self, message: str) -> None:
        self.backtracks.append(message)
        if self.debug_mode:
            logger.debug(f"[BACKTRACK] {message}")

    def log_feasibility_warning(self, warning: str) -> None:
        """Log potential feasibility issues."""
        self.feasibility_warnings.append(warning)
        logger.debug(f"[FEASIBILITY] {warning}")

    def log_progress(self, message: str) -> None:
        """Log solver progress."""
        self.solver_progress.append(message)
        if self.debug_mode:
            logger.debug(f"[SOLVER] {message}")

    def get_summary(self) -> dict[str, Any]:
        """Get summary of all logged information."""
        return {
            "rejections": dict(self.rejections),
            "rejection_samples": dict(self.rejection_samples),
            "unfillable": dict(self.unfillable),
            "backtracks": list(self.backtracks),
            "feasibility_warnings": list(self.feasibility_warnings),
            "solver_progress": list(self.solver_progress),
        }
