"""
Schedule Solver - fills empty slots with (activity, facility, staff) assignments.

Greedy with bounded local backtracking. Slots are processed in a fixed order
(date, start time, group order) and only empty, unlocked slots are touched;
existing assignments are never overwritten. A slot that cannot be filled is
left empty and reported, never raised.
"""

from __future__ import annotations

import logging
import time as timer
from collections import Counter
from dataclasses import dataclass, field

from scheduling.config import ConfigLoader
from scheduling.constraints import ConstraintEngine, Violation
from scheduling.grid_index import GridIndex, facility_has_room, find_broken_references, slot_sort_key
from scheduling.models import Activity, Facility, Group, ScheduleSlot

from .cp_refiner import CpRefiner
from .logging import ConstraintLogger
from .models import OptimizationLevel, SlotViolation, SolverInput, SolverOutput, SolverStatus
from .solution import analyze_solution
from .staff_assignment import StaffAssigner

logger = logging.getLogger(__name__)

Choice = tuple[str, str | None]  # (activity_id, facility_id)


@dataclass
class _Commit:
    """An assignment made by this run."""

    slot: ScheduleSlot
    understaffed: bool = False
    soft_violations: list[Violation] = field(default_factory=list)


class ScheduleSolver:
    """Solver over one session's grid snapshot.

    Args:
        input_data: Grid plus every resource, constraint and forecast it needs
        config: Config loader (defaults to the singleton)
    """

    def __init__(self, input_data: SolverInput, config: ConfigLoader | None = None):
        self.input = input_data
        self.config = config or ConfigLoader.get_instance()
        self.resources = input_data.resources()

        self.optimization_level = input_data.optimization_level or OptimizationLevel(
            self.config.get_str("solver.optimization_level")
        )
        self.max_candidate_attempts = self.config.get_int("solver.max_candidate_attempts")
        self.backtracks_left = self.config.get_int("solver.max_backtrack_attempts")
        self.auto_assign_staff = self.config.get_bool("solver.staff.auto_assign")

        self.debug_mode = logger.isEnabledFor(logging.DEBUG)
        self.constraint_logger = ConstraintLogger(debug_mode=self.debug_mode)
        self.engine = ConstraintEngine(
            input_data.constraints,
            self.resources,
            weather=input_data.weather,
            config=self.config,
            disabled_kinds=input_data.disabled_constraint_kinds,
        )
        self.staff_assigner = StaffAssigner(self.resources, self.engine, self.config, input_data.slots)

        self.grid = GridIndex(input_data.slots)
        self._original: dict[str, ScheduleSlot] = {s.id: s for s in input_data.slots}
        self._commits: dict[str, _Commit] = {}
        self._day_usage: Counter[tuple[str, object, str]] = Counter()
        self._session_usage: Counter[tuple[str, str]] = Counter()

    # ------------------------------------------------------------------
    # Usage tracking
    # ------------------------------------------------------------------

    def _count_usage(self, slot: ScheduleSlot, delta: int) -> None:
        if slot.activity_id is None:
            return
        self._day_usage[(slot.group_id, slot.date, slot.activity_id)] += delta
        self._session_usage[(slot.group_id, slot.activity_id)] += delta

    def _commit(self, commit: _Commit) -> None:
        self.grid.put(commit.slot)
        self.staff_assigner.record(commit.slot)
        self._count_usage(commit.slot, 1)
        self._commits[commit.slot.id] = commit

    def _release(self, slot_id: str) -> _Commit:
        """Undo an assignment made by this run, restoring the slot's input state."""
        commit = self._commits.pop(slot_id)
        self._count_usage(commit.slot, -1)
        self.grid.put(self._original[slot_id])
        self.staff_assigner.record(self._original[slot_id])
        return commit

    # ------------------------------------------------------------------
    # Candidate generation
    # ------------------------------------------------------------------

    def candidate_activities(self, slot: ScheduleSlot, group: Group) -> list[Activity]:
        """Active, age-compatible activities; least used first, then closest duration."""
        candidates = [a for a in self.resources.active_activities if a.accepts_group(group)]
        return sorted(
            candidates,
            key=lambda a: (
                self._day_usage[(slot.group_id, slot.date, a.id)],
                self._session_usage[(slot.group_id, a.id)],
                abs(a.duration_minutes - slot.duration_minutes),
                a.name,
                a.id,
            ),
        )

    def facility_has_room(self, slot: ScheduleSlot, facility: Facility, activity: Activity) -> bool:
        return facility_has_room(self.grid, self.resources, slot, facility, activity)

    def facility_options(self, slot: ScheduleSlot, activity: Activity, group: Group) -> list[str | None]:
        """Facilities the activity may use in this slot, free and large enough first.

        ``None`` (no facility) is offered only when no active facility could ever
        host the activity; a pre-set facility on the slot is respected.
        """
        hostable = [f for f in self.resources.active_facilities if activity.can_use_facility(f.id)]
        if slot.facility_id is not None:
            hostable = [f for f in hostable if f.id == slot.facility_id]
            if not hostable:
                return []
        elif not hostable:
            return [None]

        def too_small(f: Facility) -> bool:
            return f.capacity is not None and group.current_count > f.capacity

        def busy(f: Facility) -> bool:
            return any(
                s.facility_id == f.id
                for s in self.grid.overlapping(slot.date, slot.start_time, slot.end_time, exclude_id=slot.id)
            )

        free = [f for f in hostable if self.facility_has_room(slot, f, activity)]
        free.sort(key=lambda f: (too_small(f), busy(f), f.name, f.id))
        return [f.id for f in free]

    def candidate_choices(self, slot: ScheduleSlot) -> list[Choice]:
        group = self.resources.group_by_id[slot.group_id]
        choices: list[Choice] = []
        for activity in self.candidate_activities(slot, group):
            for facility_id in self.facility_options(slot, activity, group):
                choices.append((activity.id, facility_id))
        return choices

    # ------------------------------------------------------------------
    # Filling
    # ------------------------------------------------------------------

    def _try_choice(self, slot: ScheduleSlot, choice: Choice) -> bool:
        """Evaluate one choice and commit it when no hard constraint blocks it."""
        activity_id, facility_id = choice
        activity = self.resources.activity_by_id[activity_id]
        candidate = slot.model_copy(update={"activity_id": activity_id, "facility_id": facility_id})

        verdict = self.engine.evaluate(candidate, self.grid)
        if not verdict.is_allowed:
            for violation in verdict.hard_violations:
                self.constraint_logger.log_rejection(slot.id, violation.kind, violation.message)
            return False

        if self.auto_assign_staff:
            staff_ids, understaffed = self.staff_assigner.assign(candidate, activity, self.grid)
            if staff_ids != candidate.staff_ids:
                candidate = candidate.model_copy(update={"staff_ids": staff_ids})
                verdict = self.engine.evaluate(candidate, self.grid)
        else:
            understaffed = len(candidate.staff_ids) < activity.required_staff_count

        self._commit(_Commit(slot=candidate, understaffed=understaffed, soft_violations=verdict.soft_violations))
        return True

    def fill_slot(self, slot: ScheduleSlot, exclude: set[Choice] | None = None) -> tuple[bool, str]:
        """Fill one empty slot with the first allowed choice.

        Returns:
            (filled, reason) where reason explains an empty result
        """
        exclude = exclude or set()
        choices = [c for c in self.candidate_choices(slot) if c not in exclude]
        if not choices:
            group = self.resources.group_by_id[slot.group_id]
            if not any(a.accepts_group(group) for a in self.resources.active_activities):
                return False, f"No active activity fits {group.name} (ages {group.age_label})"
            return False, "No activity has a free facility in this time window"

        for attempt, choice in enumerate(choices):
            if attempt >= self.max_candidate_attempts:
                return False, f"Gave up after {self.max_candidate_attempts} candidate attempts"
            if self._try_choice(slot, choice):
                return True, ""
        return False, "Every candidate violates a hard constraint"

    def _backtrack(self, slot: ScheduleSlot) -> bool:
        """Re-choose the latest slot this run filled earlier the same day for the group, then retry."""
        if self.backtracks_left <= 0:
            return False

        earlier = [
            c.slot
            for c in self._commits.values()
            if c.slot.group_id == slot.group_id and c.slot.date == slot.date and c.slot.start_time < slot.start_time
        ]
        if not earlier:
            return False
        previous = max(earlier, key=lambda s: (s.start_time, s.id))
        self.backtracks_left -= 1

        released = self._release(previous.id)
        previous_choice: Choice = (released.slot.activity_id or "", released.slot.facility_id)

        refilled, _ = self.fill_slot(self._original[previous.id], exclude={previous_choice})
        if refilled:
            filled, _ = self.fill_slot(slot)
            if filled:
                self.constraint_logger.log_backtrack(
                    f"Re-chose slot {previous.id} so slot {slot.id} "
                    f"({slot.date} {slot.start_time:%H:%M}) could be filled"
                )
                return True
            self._release(previous.id)

        self._commit(released)
        return False

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def _target_slots(self) -> list[ScheduleSlot]:
        """Empty, unlocked slots of active groups in processing order."""
        targets = []
        for slot in self.input.slots:
            group = self.resources.group_by_id[slot.group_id]
            if slot.is_filled or slot.is_locked or not group.is_active:
                continue
            targets.append(slot)
        return sorted(targets, key=lambda s: slot_sort_key(s, self.resources.group_by_id))

    def _infeasible(self, reasons: list[str]) -> SolverOutput:
        for reason in reasons:
            self.constraint_logger.log_feasibility_warning(reason)
        return SolverOutput(
            slots=list(self.input.slots),
            status=SolverStatus.INFEASIBLE,
            infeasible_reasons=reasons,
            warnings=[f"Grid is malformed: {len(reasons)} broken reference(s)"],
            trace=self.constraint_logger.get_summary(),
        )

    def _run_cp_refinement(self, targets: list[ScheduleSlot]) -> None:
        """Thorough mode: let CP-SAT propose a joint assignment, then commit it slot by slot."""
        options = {slot.id: self.candidate_choices(slot) for slot in targets}
        refiner = CpRefiner(
            targets=targets,
            options=options,
            grid=self.grid,
            resources=self.resources,
            constraints=self.engine.constraints,
            session_usage=self._session_usage,
            config=self.config,
            constraint_logger=self.constraint_logger,
        )
        proposals = refiner.propose()

        accepted = 0
        for slot in targets:
            choice = proposals.get(slot.id)
            if choice is None:
                continue
            if self._try_choice(slot, choice):
                accepted += 1
        self.constraint_logger.log_progress(f"CP-SAT proposed {len(proposals)} assignments, {accepted} accepted")

    def solve(self) -> SolverOutput:
        """Fill the grid. Never raises for scarcity; malformed grids yield an infeasible result."""
        started = timer.perf_counter()
        session_id = self.input.context.session_id if self.input.context else None
        reasons = find_broken_references(self.input.slots, self.resources, session_id=session_id)
        if reasons:
            logger.debug(f"Solver aborted: {len(reasons)} broken references")
            return self._infeasible(reasons)

        for slot in self.input.slots:
            self._count_usage(slot, 1)

        targets = self._target_slots()
        self.constraint_logger.log_progress(
            f"Filling {len(targets)} of {len(self.input.slots)} slots ({self.optimization_level.value})"
        )

        if self.optimization_level == OptimizationLevel.THOROUGH and targets:
            self._run_cp_refinement(targets)

        unfillable: list[str] = []
        for slot in targets:
            if slot.id in self._commits:
                continue
            filled, reason = self.fill_slot(slot)
            if not filled and self.optimization_level != OptimizationLevel.FAST:
                filled = self._backtrack(slot)
            if not filled:
                unfillable.append(slot.id)
                self.constraint_logger.log_unfillable(slot.id, reason)

        return self._build_output(targets, unfillable, timer.perf_counter() - started)

    def _build_output(self, targets: list[ScheduleSlot], unfillable: list[str], elapsed: float) -> SolverOutput:
        slots = [self.grid.get(s.id) or s for s in self.input.slots]
        filled_ids = [s.id for s in targets if s.id in self._commits]
        understaffed = [s.id for s in targets if s.id in self._commits and self._commits[s.id].understaffed]
        soft = [
            SlotViolation(slot_id=s.id, violation=v)
            for s in targets
            if s.id in self._commits
            for v in self._commits[s.id].soft_violations
        ]

        if not targets or len(filled_ids) == len(targets):
            status = SolverStatus.COMPLETED
        elif not filled_ids:
            status = SolverStatus.FAILED
        else:
            status = SolverStatus.PARTIAL

        warnings = []
        if unfillable:
            warnings.append(f"{len(unfillable)} slot(s) could not be filled and were left empty")
        if understaffed:
            warnings.append(f"{len(understaffed)} slot(s) are understaffed")

        stats = {
            "total_slots": len(slots),
            "target_slots": len(targets),
            "filled": len(filled_ids),
            "unfillable": len(unfillable),
            "understaffed": len(understaffed),
            "soft_violations": len(soft),
            "evaluations": self.engine.evaluation_count,
            "backtracks": len(self.constraint_logger.backtracks),
            "optimization_level": self.optimization_level.value,
            "elapsed_seconds": round(elapsed, 3),
        }
        logger.debug(f"Solver finished: {stats}")

        return SolverOutput(
            slots=slots,
            status=status,
            filled_slot_ids=filled_ids,
            unfillable_slot_ids=unfillable,
            understaffed_slot_ids=understaffed,
            soft_violations=soft,
            stats=stats,
            warnings=warnings,
            trace=self.constraint_logger.get_summary(),
            analysis=analyze_solution(slots, self.resources),
        )


def solve_schedule(input_data: SolverInput, config: ConfigLoader | None = None) -> SolverOutput:
    """Convenience wrapper: build a solver and run it."""
    return ScheduleSolver(input_data, config=config).solve()
