"""
CP-SAT refinement pass for the "thorough" optimization level.

Builds a joint model over every empty slot: each slot picks at most one of its
pre-filtered (activity, facility) options, facilities respect their concurrency
limits, hard max-per-day rules hold, and repeats are penalized. The solution is
only a proposal; the schedule solver commits it slot by slot through the
constraint engine and falls back to the greedy pass for anything rejected.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import cast

from ortools.sat.python import cp_model

from scheduling.config import ConfigLoader
from scheduling.constraints.helpers import constraint_in_scope, matches_target
from scheduling.grid_index import GridIndex
from scheduling.models import Constraint, MaxPerDayParams, ScheduleSlot, SchedulingResources

from .callbacks import ProposalProgressCallback
from .logging import ConstraintLogger

logger = logging.getLogger(__name__)

Choice = tuple[str, str | None]

# Filling a slot must always outweigh any variety penalty
FILL_WEIGHT = 1000


class CpRefiner:
    """Proposes a joint assignment for empty slots with OR-Tools CP-SAT."""

    def __init__(
        self,
        targets: list[ScheduleSlot],
        options: dict[str, list[Choice]],
        grid: GridIndex,
        resources: SchedulingResources,
        constraints: list[Constraint],
        session_usage: Counter[tuple[str, str]],
        config: ConfigLoader,
        constraint_logger: ConstraintLogger,
    ):
        self.targets = targets
        self.target_ids = {s.id for s in targets}
        self.grid = grid
        self.resources = resources
        self.constraints = constraints
        self.session_usage = session_usage
        self.constraint_logger = constraint_logger

        self.time_limit = config.get_float("solver.cp_sat.time_limit_seconds")
        self.repeat_penalty = config.get_int("solver.cp_sat.repeat_penalty")
        max_options = config.get_int("solver.cp_sat.max_candidates_per_slot")
        self.options = {slot_id: choices[:max_options] for slot_id, choices in options.items()}

        self.model = cp_model.CpModel()
        # x[(slot_id, option_idx)] = BoolVar (1 if the slot takes that option)
        self.x: dict[tuple[str, int], cp_model.IntVar] = {}

    def _fixed_slots(self, slot: ScheduleSlot) -> list[ScheduleSlot]:
        """Already-filled slots of the same group and day (not part of the model)."""
        return [s for s in self.grid.group_day(slot.group_id, slot.date) if s.id not in self.target_ids]

    def _build_variables(self) -> None:
        for slot in self.targets:
            slot_vars = []
            for idx, _choice in enumerate(self.options.get(slot.id, [])):
                var = self.model.NewBoolVar(f"slot_{slot.id}_opt_{idx}")
                self.x[(slot.id, idx)] = var
                slot_vars.append(var)
            if slot_vars:
                self.model.AddAtMostOne(slot_vars)

    def _add_facility_limits(self) -> int:
        """At every start time, each facility holds at most its allowance of groups."""
        added = 0
        by_date: dict[object, list[ScheduleSlot]] = defaultdict(list)
        for slot in self.targets:
            by_date[slot.date].append(slot)

        for day, day_slots in by_date.items():
            fixed = [s for s in self.grid.day(day) if s.id not in self.target_ids and s.facility_id]
            for point in sorted({s.start_time for s in day_slots}):
                covering = [s for s in day_slots if s.start_time <= point < s.end_time]
                per_facility: dict[str, list[tuple[str, cp_model.IntVar, bool]]] = defaultdict(list)
                for slot in covering:
                    for idx, (activity_id, facility_id) in enumerate(self.options.get(slot.id, [])):
                        if facility_id is None:
                            continue
                        shareable = self.resources.activity_by_id[activity_id].allows_shared_facility
                        per_facility[facility_id].append((slot.id, self.x[(slot.id, idx)], shareable))

                for facility_id, entries in per_facility.items():
                    if len({slot_id for slot_id, _, _ in entries}) < 2:
                        continue
                    facility = self.resources.facility_by_id[facility_id]
                    occupied = {
                        s.group_id for s in fixed if s.facility_id == facility_id and s.start_time <= point < s.end_time
                    }
                    allowance = max(facility.max_concurrent_groups - len(occupied), 0)
                    self.model.Add(sum(var for _, var, _ in entries) <= allowance)
                    added += 1

                    for slot_id, var, shareable in entries:
                        if shareable:
                            continue
                        others = [other for other_id, other, _ in entries if other_id != slot_id]
                        self.model.Add(sum(others) == 0).OnlyEnforceIf(var)
                        added += 1
        return added

    def _add_max_per_day_limits(self) -> int:
        """Hard max-per-day rules, counting assignments already in the grid."""
        added = 0
        rules = [c for c in self.constraints if c.is_hard and c.kind == "max_per_day"]
        if not rules:
            return 0

        group_days: dict[tuple[str, object], list[ScheduleSlot]] = defaultdict(list)
        for slot in self.targets:
            group_days[(slot.group_id, slot.date)].append(slot)

        for rule in rules:
            max_count = cast(MaxPerDayParams, rule.params).max_count
            for day_slots in group_days.values():
                if not constraint_in_scope(rule, day_slots[0]):
                    continue
                existing = Counter(s.activity_id for s in self._fixed_slots(day_slots[0]) if s.activity_id)
                by_activity: dict[str, list[cp_model.IntVar]] = defaultdict(list)
                for slot in day_slots:
                    for idx, (activity_id, _) in enumerate(self.options.get(slot.id, [])):
                        if matches_target(rule.targets.activity_ids, activity_id):
                            by_activity[activity_id].append(self.x[(slot.id, idx)])
                for activity_id, variables in by_activity.items():
                    self.model.Add(sum(variables) <= max(max_count - existing[activity_id], 0))
                    added += 1
        return added

    def _build_objective(self) -> None:
        terms: list[cp_model.LinearExpr] = []
        group_day_activity: dict[tuple[str, object, str], list[cp_model.IntVar]] = defaultdict(list)

        for slot in self.targets:
            for idx, (activity_id, _) in enumerate(self.options.get(slot.id, [])):
                var = self.x[(slot.id, idx)]
                prior = self.session_usage[(slot.group_id, activity_id)]
                terms.append((FILL_WEIGHT - self.repeat_penalty * prior) * var)
                group_day_activity[(slot.group_id, slot.date, activity_id)].append(var)

        for (group_id, day, activity_id), variables in group_day_activity.items():
            existing = sum(
                1
                for s in self.grid.group_day(group_id, day)
                if s.id not in self.target_ids and s.activity_id == activity_id
            )
            if len(variables) + existing < 2:
                continue
            excess = self.model.NewIntVar(0, len(variables) + existing, f"repeat_{group_id}_{day}_{activity_id}")
            self.model.Add(excess >= sum(variables) + existing - 1)
            terms.append(-self.repeat_penalty * excess)

        self.model.Maximize(sum(terms))

    def propose(self) -> dict[str, Choice]:
        """Solve the model and return slot id -> (activity id, facility id)."""
        self._build_variables()
        if not self.x:
            return {}

        limits = self._add_facility_limits() + self._add_max_per_day_limits()
        self._build_objective()
        self.constraint_logger.log_progress(f"CP-SAT model: {len(self.x)} options, {limits} limit constraints")

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.time_limit
        # Single worker + fixed seed keeps proposals reproducible
        solver.parameters.num_search_workers = 1
        solver.parameters.random_seed = 0

        callback = ProposalProgressCallback(self.constraint_logger)
        status = solver.Solve(self.model, callback)

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            self.constraint_logger.log_progress(f"CP-SAT returned {solver.StatusName(status)}; using greedy only")
            return {}

        proposals: dict[str, Choice] = {}
        for slot in self.targets:
            for idx, choice in enumerate(self.options.get(slot.id, [])):
                if solver.Value(self.x[(slot.id, idx)]) == 1:
                    proposals[slot.id] = choice
                    break
        logger.debug(
            f"CP-SAT {solver.StatusName(status)}, {callback.solution_count} solution(s): {len(proposals)} proposals"
        )
        return proposals
