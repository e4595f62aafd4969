"""Solution Analysis - Pure functions for summarizing a solved grid.

All functions take explicit parameters and have no side effects.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from scheduling.models import ScheduleSlot, SchedulingResources


def calculate_group_fill(slots: list[ScheduleSlot], resources: SchedulingResources) -> dict[str, dict[str, Any]]:
    """Filled vs total slots per group, keyed by group name.

    Args:
        slots: The grid after solving
        resources: Resource lookups (for group names)

    Returns:
        Dict of group name -> {"total", "filled", "fill_rate"}
    """
    totals: dict[str, int] = defaultdict(int)
    filled: dict[str, int] = defaultdict(int)
    for slot in slots:
        group = resources.group_by_id.get(slot.group_id)
        name = group.name if group else slot.group_id
        totals[name] += 1
        if slot.is_filled:
            filled[name] += 1

    return {
        name: {
            "total": total,
            "filled": filled[name],
            "fill_rate": round(filled[name] / total, 3) if total else 0.0,
        }
        for name, total in sorted(totals.items())
    }


def calculate_activity_spread(slots: list[ScheduleSlot], resources: SchedulingResources) -> dict[str, int]:
    """How many times each activity was scheduled, most used first."""
    counts: Counter[str] = Counter()
    for slot in slots:
        if slot.activity_id is None:
            continue
        activity = resources.activity_by_id.get(slot.activity_id)
        counts[activity.name if activity else slot.activity_id] += 1
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def find_repeated_days(slots: list[ScheduleSlot]) -> list[dict[str, Any]]:
    """(group, date, activity) combinations scheduled more than once."""
    counts: Counter[tuple[str, str, str]] = Counter(
        (s.group_id, s.date.isoformat(), s.activity_id) for s in slots if s.activity_id is not None
    )
    return [
        {"group_id": group_id, "date": day, "activity_id": activity_id, "count": count}
        for (group_id, day, activity_id), count in sorted(counts.items())
        if count > 1
    ]


def analyze_solution(slots: list[ScheduleSlot], resources: SchedulingResources) -> dict[str, Any]:
    """Post-solve summary attached to the solver output."""
    total = len(slots)
    filled = sum(1 for s in slots if s.is_filled)
    return {
        "total_slots": total,
        "filled_slots": filled,
        "fill_rate": round(filled / total, 3) if total else 0.0,
        "groups": calculate_group_fill(slots, resources),
        "activity_spread": calculate_activity_spread(slots, resources),
        "repeated_days": find_repeated_days(slots),
    }
