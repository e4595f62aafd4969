"""
Slot Grid Builder - expands day templates into dated, empty schedule slots.

One slot is produced per (date x active group x schedulable template slot).
Slot identity is derived from (session, group, date, start time), so rebuilding
from the same inputs yields the same ids and never duplicates a cell.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import date

from .config import ConfigLoader
from .errors import ValidationError
from .grid_index import slot_sort_key
from .models import DayTemplate, Group, ScheduleSlot, Session
from .time_utils import date_range, format_hhmm, ranges_overlap

logger = logging.getLogger(__name__)

# Fixed namespace so slot ids are stable across processes
SLOT_NAMESPACE = uuid.UUID("6f1c2a9e-4b7d-5e38-9a21-0c4f8d3b7e65")


def make_slot_id(session_id: str, group_id: str, day: date, start: str) -> str:
    """Deterministic slot id for a grid cell."""
    return str(uuid.uuid5(SLOT_NAMESPACE, f"{session_id}:{group_id}:{day.isoformat()}:{start}"))


def _validate_inputs(
    session: Session,
    groups: list[Group],
    template: DayTemplate | None,
    templates_by_date: Mapping[date, DayTemplate | None] | None,
    max_days: int,
) -> None:
    if session.end_date < session.start_date:
        raise ValidationError(
            f"Session '{session.name}' ends ({session.end_date}) before it starts ({session.start_date})"
        )

    if session.day_count > max_days:
        raise ValidationError(f"Session '{session.name}' spans {session.day_count} days; the maximum is {max_days}")

    if not groups:
        raise ValidationError(f"Session '{session.name}' has no active groups to schedule")

    foreign = [g.name for g in groups if g.session_id != session.id]
    if foreign:
        raise ValidationError(f"Groups {foreign} do not belong to session '{session.name}'")

    if template is None and not templates_by_date:
        raise ValidationError("A day template or a per-day template mapping is required")

    provided: list[DayTemplate] = []
    if template is not None:
        provided.append(template)
    if templates_by_date:
        provided.extend(t for t in templates_by_date.values() if t is not None)

    for tpl in provided:
        if not tpl.schedulable_slots:
            raise ValidationError(f"Day template '{tpl.name}' has no schedulable activity slots")
        _check_template_overlaps(tpl)


def _check_template_overlaps(template: DayTemplate) -> None:
    """Schedulable slots must not share a start time or overlap; each becomes one grid cell per group."""
    slots = sorted(template.schedulable_slots, key=lambda s: (s.start_time, s.end_time))
    for i, first in enumerate(slots):
        for second in slots[i + 1 :]:
            if ranges_overlap(first.start_time, first.end_time, second.start_time, second.end_time):
                raise ValidationError(
                    f"Day template '{template.name}' slots '{first.name}' "
                    f"({format_hhmm(first.start_time)}-{format_hhmm(first.end_time)}) and '{second.name}' "
                    f"({format_hhmm(second.start_time)}-{format_hhmm(second.end_time)}) overlap"
                )


def build_slot_grid(
    session: Session,
    groups: list[Group],
    template: DayTemplate | None = None,
    templates_by_date: Mapping[date, DayTemplate | None] | None = None,
    existing_slots: Iterable[ScheduleSlot] | None = None,
    config: ConfigLoader | None = None,
) -> list[ScheduleSlot]:
    """Expand templates into the session's slot grid.

    Args:
        session: The session whose date range is expanded
        groups: Session groups; inactive or deleted groups are skipped
        template: Default template for dates not in ``templates_by_date``
        templates_by_date: Per-date overrides. A ``None`` value marks a free day
            (zero slots). Dates missing from the mapping use ``template``, or are
            free days when no default template is given.
        existing_slots: Current grid. Cells already present (same group, date and
            start time) are kept untouched, including their assignments; any other
            existing slots of the session are carried through unchanged.
        config: Config loader (defaults to the singleton)

    Returns:
        Full grid, sorted by date, start time, then group order

    Raises:
        ValidationError: On malformed input. No partial grid is produced.
    """
    config = config or ConfigLoader.get_instance()
    max_days = config.get_int("grid.max_days")

    active_groups = [g for g in groups if g.is_active and not g.is_deleted]
    _validate_inputs(session, active_groups, template, templates_by_date, max_days)

    mapping = dict(templates_by_date or {})
    outside = [d for d in mapping if d < session.start_date or d > session.end_date]
    if outside:
        logger.debug(f"Ignoring {len(outside)} template mapping(s) outside session '{session.name}' dates")

    existing_by_key: dict[tuple, ScheduleSlot] = {}
    carried: list[ScheduleSlot] = []
    for slot in existing_slots or ():
        if slot.session_id != session.id:
            continue
        if slot.key in existing_by_key:
            # Duplicate cells are a conflict for the detector to report, not ours to resolve
            carried.append(slot)
            continue
        existing_by_key[slot.key] = slot

    grid: list[ScheduleSlot] = []
    created = 0
    free_days = 0
    for day in date_range(session.start_date, session.end_date):
        day_template = mapping[day] if day in mapping else template
        if day_template is None:
            free_days += 1
            continue

        for group in active_groups:
            for tpl_slot in day_template.schedulable_slots:
                key = (group.id, day, tpl_slot.start_time)
                existing = existing_by_key.pop(key, None)
                if existing is not None:
                    grid.append(existing)
                    continue
                grid.append(
                    ScheduleSlot(
                        id=make_slot_id(session.id, group.id, day, format_hhmm(tpl_slot.start_time)),
                        session_id=session.id,
                        group_id=group.id,
                        date=day,
                        start_time=tpl_slot.start_time,
                        end_time=tpl_slot.end_time,
                        day_template_slot_id=tpl_slot.id,
                    )
                )
                created += 1

    # Existing slots that no template cell claimed (manual additions, removed groups)
    grid.extend(existing_by_key.values())
    grid.extend(carried)

    groups_by_id = {g.id: g for g in groups}
    grid.sort(key=lambda s: slot_sort_key(s, groups_by_id))

    logger.debug(
        f"Built grid for session '{session.name}': {len(grid)} slots "
        f"({created} new, {free_days} free days, {len(active_groups)} groups)"
    )
    return grid
