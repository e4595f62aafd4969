"""Schedule analytics - read-only aggregates over a grid.

Facility utilization is measured against real capacity: the distinct time
windows in which the facility could host groups, times how many groups it can
take at once.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, time

from pydantic import BaseModel, Field

from .models import Activity, Facility, Group, ScheduleSlot, Session, Staff

_DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class OverviewStats(BaseModel):
    total_slots: int = 0
    filled_slots: int = 0
    empty_slots: int = 0
    total_groups: int = 0
    total_activities: int = 0
    total_facilities: int = 0
    total_staff: int = 0
    session_days: int = 0
    average_slots_per_day: int = 0


class ActivityDistribution(BaseModel):
    activity_id: str
    activity_name: str
    count: int
    percentage: int
    total_minutes: int


class NamedCount(BaseModel):
    name: str
    count: int


class FacilityUtilization(BaseModel):
    facility_id: str
    facility_name: str
    capacity_slots: int
    used_slots: int
    utilization_rate: int
    top_activities: list[NamedCount] = Field(default_factory=list)


class GroupStats(BaseModel):
    group_id: str
    group_name: str
    color: str | None = None
    total_slots: int
    filled_slots: int
    unique_activities: int
    most_frequent_activity: str | None = None


class DailyStats(BaseModel):
    date: date
    day_name: str
    total_slots: int
    filled_slots: int
    activity_breakdown: list[NamedCount] = Field(default_factory=list)


class ScheduleAnalytics(BaseModel):
    overview: OverviewStats
    activity_distribution: list[ActivityDistribution] = Field(default_factory=list)
    facility_utilization: list[FacilityUtilization] = Field(default_factory=list)
    group_stats: list[GroupStats] = Field(default_factory=list)
    daily_stats: list[DailyStats] = Field(default_factory=list)
    completion_rate: int = 0


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def _ranked(counts: Counter[str], names: dict[str, str], limit: int) -> list[NamedCount]:
    """Most frequent first; ties by name."""
    items = sorted(counts.items(), key=lambda item: (-item[1], names.get(item[0], item[0]), item[0]))
    return [NamedCount(name=names.get(key, key), count=count) for key, count in items[:limit]]


def calculate_facility_utilization(
    facilities: list[Facility], slots: list[ScheduleSlot], activity_names: dict[str, str]
) -> list[FacilityUtilization]:
    """Bookings per active facility against its true concurrent capacity."""
    windows: set[tuple[date, time, time]] = {(s.date, s.start_time, s.end_time) for s in slots}
    by_facility: dict[str, list[ScheduleSlot]] = defaultdict(list)
    for slot in slots:
        if slot.facility_id is not None:
            by_facility[slot.facility_id].append(slot)

    results = []
    for facility in facilities:
        if not facility.is_available:
            continue
        booked = by_facility.get(facility.id, [])
        capacity_slots = len(windows) * facility.max_concurrent_groups
        counts = Counter(s.activity_id for s in booked if s.activity_id is not None)
        results.append(
            FacilityUtilization(
                facility_id=facility.id,
                facility_name=facility.name,
                capacity_slots=capacity_slots,
                used_slots=len(booked),
                utilization_rate=min(_percent(len(booked), capacity_slots), 100),
                top_activities=_ranked(counts, activity_names, 3),
            )
        )
    results.sort(key=lambda u: (-u.utilization_rate, u.facility_name, u.facility_id))
    return results


def calculate_schedule_analytics(
    session: Session,
    groups: list[Group],
    activities: list[Activity],
    facilities: list[Facility],
    slots: list[ScheduleSlot],
    staff: list[Staff],
) -> ScheduleAnalytics:
    """Dashboard analytics for one session's grid."""
    activity_names = {a.id: a.name for a in activities}
    filled = [s for s in slots if s.activity_id is not None]
    session_days = session.day_count

    overview = OverviewStats(
        total_slots=len(slots),
        filled_slots=len(filled),
        empty_slots=len(slots) - len(filled),
        total_groups=sum(1 for g in groups if g.is_active and not g.is_deleted),
        total_activities=sum(1 for a in activities if a.is_available),
        total_facilities=sum(1 for f in facilities if f.is_available),
        total_staff=sum(1 for s in staff if s.is_available),
        session_days=session_days,
        average_slots_per_day=round(len(slots) / session_days) if slots and session_days > 0 else 0,
    )

    counts: Counter[str] = Counter()
    minutes: Counter[str] = Counter()
    for slot in filled:
        counts[slot.activity_id] += 1
        minutes[slot.activity_id] += slot.duration_minutes
    distribution = [
        ActivityDistribution(
            activity_id=activity_id,
            activity_name=activity_names.get(activity_id, "Unknown"),
            count=count,
            percentage=_percent(count, len(filled)),
            total_minutes=minutes[activity_id],
        )
        for activity_id, count in counts.items()
    ]
    distribution.sort(key=lambda d: (-d.count, d.activity_name, d.activity_id))

    group_stats = []
    for group in sorted(groups, key=lambda g: (g.sort_order, g.name, g.id)):
        if not group.is_active or group.is_deleted:
            continue
        group_slots = [s for s in slots if s.group_id == group.id]
        group_counts = Counter(s.activity_id for s in group_slots if s.activity_id is not None)
        top = _ranked(group_counts, activity_names, 1)
        group_stats.append(
            GroupStats(
                group_id=group.id,
                group_name=group.name,
                color=group.color,
                total_slots=len(group_slots),
                filled_slots=sum(group_counts.values()),
                unique_activities=len(group_counts),
                most_frequent_activity=top[0].name if top else None,
            )
        )

    by_date: dict[date, list[ScheduleSlot]] = defaultdict(list)
    for slot in slots:
        by_date[slot.date].append(slot)
    daily_stats = []
    for day, day_slots in sorted(by_date.items()):
        day_counts = Counter(s.activity_id for s in day_slots if s.activity_id is not None)
        daily_stats.append(
            DailyStats(
                date=day,
                day_name=_DAY_NAMES[day.weekday()],
                total_slots=len(day_slots),
                filled_slots=sum(day_counts.values()),
                activity_breakdown=_ranked(day_counts, activity_names, 5),
            )
        )

    return ScheduleAnalytics(
        overview=overview,
        activity_distribution=distribution,
        facility_utilization=calculate_facility_utilization(facilities, slots, activity_names),
        group_stats=group_stats,
        daily_stats=daily_stats,
        completion_rate=_percent(len(filled), len(slots)),
    )
