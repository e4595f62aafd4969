"""Wall-clock time helpers shared by the grid builder, engine and detector."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, time, timedelta


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def minutes_between(start: time, end: time) -> int:
    return to_minutes(end) - to_minutes(start)


def ranges_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open overlap: touching ranges (10:00-11:00, 11:00-12:00) do not overlap."""
    return start_a < end_b and start_b < end_a


def gap_minutes(start_a: time, end_a: time, start_b: time, end_b: time) -> int:
    """Minutes between two ranges; 0 when they touch or overlap."""
    if ranges_overlap(start_a, end_a, start_b, end_b):
        return 0
    if end_a <= start_b:
        return minutes_between(end_a, start_b)
    return minutes_between(end_b, start_a)


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield each calendar date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
