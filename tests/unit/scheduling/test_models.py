"""
Unit tests for domain models.

Covers lifecycle transitions, age matching, time validation and the
constraint params discriminated union.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from scheduling.models import (
    Constraint,
    MaxPerDayParams,
    ScheduleSlot,
    SequencingParams,
    Session,
    SessionStatus,
    SlotType,
)

from .conftest import DAY1, create_activity, create_group, create_session, create_slot, t


class TestSessionLifecycle:
    """Forward transitions plus cancel from any non-terminal state."""

    def test_forward_transitions(self):
        session = create_session(status=SessionStatus.DRAFT)
        assert session.can_transition_to(SessionStatus.PLANNING)
        assert not session.can_transition_to(SessionStatus.ACTIVE)

    def test_cancel_from_non_terminal(self):
        for status in (SessionStatus.DRAFT, SessionStatus.PLANNING, SessionStatus.ACTIVE):
            assert create_session(status=status).can_transition_to(SessionStatus.CANCELLED)

    def test_terminal_states(self):
        for status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
            session = create_session(status=status)
            assert not any(session.can_transition_to(s) for s in SessionStatus)

    def test_day_count_is_inclusive(self):
        assert create_session().day_count == 3


class TestAgeMatching:
    """Group age range must lie inside the activity's bounds."""

    def test_range_inside_bounds(self):
        activity = create_activity(min_age=7, max_age=12)
        assert activity.accepts_group(create_group(age_min=8, age_max=10))

    def test_range_outside_bounds(self):
        activity = create_activity(min_age=12, max_age=16)
        assert not activity.accepts_group(create_group(age_min=8, age_max=10))

    def test_partial_overlap_is_rejected(self):
        """A group of 8-13 does not fit an activity capped at 12."""
        activity = create_activity(min_age=7, max_age=12)
        assert not activity.accepts_group(create_group(age_min=8, age_max=13))

    def test_unknown_bounds_never_exclude(self):
        assert create_activity().accepts_group(create_group(age_min=3, age_max=99))
        assert create_activity(min_age=10).accepts_group(create_group(age_min=None, age_max=None))

    def test_facility_allow_list(self):
        """Empty facility list means any facility."""
        assert create_activity().can_use_facility("f9")
        restricted = create_activity(facility_ids=["f1"])
        assert restricted.can_use_facility("f1")
        assert not restricted.can_use_facility("f2")


class TestScheduleSlot:
    def test_end_must_follow_start(self):
        with pytest.raises(PydanticValidationError):
            create_slot(start="10:00", end="09:00")

    def test_times_serialize_as_hhmm(self):
        """Dates stay calendar dates; times are HH:MM."""
        data = create_slot(start="09:00", end="10:30").model_dump(mode="json")
        assert data["start_time"] == "09:00"
        assert data["end_time"] == "10:30"
        assert data["date"] == "2024-07-01"

    def test_duration_and_seconds(self):
        slot = create_slot(start="09:15:30", end="10:45")
        assert slot.duration_minutes == 90
        assert slot.model_dump(mode="json")["start_time"] == "09:15"

    def test_parses_hhmm_strings(self):
        slot = ScheduleSlot.model_validate(
            {
                "id": "x",
                "session_id": "s",
                "group_id": "g",
                "date": "2024-07-01",
                "start_time": "09:00",
                "end_time": "10:00",
            }
        )
        assert slot.start_time == t("09:00")
        assert slot.date == DAY1
        assert slot.duration_minutes == 60
        assert slot.key == ("g", DAY1, t("09:00"))
        assert not slot.is_filled


class TestConstraintParams:
    """Params are a discriminated union keyed on ``kind``."""

    def test_parses_kind_specific_record(self):
        constraint = Constraint.model_validate(
            {
                "id": "c1",
                "name": "Swim after lunch",
                "params": {"kind": "sequencing", "before_activity_id": "lunch", "after_activity_id": "swim"},
            }
        )
        assert isinstance(constraint.params, SequencingParams)
        assert constraint.params.must_follow is True
        assert constraint.kind == "sequencing"
        assert constraint.is_hard

    def test_defaults_per_kind(self):
        constraint = Constraint.model_validate({"id": "c2", "name": "Once a day", "params": {"kind": "max_per_day"}})
        assert isinstance(constraint.params, MaxPerDayParams)
        assert constraint.params.max_count == 1

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            Constraint.model_validate({"id": "c3", "name": "Bad", "params": {"kind": "teleport"}})

    def test_priority_bounds(self):
        with pytest.raises(PydanticValidationError):
            Constraint.model_validate({"id": "c4", "name": "Bad", "priority": 11, "params": {"kind": "max_per_day"}})


def test_session_roundtrip_keeps_calendar_dates():
    """No timezone shift on dates."""
    session = Session.model_validate(create_session().model_dump(mode="json"))
    assert session.start_date == DAY1


def test_slot_type_values():
    assert SlotType("activity") is SlotType.ACTIVITY
