"""
Unit tests for the slot grid builder.

Covers grid shape, template handling, validation failures and idempotent rebuilds.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from scheduling.config import ConfigLoader
from scheduling.errors import ValidationError
from scheduling.grid_builder import build_slot_grid, make_slot_id

from .conftest import DAY1, DAY2, DAY3, create_group, create_meal_slot, create_session, create_slot, create_template, t


class TestGridShape:
    """One slot per date x active group x schedulable template slot."""

    def test_three_days_two_groups_one_slot(self):
        """Three days, two groups and one 09:00 slot give six empty slots."""
        session = create_session()
        groups = [create_group("g1"), create_group("g2")]

        grid = build_slot_grid(session, groups, template=create_template())

        assert len(grid) == 6
        assert all(s.activity_id is None and s.facility_id is None and s.staff_ids == [] for s in grid)
        assert {(s.group_id, s.date) for s in grid} == {(g, d) for g in ("g1", "g2") for d in (DAY1, DAY2, DAY3)}

    def test_non_activity_template_slots_are_skipped(self):
        """Meals and other non-schedulable blocks never become grid cells."""
        template = create_template([("09:00", "10:00"), ("10:30", "11:30")], extra_slots=[create_meal_slot()])

        grid = build_slot_grid(create_session(end=DAY1), [create_group()], template=template)

        assert [s.start_time for s in grid] == [t("09:00"), t("10:30")]

    def test_inactive_and_deleted_groups_are_skipped(self):
        """Only active, non-deleted groups get slots."""
        groups = [
            create_group("g1"),
            create_group("g2", is_active=False),
            create_group("g3", deleted_at="2024-06-01T00:00:00Z"),
        ]

        grid = build_slot_grid(create_session(end=DAY1), groups, template=create_template())

        assert [s.group_id for s in grid] == ["g1"]

    def test_output_order(self):
        """Sorted by date, start time, then group sort order."""
        groups = [create_group("g1", name="Zebras", sort_order=2), create_group("g2", name="Ants", sort_order=1)]
        template = create_template([("10:00", "11:00"), ("09:00", "10:00")])

        grid = build_slot_grid(create_session(end=DAY2), groups, template=template)

        keys = [(s.date, s.start_time, s.group_id) for s in grid]
        assert keys == [
            (DAY1, t("09:00"), "g2"),
            (DAY1, t("09:00"), "g1"),
            (DAY1, t("10:00"), "g2"),
            (DAY1, t("10:00"), "g1"),
            (DAY2, t("09:00"), "g2"),
            (DAY2, t("09:00"), "g1"),
            (DAY2, t("10:00"), "g2"),
            (DAY2, t("10:00"), "g1"),
        ]

    def test_slot_ids_are_deterministic(self):
        """Ids derive from session, group, date and start time."""
        session = create_session(end=DAY1)
        grid = build_slot_grid(session, [create_group()], template=create_template())

        assert grid[0].id == make_slot_id(session.id, "g1", DAY1, "09:00")
        assert grid[0].day_template_slot_id == "tpl-1-s0"


class TestPerDayTemplates:
    """Per-date template mapping and free days."""

    def test_mapping_overrides_default(self):
        """A mapped date uses its own template."""
        default = create_template([("09:00", "10:00")])
        special = create_template([("14:00", "15:00"), ("15:00", "16:00")], template_id="tpl-2")

        grid = build_slot_grid(
            create_session(), [create_group()], template=default, templates_by_date={DAY2: special}
        )

        by_day = {d: [s.start_time for s in grid if s.date == d] for d in (DAY1, DAY2, DAY3)}
        assert by_day[DAY1] == [t("09:00")]
        assert by_day[DAY2] == [t("14:00"), t("15:00")]
        assert by_day[DAY3] == [t("09:00")]

    def test_explicit_none_is_free_day(self):
        """A None entry yields zero slots for that date instead of an error."""
        grid = build_slot_grid(
            create_session(), [create_group()], template=create_template(), templates_by_date={DAY2: None}
        )

        assert {s.date for s in grid} == {DAY1, DAY3}

    def test_unmapped_dates_without_default_are_free(self):
        """With only a mapping, dates outside it produce no slots."""
        grid = build_slot_grid(create_session(), [create_group()], templates_by_date={DAY1: create_template()})

        assert {s.date for s in grid} == {DAY1}


class TestValidation:
    """Malformed input raises ValidationError and produces nothing."""

    def test_end_before_start(self):
        session = create_session(start=DAY3, end=DAY1)
        with pytest.raises(ValidationError, match="before it starts"):
            build_slot_grid(session, [create_group()], template=create_template())

    def test_too_many_days(self):
        """Range is capped by grid.max_days."""
        session = create_session(start=DAY1, end=DAY1 + timedelta(days=10))
        with ConfigLoader.use(ConfigLoader(overrides={"grid.max_days": 7})):
            with pytest.raises(ValidationError, match="maximum is 7"):
                build_slot_grid(session, [create_group()], template=create_template())

    def test_default_limit_allows_long_session(self):
        """180 days is allowed by default."""
        session = create_session(start=date(2024, 1, 1), end=date(2024, 1, 1) + timedelta(days=179))
        grid = build_slot_grid(session, [create_group()], template=create_template())
        assert len(grid) == 180

    def test_no_active_groups(self):
        with pytest.raises(ValidationError, match="no active groups"):
            build_slot_grid(create_session(), [create_group(is_active=False)], template=create_template())

    def test_no_template(self):
        with pytest.raises(ValidationError, match="template"):
            build_slot_grid(create_session(), [create_group()])

    def test_template_without_schedulable_slots(self):
        """A template made only of meals is rejected."""
        template = create_template([], extra_slots=[create_meal_slot()])
        with pytest.raises(ValidationError, match="no schedulable"):
            build_slot_grid(create_session(), [create_group()], template=template)

    def test_group_from_other_session(self):
        with pytest.raises(ValidationError, match="do not belong"):
            build_slot_grid(create_session(), [create_group(session_id="other")], template=create_template())

    def test_template_slots_sharing_a_start(self):
        """Two cells at 09:00 would get the same slot id; the template is rejected instead."""
        template = create_template([("09:00", "10:00"), ("09:00", "09:30")])

        with pytest.raises(ValidationError, match="overlap"):
            build_slot_grid(create_session(end=DAY1), [create_group()], template=template)

    def test_overlapping_template_slots(self):
        template = create_template([("09:00", "10:00"), ("09:30", "10:30")])

        with pytest.raises(ValidationError, match=r"\(09:00-10:00\) and 'Block 1' \(09:30-10:30\) overlap"):
            build_slot_grid(create_session(end=DAY1), [create_group()], template=template)

    def test_overlapping_per_day_template(self):
        """Per-date overrides are checked too."""
        special = create_template([("14:00", "15:00"), ("14:30", "15:30")], template_id="tpl-2")

        with pytest.raises(ValidationError, match="overlap"):
            build_slot_grid(
                create_session(), [create_group()], template=create_template(), templates_by_date={DAY2: special}
            )

    def test_back_to_back_template_slots(self):
        template = create_template([("09:00", "10:00"), ("10:00", "11:00")])

        grid = build_slot_grid(create_session(end=DAY1), [create_group()], template=template)

        assert len({s.id for s in grid}) == 2


class TestRebuild:
    """Rebuilding keeps assignments and never duplicates cells."""

    def test_rebuild_is_idempotent(self):
        """Building twice from the same inputs gives the same grid."""
        session = create_session()
        groups = [create_group("g1"), create_group("g2")]
        first = build_slot_grid(session, groups, template=create_template())
        second = build_slot_grid(session, groups, template=create_template(), existing_slots=first)

        assert [s.id for s in second] == [s.id for s in first]
        assert len(second) == 6

    def test_existing_assignment_is_preserved(self):
        """A filled cell with the same key survives the rebuild as-is."""
        filled = create_slot("manual", day=DAY1, activity_id="a1", facility_id="f1", notes="keep me")

        grid = build_slot_grid(
            create_session(end=DAY1), [create_group()], template=create_template(), existing_slots=[filled]
        )

        assert grid == [filled]

    def test_unclaimed_existing_slots_are_carried(self):
        """A manual slot outside the template stays in the grid."""
        extra = create_slot("extra", start="16:00", end="17:00", activity_id="a1")

        grid = build_slot_grid(
            create_session(end=DAY1), [create_group()], template=create_template(), existing_slots=[extra]
        )

        assert [s.id for s in grid][-1] == "extra"
        assert len(grid) == 2
