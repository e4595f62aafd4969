"""
Unit tests for the constraint engine.

Covers verdict classification, scoping, ordering independence and the
one-shot ``evaluate`` helper.
"""

from __future__ import annotations

from scheduling.constraints import ConstraintEngine, VerdictStatus, evaluate
from scheduling.models import (
    ConstraintSeverity,
    MaxPerDayParams,
    TimeWindowParams,
)

from ..conftest import (
    build_grid,
    build_resources,
    create_activity,
    create_constraint,
    create_group,
    create_slot,
    t,
)


def _morning_only(constraint_id: str = "c-morning", severity: ConstraintSeverity = ConstraintSeverity.HARD, **kw):
    params = TimeWindowParams(not_after=t("12:00"))
    return create_constraint(params, constraint_id=constraint_id, severity=severity, **kw)


def _once_a_day(constraint_id: str = "c-once", severity: ConstraintSeverity = ConstraintSeverity.HARD, **kw):
    return create_constraint(MaxPerDayParams(max_count=1), constraint_id=constraint_id, severity=severity, **kw)


class TestVerdict:
    """Hard violations block; soft violations are only recorded."""

    def test_allowed_when_nothing_triggers(self):
        resources = build_resources(activities=[create_activity("swim")])
        candidate = create_slot(activity_id="swim")

        verdict = evaluate(candidate, [], [_morning_only()], resources)

        assert verdict.status == VerdictStatus.ALLOWED
        assert verdict.is_allowed
        assert verdict.violations == []
        assert verdict.reason is None

    def test_hard_violation_blocks(self):
        resources = build_resources(activities=[create_activity("swim")])
        candidate = create_slot(start="13:00", end="14:00", activity_id="swim")

        verdict = evaluate(candidate, [], [_morning_only()], resources)

        assert verdict.status == VerdictStatus.HARD_VIOLATION
        assert not verdict.is_allowed
        assert verdict.hard_violations[0].constraint_id == "c-morning"
        assert "must end by 12:00" in verdict.reason

    def test_soft_violation_allows(self):
        resources = build_resources(activities=[create_activity("swim")])
        candidate = create_slot(start="13:00", end="14:00", activity_id="swim")

        verdict = evaluate(candidate, [], [_morning_only(severity=ConstraintSeverity.SOFT)], resources)

        assert verdict.status == VerdictStatus.SOFT_VIOLATION
        assert verdict.is_allowed
        assert len(verdict.soft_violations) == 1

    def test_every_constraint_is_evaluated(self):
        """No short-circuit: a hard violation does not hide soft ones."""
        resources = build_resources(activities=[create_activity("swim")])
        existing = create_slot("s0", start="09:00", end="10:00", activity_id="swim")
        candidate = create_slot("s1", start="13:00", end="14:00", activity_id="swim")
        constraints = [_morning_only(severity=ConstraintSeverity.SOFT), _once_a_day()]

        verdict = evaluate(candidate, [existing], constraints, resources)

        assert verdict.status == VerdictStatus.HARD_VIOLATION
        assert [v.constraint_id for v in verdict.violations] == ["c-once", "c-morning"]

    def test_order_independent(self):
        """Reversing the constraint list gives the same verdict."""
        resources = build_resources(activities=[create_activity("swim")])
        existing = create_slot("s0", activity_id="swim")
        candidate = create_slot("s1", start="13:00", end="14:00", activity_id="swim")
        constraints = [_morning_only(), _once_a_day(severity=ConstraintSeverity.SOFT)]

        forward = evaluate(candidate, [existing], constraints, resources)
        backward = evaluate(candidate, [existing], list(reversed(constraints)), resources)

        assert forward == backward

    def test_custom_error_message(self):
        resources = build_resources(activities=[create_activity("swim")])
        constraint = _morning_only(error_message="Swimming is a morning activity")
        verdict = evaluate(create_slot(start="15:00", end="16:00", activity_id="swim"), [], [constraint], resources)

        assert verdict.reason == "Swimming is a morning activity"
        assert "must end by" in verdict.violations[0].detail


class TestScoping:
    """Session, group and activity targets narrow applicability."""

    def test_inactive_constraint_is_ignored(self):
        resources = build_resources(activities=[create_activity("swim")])
        verdict = evaluate(
            create_slot(start="15:00", end="16:00", activity_id="swim"), [], [_morning_only(is_active=False)], resources
        )
        assert verdict.is_allowed

    def test_other_session_is_ignored(self):
        resources = build_resources(activities=[create_activity("swim")])
        verdict = evaluate(
            create_slot(start="15:00", end="16:00", activity_id="swim"),
            [],
            [_morning_only(session_id="another-session")],
            resources,
        )
        assert verdict.status == VerdictStatus.ALLOWED

    def test_group_targets(self):
        groups = [create_group("g1"), create_group("g2")]
        resources = build_resources(activities=[create_activity("swim")], groups=groups)
        constraint = _morning_only(group_ids=["g2"])
        late_g1 = create_slot(group_id="g1", start="15:00", end="16:00", activity_id="swim")
        late_g2 = create_slot(group_id="g2", start="15:00", end="16:00", activity_id="swim")

        g1 = evaluate(late_g1, [], [constraint], resources)
        g2 = evaluate(late_g2, [], [constraint], resources)

        assert g1.is_allowed
        assert not g2.is_allowed

    def test_activity_targets(self):
        resources = build_resources(activities=[create_activity("swim"), create_activity("crafts")])
        constraint = _morning_only(activity_ids=["swim"])

        crafts = evaluate(create_slot(start="15:00", end="16:00", activity_id="crafts"), [], [constraint], resources)
        assert crafts.is_allowed


class TestEngine:
    def test_disabled_kinds_are_skipped(self):
        resources = build_resources(activities=[create_activity("swim")])
        engine = ConstraintEngine([_morning_only()], resources, disabled_kinds=["time_window"])

        verdict = engine.evaluate(create_slot(start="15:00", end="16:00", activity_id="swim"), build_grid())

        assert verdict.is_allowed
        assert engine.is_constraint_disabled("time_window")

    def test_candidate_previous_state_is_ignored(self):
        """A grid slot with the candidate's id is the slot being changed, not a neighbour."""
        resources = build_resources(activities=[create_activity("swim")])
        engine = ConstraintEngine([_once_a_day()], resources)
        old = create_slot("s1", activity_id="swim")

        verdict = engine.evaluate(create_slot("s1", activity_id="swim"), build_grid(old))

        assert verdict.is_allowed
        assert engine.evaluation_count == 1


class TestValidActivities:
    """Which activities could go into a slot as the grid stands."""

    def _engine(self):
        resources = build_resources(
            activities=[
                create_activity("swim"),
                create_activity("hike"),
                create_activity("crafts"),
                create_activity("canoe", is_active=False),
            ]
        )
        constraints = [_once_a_day(activity_ids=["swim"]), _morning_only(activity_ids=["hike"])]
        return ConstraintEngine(constraints, resources)

    def test_blocked_activities_are_left_out(self):
        grid = [create_slot("s0", activity_id="swim")]
        candidate = create_slot("s1", start="13:00", end="14:00")

        valid = self._engine().valid_activities(candidate, grid)

        assert [a.id for a in valid] == ["crafts"]

    def test_everything_active_fits_an_open_morning(self):
        valid = self._engine().valid_activities(create_slot("s1"), build_grid())

        assert [a.id for a in valid] == ["swim", "hike", "crafts"]

    def test_explicit_pool_keeps_given_order(self):
        engine = self._engine()
        pool = [create_activity("crafts"), create_activity("swim")]

        valid = engine.valid_activities(create_slot("s1"), [], activities=pool)

        assert [a.id for a in valid] == ["crafts", "swim"]

    def test_slot_current_activity_does_not_count(self):
        """The slot's own assignment is replaced, so swim stays valid there."""
        grid = [create_slot("s0", activity_id="swim")]

        valid = self._engine().valid_activities(grid[0], grid)

        assert "swim" in [a.id for a in valid]
