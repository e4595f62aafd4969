"""
Unit tests for GridIndex lookups, broken-reference detection and the
built-in facility double-booking guard.
"""

from __future__ import annotations

from datetime import datetime

from scheduling.grid_index import GridIndex, facility_has_room, find_broken_references, slot_sort_key

from .conftest import (
    DAY1,
    DAY2,
    build_grid,
    build_resources,
    create_activity,
    create_facility,
    create_group,
    create_slot,
    create_staff,
    t,
)


class TestGridIndex:
    def test_group_day_sorted_by_start(self):
        grid = build_grid(
            create_slot("late", start="14:00", end="15:00"),
            create_slot("early", start="09:00", end="10:00"),
            create_slot("other-day", day=DAY2),
        )

        assert [s.id for s in grid.group_day("g1", DAY1)] == ["early", "late"]

    def test_put_replaces_by_id(self):
        grid = build_grid(create_slot("s1", activity_id="swim"))

        grid.put(create_slot("s1", day=DAY2, activity_id="hike"))

        assert len(grid) == 1
        assert grid.group_day("g1", DAY1) == []
        assert grid.get("s1").activity_id == "hike"

    def test_remove(self):
        grid = build_grid(create_slot("s1"))

        grid.remove("s1")
        grid.remove("missing")

        assert "s1" not in grid
        assert grid.dates() == []

    def test_neighbours(self):
        first = create_slot("a", start="09:00", end="10:00")
        middle = create_slot("b", start="10:00", end="11:00")
        last = create_slot("c", start="11:00", end="12:00")
        grid = build_grid(first, middle, last, create_slot("x", group_id="g2", start="10:30", end="11:00"))

        assert grid.previous_in_day(middle).id == "a"
        assert grid.next_in_day(middle).id == "c"
        assert grid.previous_in_day(first) is None
        assert grid.next_in_day(last) is None

    def test_overlapping_spans_groups(self):
        grid = build_grid(
            create_slot("a", group_id="g1", start="09:00", end="10:00"),
            create_slot("b", group_id="g2", start="09:30", end="10:30"),
            create_slot("c", group_id="g3", start="10:00", end="11:00"),
        )

        hits = grid.overlapping(DAY1, t("09:45"), t("10:15"))

        assert {s.id for s in hits} == {"a", "b", "c"}

    def test_touching_ranges_do_not_overlap(self):
        grid = build_grid(create_slot("a", start="09:00", end="10:00"))
        assert grid.overlapping(DAY1, t("10:00"), t("11:00")) == []


class TestSlotSortKey:
    def test_orders_by_group_sort_order_then_name(self):
        groups = {
            "g1": create_group("g1", name="Zebras", sort_order=1),
            "g2": create_group("g2", name="Bears", sort_order=1),
            "g3": create_group("g3", name="Owls", sort_order=0),
        }
        slots = [create_slot(f"s-{g}", group_id=g) for g in ("g1", "g2", "g3")]

        ordered = sorted(slots, key=lambda s: slot_sort_key(s, groups))

        assert [s.group_id for s in ordered] == ["g3", "g2", "g1"]


class TestFindBrokenReferences:
    def test_clean_grid(self):
        resources = build_resources(activities=[create_activity("swim")], facilities=[create_facility("pool")])

        assert find_broken_references([create_slot(activity_id="swim", facility_id="pool")], resources) == []

    def test_missing_records(self):
        resources = build_resources()
        slot = create_slot(group_id="gone", activity_id="swim", facility_id="pool", staff_ids=["s9"])

        reasons = find_broken_references([slot], resources)

        assert reasons == [
            "Slot slot-1 references missing group gone",
            "Slot slot-1 references missing activity swim",
            "Slot slot-1 references missing facility pool",
            "Slot slot-1 references missing staff member s9",
        ]

    def test_deleted_records(self):
        deleted = datetime(2024, 6, 1)
        resources = build_resources(
            activities=[create_activity("swim", deleted_at=deleted)],
            staff=[create_staff("s1", first_name="Ana", deleted_at=deleted)],
        )
        slot = create_slot(activity_id="swim", staff_ids=["s1"])

        reasons = find_broken_references([slot], resources)

        assert reasons == [
            "Slot slot-1 references deleted activity Swim",
            "Slot slot-1 references deleted staff member Ana",
        ]

    def test_unloaded_collections_are_skipped(self):
        slot = create_slot(group_id="gone", staff_ids=["s9"])

        assert find_broken_references([slot], build_resources(), check_groups=False, check_staff=False) == []

    def test_foreign_session(self):
        slot = create_slot(session_id="sess-2")

        reasons = find_broken_references([slot], build_resources(), session_id="sess-1")

        assert reasons == ["Slot slot-1 belongs to session sess-2, not sess-1"]


class TestFacilityHasRoom:
    def _setup(self, shareable: bool, max_concurrent: int = 2):
        activities = [
            create_activity("swim", allows_shared_facility=shareable),
            create_activity("relay", allows_shared_facility=shareable),
        ]
        pool = create_facility("pool", max_concurrent_groups=max_concurrent)
        resources = build_resources(
            activities=activities, facilities=[pool], groups=[create_group(g) for g in ("g1", "g2", "g3")]
        )
        return resources, pool, {a.id: a for a in activities}

    def test_empty_facility(self):
        resources, pool, acts = self._setup(shareable=False)
        slot = create_slot(activity_id="swim", facility_id="pool")

        assert facility_has_room(GridIndex(), resources, slot, pool, acts["swim"])

    def test_exclusive_activity_blocks(self):
        resources, pool, acts = self._setup(shareable=False)
        grid = build_grid(create_slot("o", group_id="g2", activity_id="relay", facility_id="pool"))
        slot = create_slot(activity_id="swim", facility_id="pool")

        assert not facility_has_room(grid, resources, slot, pool, acts["swim"])

    def test_shared_within_limit(self):
        resources, pool, acts = self._setup(shareable=True, max_concurrent=2)
        grid = build_grid(create_slot("o", group_id="g2", activity_id="relay", facility_id="pool"))
        slot = create_slot(activity_id="swim", facility_id="pool")

        assert facility_has_room(grid, resources, slot, pool, acts["swim"])

    def test_shared_over_limit(self):
        resources, pool, acts = self._setup(shareable=True, max_concurrent=2)
        grid = build_grid(
            create_slot("o1", group_id="g2", activity_id="relay", facility_id="pool"),
            create_slot("o2", group_id="g3", activity_id="relay", facility_id="pool"),
        )
        slot = create_slot(activity_id="swim", facility_id="pool")

        assert not facility_has_room(grid, resources, slot, pool, acts["swim"])

    def test_own_previous_state_ignored(self):
        resources, pool, acts = self._setup(shareable=False)
        grid = build_grid(create_slot("slot-1", activity_id="relay", facility_id="pool"))
        slot = create_slot(activity_id="swim", facility_id="pool")

        assert facility_has_room(grid, resources, slot, pool, acts["swim"])
