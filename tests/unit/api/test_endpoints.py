"""
Tests for the scheduling HTTP endpoints.

Every request carries a full snapshot, so each test posts plain JSON built
from the model factories and checks the response body.
"""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from api.dependencies import clear_session_locks
from api.main import create_app
from scheduling.models import MaxPerDayParams, WeatherCondition

from ..scheduling.conftest import (
    DAY1,
    DAY2,
    create_activity,
    create_constraint,
    create_facility,
    create_group,
    create_session,
    create_slot,
    create_staff,
    create_template,
)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


def _body(**kwargs: Any) -> dict[str, Any]:
    return {key: _dump(value) for key, value in kwargs.items()}


@pytest.fixture
def client():
    """Test client with the app lifespan running."""
    clear_session_locks()
    with TestClient(create_app()) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "campwise-scheduling"}


class TestGridEndpoint:
    def test_builds_one_slot_per_group_and_day(self, client: TestClient) -> None:
        """Three days, two groups, one activity block: six empty slots."""
        groups = [create_group("g1"), create_group("g2")]
        body = _body(session=create_session(), groups=groups, template=create_template())

        response = client.post("/api/schedule/grid", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 6
        assert all(slot["activity_id"] is None for slot in data["slots"])
        assert data["slots"][0]["start_time"] == "09:00"

    def test_invalid_input_is_422(self, client: TestClient) -> None:
        body = _body(session=create_session(), groups=[], template=create_template())

        response = client.post("/api/schedule/grid", json=body)

        assert response.status_code == 422
        assert "detail" in response.json()


class TestSolveEndpoint:
    def _body(self, **overrides: Any) -> dict[str, Any]:
        body = _body(
            slots=[create_slot("s0"), create_slot("s1", start="10:00", end="11:00")],
            activities=[create_activity("swim"), create_activity("archery")],
            groups=[create_group()],
        )
        body.update(overrides)
        return body

    def test_fills_grid(self, client: TestClient) -> None:
        response = client.post("/api/schedule/solve", json=self._body())

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert [s["activity_id"] for s in data["slots"]] == ["archery", "swim"]
        assert data["analysis"] is None
        assert data["stats"]["optimization_level"] == "balanced"

    def test_analysis_on_request(self, client: TestClient) -> None:
        response = client.post("/api/schedule/solve", json=self._body(include_analysis=True))

        assert response.json()["analysis"]["filled_slots"] == 2

    def test_explicit_level(self, client: TestClient) -> None:
        response = client.post("/api/schedule/solve", json=self._body(optimization_level="fast"))

        assert response.json()["stats"]["optimization_level"] == "fast"

    def test_malformed_grid_is_a_result(self, client: TestClient) -> None:
        """Broken references come back as an infeasible result, not an error."""
        body = self._body(slots=_dump([create_slot("s0", activity_id="gone")]))

        response = client.post("/api/schedule/solve", json=body)

        assert response.status_code == 200
        assert response.json()["status"] == "infeasible"


class TestConflictsEndpoint:
    def test_double_booking(self, client: TestClient) -> None:
        body = _body(
            slots=[create_slot("x", activity_id="swim"), create_slot("y", activity_id="archery")],
            activities=[create_activity("swim"), create_activity("archery")],
            groups=[create_group()],
        )

        response = client.post("/api/schedule/conflicts", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert data["summary"]["critical"] == 1
        assert data["conflicts"][0]["type"] == "double_booking"
        assert data["conflicts"][0]["affected_slot_ids"] == ["x", "y"]

    def test_broken_reference_is_409(self, client: TestClient) -> None:
        body = _body(slots=[create_slot(activity_id="gone")], activities=[])

        response = client.post("/api/schedule/conflicts", json=body)

        assert response.status_code == 409
        assert response.json()["reasons"] == ["Slot slot-1 references missing activity gone"]


class TestFeasibilityEndpoint:
    def test_missing_template(self, client: TestClient) -> None:
        body = _body(session=create_session(), groups=[create_group()], activities=[create_activity("swim")])

        response = client.post("/api/schedule/feasibility", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["can_generate"] is False
        assert [i["message"] for i in data["issues"]] == ["No default day template"]


class TestAnalyticsEndpoint:
    def test_completion(self, client: TestClient) -> None:
        body = _body(
            session=create_session(),
            groups=[create_group()],
            activities=[create_activity("swim")],
            slots=[create_slot("s0", activity_id="swim"), create_slot("s1", day=DAY2)],
        )

        response = client.post("/api/schedule/analytics", json=body)

        assert response.status_code == 200
        assert response.json()["completion_rate"] == 50


class TestViewEndpoints:
    def _body(self, **selector: Any) -> dict[str, Any]:
        body = _body(
            slots=[
                create_slot("a", group_id="g1", activity_id="swim", facility_id="pool"),
                create_slot("b", group_id="g2", day=DAY2),
            ],
            groups=[create_group("g1"), create_group("g2")],
            activities=[create_activity("swim")],
            facilities=[create_facility("pool")],
        )
        body.update(selector)
        return body

    def test_master(self, client: TestClient) -> None:
        response = client.post("/api/schedule/views/master", json=self._body())

        data = response.json()
        assert data["view"] == "master"
        assert [d["date"] for d in data["days"]] == ["2024-07-01", "2024-07-02"]

    def test_day(self, client: TestClient) -> None:
        response = client.post("/api/schedule/views/day", json=self._body(day=DAY1.isoformat()))

        assert [s["slot_id"] for s in response.json()["slots"]] == ["a"]

    def test_facility(self, client: TestClient) -> None:
        response = client.post("/api/schedule/views/facility", json=self._body(facility_id="pool"))

        assert response.json()["slots"][0]["activity_name"] == "Swim"

    def test_missing_selector(self, client: TestClient) -> None:
        response = client.post("/api/schedule/views/group", json=self._body())

        assert response.status_code == 422

    def test_unknown_view(self, client: TestClient) -> None:
        response = client.post("/api/schedule/views/calendar", json=self._body())

        assert response.status_code == 404


class TestWeatherEndpoints:
    ACTIVITIES = [create_activity("hike", weather_dependent=True), create_activity("crafts")]
    FACILITIES = [create_facility("trail"), create_facility("gym", indoor=True)]

    def _impact(self, client: TestClient, slots) -> dict[str, Any]:
        body = _body(
            slots=slots,
            activities=self.ACTIVITIES,
            facilities=self.FACILITIES,
            groups=[create_group()],
            weather=[{"date": DAY1.isoformat(), "condition": WeatherCondition.RAINY.value}],
        )
        response = client.post("/api/weather/impact", json=body)
        assert response.status_code == 200
        return response.json()

    def test_impact(self, client: TestClient) -> None:
        data = self._impact(client, [create_slot("s0", activity_id="hike", facility_id="trail")])

        assert data["affected_slot_ids"] == ["s0"]
        assert data["substitutions"][0]["substitute_activity_id"] == "crafts"
        assert data["summary"]["bad_days"] == 1

    def test_apply(self, client: TestClient) -> None:
        slots = [create_slot("s0", activity_id="hike", facility_id="trail")]
        impact = self._impact(client, slots)

        body = _body(session_id="sess-1", slots=slots, activities=self.ACTIVITIES)
        body["substitutions"] = impact["substitutions"]
        response = client.post("/api/weather/apply", json=body)

        assert response.status_code == 200
        data = response.json()
        assert data["applied_count"] == 1
        assert data["slots"][0]["activity_id"] == "crafts"
        assert data["slots"][0]["facility_id"] == "gym"

    def test_stale_apply_is_409(self, client: TestClient) -> None:
        slots = [create_slot("s0", activity_id="hike", facility_id="trail")]
        impact = self._impact(client, slots)

        edited = [create_slot("s0", activity_id="crafts", facility_id="trail")]
        body = _body(session_id="sess-1", slots=edited)
        body["substitutions"] = impact["substitutions"]
        response = client.post("/api/weather/apply", json=body)

        assert response.status_code == 409
        assert response.json()["failures"][0]["slot_id"] == "s0"


class TestSlotOptionsEndpoints:
    def test_slot_options(self, client: TestClient) -> None:
        slots = [
            create_slot("s0", activity_id="swim", staff_ids=["s1"]),
            create_slot("s1", start="10:00", end="11:00"),
        ]
        body = _body(
            slot_id="s1",
            slots=slots,
            activities=[create_activity("swim"), create_activity("crafts")],
            groups=[create_group()],
            staff=[create_staff("s1"), create_staff("s2")],
            constraints=[create_constraint(MaxPerDayParams(max_count=1))],
        )

        response = client.post("/api/schedule/slot-options", json=body)

        assert response.status_code == 200
        data = response.json()
        assert [a["id"] for a in data["activities"]] == ["crafts"]
        assert [m["id"] for m in data["staff"]] == ["s2", "s1"]

    def test_unknown_slot_is_404(self, client: TestClient) -> None:
        body = _body(slot_id="nope", slots=[create_slot()], activities=[], groups=[create_group()])

        response = client.post("/api/schedule/slot-options", json=body)

        assert response.status_code == 404

    def test_staff_availability(self, client: TestClient) -> None:
        body = _body(
            staff=[create_staff("s1")],
            slots=[create_slot("s0", staff_ids=["s1"]), create_slot("s1", start="10:00", end="11:00")],
        )

        response = client.post("/api/schedule/staff-availability", json=body)

        assert response.status_code == 200
        assert response.json()["availability"] == {"s1": {"2024-07-01_09:00": False, "2024-07-01_10:00": True}}
