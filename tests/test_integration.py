from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from dispatch_engine.errors import StoreUnavailableError
from dispatch_engine.main import create_app
from dispatch_engine.models.domain import (
    Coordinate,
    InspectionRecord,
    JobLocation,
    ProjectProfile,
    UserProfile,
    VehicleProfile,
)
from dispatch_engine.persistence.assignments import InMemoryDispatchStore
from dispatch_engine.persistence.scheduling import InMemorySchedulingStore
from dispatch_engine.services.assignment.matcher import AssignmentMatcher
from dispatch_engine.services.routing.models import LegEstimate

DAY = date(2024, 6, 1)


class DummyDirections:
    def directions(self, origin, waypoints, departure_time):
        legs = []
        previous = origin
        for point in waypoints:
            distance = abs(point.lng - previous.lng) * 111_000 + abs(point.lat - previous.lat) * 111_000
            legs.append(LegEstimate(distance, distance / 10.0, distance / 10.0))
            previous = point
        return legs


def _job(job_id, project_id, vehicle_id, lng) -> JobLocation:
    return JobLocation(
        id=job_id,
        project_id=project_id,
        address=f"{job_id} Test Street",
        scheduled_time=datetime(2024, 6, 1, 9, tzinfo=timezone.utc),
        coordinates=Coordinate(0.0, lng),
        vehicle_id=vehicle_id,
    )


@pytest.fixture
def scheduling() -> InMemorySchedulingStore:
    return InMemorySchedulingStore(
        jobs=[_job("J1", "42", "V1", 0.02), _job("J2", "43", "V1", 0.01), _job("J3", "44", "V2", 0.03)],
        inspections=[
            InspectionRecord("U1", "V1", DAY, datetime(2024, 6, 1, 7, tzinfo=timezone.utc)),
            InspectionRecord("U2", "V2", DAY, None),
        ],
        users=[UserProfile("U1", "Ada", "Lovelace", "ada@example.com"), UserProfile("U2", "Alan", "Turing")],
        vehicles=[VehicleProfile("V1", "12", "ABC-123", "Ford", "Transit")],
        projects=[ProjectProfile("42", "Roof repair", "Replace shingles", "1 Main St", "active")],
    )


@pytest.fixture
def api_client(scheduling, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    from dispatch_engine.services.assignment import service as assignment_service
    from dispatch_engine.services.routing import service as routing_service

    matcher = AssignmentMatcher(scheduling, InMemoryDispatchStore())
    monkeypatch.setattr(assignment_service, "get_matcher", lambda: matcher)
    monkeypatch.setattr(routing_service, "get_scheduling_store", lambda: scheduling)
    monkeypatch.setattr(routing_service, "get_directions_provider", lambda: DummyDirections())
    monkeypatch.setattr(routing_service, "get_resolver", lambda: None)

    return TestClient(create_app())


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_auto_connect_then_list(api_client: TestClient):
    response = api_client.post("/api/vehicle-job-assignments/auto-connect", json={"date": "2024-06-01"})
    assert response.status_code == 200
    body = response.json()
    assert body["createdCount"] == 2
    assert body["cancelled"] is False
    assert sorted(item["projectId"] for item in body["created"]) == ["42", "43"]
    assert body["skipped"] == [
        {"userId": "U2", "vehicleId": "V2", "projectId": None, "reason": "inspection_incomplete"}
    ]

    again = api_client.post("/api/vehicle-job-assignments/auto-connect", json={"date": "2024-06-01"}).json()
    assert again["createdCount"] == 0
    assert {item["reason"] for item in again["skipped"] if item["userId"] == "U1"} == {"already_assigned"}

    listing = api_client.get("/api/vehicle-job-assignments", params={"date": "2024-06-01"})
    assert listing.status_code == 200
    rows = {row["projectId"]: row for row in listing.json()}
    assert set(rows) == {"42", "43"}
    roof = rows["42"]
    assert roof["userFirstName"] == "Ada"
    assert roof["licensePlate"] == "ABC-123"
    assert roof["projectName"] == "Roof repair"
    assert roof["isActive"] is True
    assert rows["43"]["projectName"] is None


def test_malformed_date_is_a_bad_request(api_client: TestClient):
    assert api_client.get("/api/vehicle-job-assignments", params={"date": "06/01/2024"}).status_code == 400
    assert api_client.post("/api/vehicle-job-assignments/auto-connect", json={"date": "tomorrow"}).status_code == 400


def test_users_with_inspections(api_client: TestClient):
    response = api_client.get("/api/users-with-inspections", params={"date": "2024-06-01"})
    assert response.status_code == 200
    body = response.json()
    assert [(item["userId"], item["inspectionComplete"]) for item in body] == [("U1", True), ("U2", False)]
    assert body[0]["vehicleNumber"] == "12"
    assert body[1]["userLastName"] == "Turing"


def test_manual_assignment_lifecycle(api_client: TestClient):
    payload = {"userId": "U2", "vehicleId": "V2", "projectId": 44, "assignmentDate": "2024-06-01"}
    created = api_client.post("/api/vehicle-job-assignments", json=payload)
    assert created.status_code == 201
    assignment = created.json()
    assert assignment["projectId"] == "44"

    assert api_client.post("/api/vehicle-job-assignments", json=payload).status_code == 409

    deactivated = api_client.post(f"/api/vehicle-job-assignments/{assignment['id']}/deactivate")
    assert deactivated.status_code == 200
    assert deactivated.json()["isActive"] is False
    assert api_client.post("/api/vehicle-job-assignments/999/deactivate").status_code == 404


def test_store_failure_is_service_unavailable(api_client: TestClient, scheduling, monkeypatch: pytest.MonkeyPatch):
    def broken(service_date):
        raise StoreUnavailableError("connection reset")

    monkeypatch.setattr(scheduling, "inspections_for_date", broken)
    response = api_client.post("/api/vehicle-job-assignments/auto-connect", json={"date": "2024-06-01"})
    assert response.status_code == 503


def test_route_optimization_for_vehicle(api_client: TestClient):
    response = api_client.get(
        "/api/route-optimization",
        params={"date": "2024-06-01", "vehicleId": "V1", "startLocation": "0,0"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["optimizedOrder"] == ["J2", "J1"]
    assert body["degraded"] is False
    assert len(body["legs"]) == 2
    assert body["legs"][0]["fromJobId"] is None
    assert body["legs"][1]["fromJobId"] == "J2"
    assert body["legs"][0]["trafficCondition"] == "normal"
    assert body["excludedStops"] == []
    assert body["totalTrafficDelaySeconds"] == 0


def test_route_optimization_without_jobs_is_a_bad_request(api_client: TestClient):
    response = api_client.get(
        "/api/route-optimization",
        params={"date": "2024-06-01", "vehicleId": "V9", "startLocation": "0,0"},
    )
    assert response.status_code == 400


def test_route_optimization_degrades_without_provider(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from dispatch_engine.services.routing import service as routing_service

    monkeypatch.setattr(routing_service, "get_directions_provider", lambda: None)
    response = api_client.get(
        "/api/route-optimization",
        params={"date": "2024-06-01", "vehicleId": "V1", "startLocation": "0,0"},
    )
    body = response.json()
    assert body["degraded"] is True
    assert {leg["trafficCondition"] for leg in body["legs"]} == {"unknown"}


def test_optimize_explicit_jobs_accepts_numeric_ids(api_client: TestClient):
    payload = {
        "jobs": [
            {
                "id": 1,
                "projectId": 10,
                "address": "1 Main St",
                "coordinates": {"lat": 0.0, "lng": 0.02},
                "scheduledTime": "2030-06-01T09:00:00Z",
                "priority": "high",
                "status": "in-progress",
            },
            {
                "id": 2,
                "projectId": 11,
                "address": "2 Main St",
                "coordinates": {"lat": 0.0, "lng": 0.01},
                "scheduledTime": "2030-06-01T10:00:00Z",
            },
        ],
        "startLocation": "0,0",
        "departureTime": "2030-06-01T08:00:00Z",
    }
    response = api_client.post("/api/route-optimization", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["optimizedOrder"] == ["2", "1"]
    assert body["departureTime"].startswith("2030-06-01T08:00:00")


def test_optimize_rejects_duplicate_and_empty_stop_lists(api_client: TestClient):
    job = {"id": "A", "address": "1 Main St", "coordinates": {"lat": 0, "lng": 0.01}, "scheduledTime": "2030-06-01T09:00:00Z"}
    assert api_client.post("/api/route-optimization", json={"jobs": [job, job], "startLocation": "0,0"}).status_code == 400
    assert api_client.post("/api/route-optimization", json={"jobs": [], "startLocation": "0,0"}).status_code == 400


def test_provider_health_without_key(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from dispatch_engine.config import settings

    monkeypatch.setattr(settings, "google_maps_api_key", None)
    body = api_client.get("/api/health/providers").json()
    assert body["configured"] is False
    assert body["healthy"] is False


def test_database_health_without_supabase(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from dispatch_engine.db import supabase as supabase_module

    monkeypatch.setattr(supabase_module, "get_supabase_client", lambda: None)
    body = api_client.get("/api/health/database").json()
    assert body["configured"] is False
