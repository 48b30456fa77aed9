import pytest
from fastapi.testclient import TestClient

from dealjourney.main import create_app
from dealjourney.models.domain import Coordinates
from dealjourney.services.container import EngineContainer
from dealjourney.services.location import StaticLocationProvider


@pytest.fixture
def container(store, deal_repository, vendor_directory, clock) -> EngineContainer:
    return EngineContainer.build(
        store=store,
        deal_repository=deal_repository,
        vendor_directory=vendor_directory,
        location_provider=StaticLocationProvider(Coordinates(61.2181, -149.9003)),
        clock=clock,
    )


@pytest.fixture
def api_client(container: EngineContainer):
    app = create_app(container=container)
    with TestClient(app) as client:
        yield client


def test_health_endpoints(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}

    engine = api_client.get("/api/health/engine").json()
    assert engine["deal_cache_loaded"] is True
    assert engine["deal_counts"]["daily"] == 1
    assert engine["journey_state"] == "no_journey"


def test_deal_queries(api_client: TestClient):
    response = api_client.get("/api/deals", params={"type": "daily", "day": "monday"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 1
    assert payload["deals"][0]["id"] == "d1"
    assert payload["deals"][0]["vendor_id"] == "v1"

    today = api_client.get("/api/vendors/v2/deals/today", params={"day": "monday"}).json()
    assert [deal["id"] for deal in today["deals"]] == ["d2", "d3"]
    assert today["deals"][0]["active_days"] == ["monday", "tuesday"]

    assert api_client.get("/api/deals", params={"type": "weekly"}).status_code == 400
    assert api_client.get("/api/deals", params={"day": "someday"}).status_code == 400


def test_refresh_endpoint(api_client: TestClient, deal_repository):
    deal_repository.records.append({"id": "d9", "vendorId": "v9", "dealType": "special"})

    response = api_client.post("/api/deals/refresh")

    assert response.status_code == 200
    payload = response.json()
    assert payload["refreshed"] is True
    assert payload["counts"]["special"] == 1


def test_redemption_cooldown(api_client: TestClient):
    before = api_client.get("/api/redemptions/eligibility", params={"vendor_id": "a", "deal_type": "birthday"})
    assert before.json()["can_redeem"] is True

    created = api_client.post("/api/redemptions", json={"vendor_id": "a", "deal_type": "birthday"})
    assert created.status_code == 201

    after = api_client.get("/api/redemptions/eligibility", params={"vendor_id": "a", "deal_type": "birthday"})
    assert after.json()["can_redeem"] is False

    route = api_client.post("/api/routes/plan", json={"deal_type": "birthday", "max_vendors": 3}).json()
    assert "a" not in [vendor["id"] for vendor in route["vendors"]]


def test_route_plan_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/routes/plan",
        json={
            "deal_type": "birthday",
            "max_vendors": 3,
            "start_location": {"latitude": 61.2181, "longitude": -149.9003},
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert [vendor["id"] for vendor in payload["vendors"]] == ["a", "b", "c"]
    assert payload["used_fallback"] is False
    assert len(payload["coordinates"]) == 4
    assert payload["bounds"]["latitude_delta"] > 0


def test_route_plan_errors(api_client: TestClient):
    too_many = api_client.post("/api/routes/plan", json={"deal_type": "birthday", "max_vendors": 50})
    assert too_many.status_code == 400

    nothing = api_client.post("/api/routes/plan", json={"deal_type": "birthday", "max_distance_miles": 0.01})
    assert nothing.status_code == 404
    assert "Try different options" in nothing.json()["detail"]

    bad_coordinates = api_client.post(
        "/api/routes/plan",
        json={"deal_type": "birthday", "start_location": {"latitude": 91, "longitude": 0}},
    )
    assert bad_coordinates.status_code == 422


def test_directions_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/routes/directions",
        json={
            "destination": {"latitude": 61.5, "longitude": -150.0},
            "start_location": {"latitude": 61.0, "longitude": -150.0},
        },
    )

    assert response.status_code == 200
    assert response.json()["estimated_time"] == 100


def test_journey_lifecycle(api_client: TestClient):
    assert api_client.get("/api/journey").status_code == 404

    started = api_client.post("/api/journey", json={"deal_type": "birthday", "max_vendors": 2})
    assert started.status_code == 201
    journey = started.json()
    assert journey["state"] == "active"
    assert [stop["vendor_id"] for stop in journey["vendors"]] == ["a", "c"]

    checked_in = api_client.post("/api/journey/check-in", json={"check_in_type": "qr"}).json()
    assert checked_in["vendors"][0]["checked_in"] is True

    advanced = api_client.post("/api/journey/advance").json()
    assert advanced["complete"] is False
    assert advanced["journey"]["current_vendor_index"] == 1

    last = api_client.post("/api/journey/advance").json()
    assert last["complete"] is True
    assert last["journey"]["current_vendor_index"] == 1

    completed = api_client.post("/api/journey/complete").json()
    assert completed["points_earned"] == 10
    assert completed["state"] == "completed"

    assert api_client.get("/api/journey").status_code == 404
    history = api_client.get("/api/journey/history").json()
    assert history["count"] == 1
    assert history["journeys"][0]["pointsEarned"] == 10


def test_journey_skip_and_abandon(api_client: TestClient):
    api_client.post("/api/journey", json={"deal_type": "birthday", "max_vendors": 1})

    skipped = api_client.post("/api/journey/skip").json()
    assert skipped["complete"] is True
    assert skipped["journey"]["vendors"] == []

    assert api_client.delete("/api/journey").status_code == 204
    assert api_client.post("/api/journey/advance").status_code == 404
