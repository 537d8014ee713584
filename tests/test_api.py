import pytest
from rest_framework.test import APIClient

from api import services

PICKUP = {"lat": 51.2362, "lng": -0.5704, "address": "Guildford High Street"}
DROPOFF = {"lat": 51.3148, "lng": -0.5600, "address": "Woking Station"}


@pytest.fixture(autouse=True)
def wired_engine(engine, monkeypatch):
    monkeypatch.setattr(services, "get_engine", lambda: engine)
    return engine


def client_for(user_id, role):
    client = APIClient()
    client.credentials(HTTP_X_USER_ID=user_id, HTTP_X_USER_ROLE=role)
    return client


@pytest.fixture
def rider():
    return client_for("r1", "rider")


def book_ride(rider):
    response = rider.post("/api/v1/rides/book", {"pickup": PICKUP, "dropoff": DROPOFF, "vehicleType": "sedan"}, format="json")
    assert response.status_code == 201, response.data
    return response.data["ride"]


def test_requests_without_identity_are_rejected():
    response = APIClient().get("/api/v1/riders/location")
    assert response.status_code == 401
    assert response.data["success"] is False


def test_unknown_role_is_rejected():
    response = client_for("x", "admin").get("/api/v1/riders/location")
    assert response.status_code == 401


def test_driver_location_upsert():
    driver = client_for("d1", "driver")

    response = driver.post("/api/v1/drivers/location", {"latitude": 51.24, "longitude": -0.57, "heading": 90, "speed": 25}, format="json")
    assert response.status_code == 200
    assert response.data["location"]["subjectId"] == "d1"
    assert response.data["location"]["speed"] == 25

    response = driver.post("/api/v1/drivers/location", {"latitude": 95, "longitude": -0.57}, format="json")
    assert response.status_code == 400
    assert response.data["success"] is False
    assert response.data["code"] == "validation_error"


def test_rider_cannot_post_driver_location(rider):
    response = rider.post("/api/v1/drivers/location", {"latitude": 51.24, "longitude": -0.57}, format="json")
    assert response.status_code == 403


def test_rider_location_roundtrip(rider):
    assert rider.get("/api/v1/riders/location").status_code == 404

    rider.post("/api/v1/riders/location", {"latitude": 51.24, "longitude": -0.57}, format="json")
    response = rider.get("/api/v1/riders/location")

    assert response.status_code == 200
    assert response.data["location"]["latitude"] == 51.24


def test_available_drivers_radius_is_in_metres(rider, add_driver):
    add_driver("d1", north_km=2.0)
    query = {"latitude": PICKUP["lat"], "longitude": PICKUP["lng"]}

    near = rider.get("/api/v1/riders/available-drivers", {**query, "radius": 1000})
    default = rider.get("/api/v1/riders/available-drivers", query)
    too_wide = rider.get("/api/v1/riders/available-drivers", {**query, "radius": 60000})

    assert near.data["count"] == 0
    assert default.data["count"] == 1
    assert 1990 <= default.data["drivers"][0]["distance"] <= 2010
    assert default.data["radius"] == 5000
    assert too_wide.status_code == 400


def test_estimate_then_book(rider, add_driver):
    add_driver("d1")

    response = rider.post("/api/v1/rides/estimate", {"pickup": PICKUP, "dropoff": DROPOFF, "vehicleType": "sedan"}, format="json")
    assert response.status_code == 200
    estimate = response.data["estimate"]
    assert estimate["estimateId"].startswith("est_")
    assert estimate["currency"] == "GBP"

    response = rider.post("/api/v1/rides/book", {"estimateId": estimate["estimateId"]}, format="json")
    assert response.status_code == 201
    assert response.data["ride"]["status"] == "searching"
    assert response.data["ride"]["estimatedFare"] == estimate["fare"]


def test_book_needs_trip_or_estimate(rider):
    response = rider.post("/api/v1/rides/book", {"pickup": PICKUP}, format="json")
    assert response.status_code == 400


def test_double_accept_gives_one_200_and_one_409(rider, add_driver):
    add_driver("d1")
    add_driver("d2", north_km=1.0)
    ride = book_ride(rider)

    first = client_for("d1", "driver").put(f"/api/v1/rides/{ride['id']}/accept", format="json")
    second = client_for("d2", "driver").put(f"/api/v1/rides/{ride['id']}/accept", format="json")

    assert sorted([first.status_code, second.status_code]) == [200, 409]
    assert second.data["error"] == "ride already accepted"


def test_full_ride_over_http(rider, add_driver):
    add_driver("d1")
    driver = client_for("d1", "driver")
    ride_id = book_ride(rider)["id"]
    url = f"/api/v1/rides/{ride_id}"

    assert driver.put(f"{url}/accept", format="json").status_code == 200
    assert driver.put(f"{url}/arrive", format="json").status_code == 200

    status = rider.get(f"{url}/status")
    assert status.data["ride"]["status"] == "arrived"
    assert status.data["ride"]["driverLocation"]["subjectId"] == "d1"

    assert driver.put(f"{url}/start", format="json").status_code == 200
    completed = driver.put(f"{url}/complete", {"actualDistance": 10.0, "actualDuration": 25}, format="json")
    assert completed.status_code == 200
    # (5.00 + 10 km * 1.50 + 25 min * 0.25) * 1.20 VAT
    assert completed.data["ride"]["finalFare"] == 31.5
    assert completed.data["ride"]["platformCommission"] == 6.3
    assert completed.data["ride"]["driverEarnings"] == 25.2

    tipped = rider.put(f"{url}/tip", {"tipAmount": 3}, format="json")
    assert tipped.data["ride"]["tips"] == 3.0

    rated = rider.put(f"{url}/rate", {"rating": 5, "comment": "great"}, format="json")
    assert rated.data["ride"]["rating"]["driverRating"] == 5
    assert driver.put(f"{url}/rate", {"rating": 4}, format="json").status_code == 200


def test_invalid_transition_reports_current_status(rider, add_driver):
    add_driver("d1")
    ride = book_ride(rider)

    response = client_for("d1", "driver").put(f"/api/v1/rides/{ride['id']}/complete", format="json")

    assert response.status_code == 400
    assert response.data["code"] == "invalid_transition"
    assert response.data["current_status"] == "searching"


def test_riders_cannot_drive(rider):
    ride = book_ride(rider)
    assert rider.put(f"/api/v1/rides/{ride['id']}/accept", format="json").status_code == 403


def test_cancel_needs_reason(rider):
    ride = book_ride(rider)
    url = f"/api/v1/rides/{ride['id']}/cancel"

    assert rider.put(url, {}, format="json").status_code == 400
    response = rider.put(url, {"cancellationReason": "no longer needed"}, format="json")
    assert response.status_code == 200
    assert response.data["ride"]["status"] == "cancelled"


def test_unknown_ride_is_404(rider):
    response = rider.get("/api/v1/rides/ride_missing/status")
    assert response.status_code == 404
    assert response.data["code"] == "not_found"


def test_other_riders_cannot_see_the_ride(rider):
    ride = book_ride(rider)
    response = client_for("r2", "rider").get(f"/api/v1/rides/{ride['id']}/status")
    assert response.status_code == 403


def test_active_ride(rider, add_driver):
    assert rider.get("/api/v1/rides/active").data["ride"] is None

    add_driver("d1")
    ride = book_ride(rider)
    driver = client_for("d1", "driver")
    driver.put(f"/api/v1/rides/{ride['id']}/accept", format="json")

    response = rider.get("/api/v1/rides/active")
    assert response.status_code == 200
    assert response.data["ride"]["id"] == ride["id"]
    assert response.data["ride"]["driverLocation"]["subjectId"] == "d1"
    assert driver.get("/api/v1/rides/active").data["ride"]["id"] == ride["id"]


def test_ride_history_pages_and_filters(rider):
    for _ in range(3):
        ride = book_ride(rider)
        rider.put(f"/api/v1/rides/{ride['id']}/cancel", {"cancellationReason": "testing"}, format="json")

    response = rider.get("/api/v1/rides/history", {"limit": 2, "status": "cancelled"})
    assert response.status_code == 200
    assert len(response.data["rides"]) == 2
    assert response.data["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}

    assert rider.get("/api/v1/rides/history", {"status": "completed"}).data["rides"] == []
    assert rider.get("/api/v1/rides/history", {"limit": 51}).status_code == 400
    assert client_for("r2", "rider").get("/api/v1/rides/history").data["pagination"]["total"] == 0


def test_driver_without_offer_cannot_reject(rider):
    ride = book_ride(rider)
    response = client_for("stranger", "driver").put(f"/api/v1/rides/{ride['id']}/reject", format="json")

    assert response.status_code == 403
    assert rider.get(f"/api/v1/rides/{ride['id']}/status").data["ride"]["status"] == "searching"
