from fastapi.testclient import TestClient

from gombesafe.core.config import Settings
from gombesafe.main import create_app

SCENARIO = {
    "type": "theft",
    "location": "Market",
    "lat": 10.29,
    "lng": 11.17,
    "idempotencyKey": "abc",
}


def test_health_check(client):
    """Test health check endpoint"""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "incidents": 0,
        "securityAreas": 0,
        "eventLog": "disabled",
    }


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_report_scenario(client):
    response = client.post("/api/incidents", json=SCENARIO)
    assert response.status_code == 201
    created = response.json()
    assert created["id"]
    assert created["type"] == "theft"
    assert created["latitude"] == 10.29
    assert created["isAnonymous"] is True
    assert "reportedAt" in created

    response = client.post("/api/incidents", json=SCENARIO)
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    response = client.get("/api/incidents?hours=1")
    assert response.status_code == 200
    assert [i["id"] for i in response.json()] == [created["id"]]

    response = client.get("/api/stats?hours=1")
    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 1
    assert stats["byType"]["theft"] == 1


def test_idempotency_key_from_header(client):
    body = {k: v for k, v in SCENARIO.items() if k != "idempotencyKey"}
    first = client.post("/api/incidents", json=body, headers={"Idempotency-Key": "hdr-1"})
    second = client.post("/api/incidents", json=body, headers={"Idempotency-Key": "hdr-1"})

    assert first.status_code == 201
    assert second.status_code == 200
    assert first.json()["id"] == second.json()["id"]


def test_validation_errors_list_every_field(client):
    response = client.post(
        "/api/incidents",
        json={"type": "unknown", "latitude": 120, "longitude": 11.17},
    )
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["message"] == "Invalid incident data"
    assert {e["field"] for e in detail["errors"]} == {
        "type",
        "location",
        "latitude",
        "idempotencyKey",
    }


def test_get_incident_and_404(client):
    created = client.post("/api/incidents", json=SCENARIO).json()

    response = client.get(f"/api/incidents/{created['id']}")
    assert response.status_code == 200
    assert response.json()["location"] == "Market"

    assert client.get("/api/incidents/does-not-exist").status_code == 404


def test_status_updates(client):
    created = client.post("/api/incidents", json=SCENARIO).json()
    url = f"/api/incidents/{created['id']}/status"

    response = client.patch(url, json={"status": "resolved"})
    assert response.status_code == 200
    assert response.json()["status"] == "resolved"

    response = client.patch(url, json={"status": "resolved"})
    assert response.status_code == 200

    assert client.patch(url, json={"status": "bogus"}).status_code == 409
    assert client.patch(url, json={}).status_code == 400
    assert client.patch("/api/incidents/missing/status", json={"status": "active"}).status_code == 404

    stats = client.get("/api/stats?hours=1").json()
    assert stats["resolved"] == 1


def test_invalid_hours(client):
    response = client.get("/api/stats?hours=0")
    assert response.status_code == 400
    assert response.json()["detail"]["errors"][0]["field"] == "hours"

    assert client.get("/api/incidents?hours=-3").status_code == 400


def test_default_stats_window(client):
    client.post("/api/incidents", json=SCENARIO)
    stats = client.get("/api/stats").json()
    assert stats["hours"] == 24
    assert stats["total"] == 1
    assert stats["typeShare"] == {"theft": 100.0}


def test_security_areas(client):
    response = client.post(
        "/api/security-areas",
        json={
            "name": "Bolari",
            "riskLevel": "medium",
            "latitude": 10.2937,
            "longitude": 11.1694,
            "radiusMeters": 1500,
        },
    )
    assert response.status_code == 201
    area = response.json()
    assert area["incidentCount"] == 0

    client.post("/api/incidents", json=SCENARIO)

    areas = client.get("/api/security-areas").json()
    assert [a["name"] for a in areas] == ["Bolari"]
    assert areas[0]["incidentCount"] == 1

    response = client.patch(f"/api/security-areas/{area['id']}", json={"riskLevel": "high"})
    assert response.status_code == 200
    assert response.json()["riskLevel"] == "high"

    nearest = client.get("/api/security-areas/nearest?lat=10.29&lng=11.17")
    assert nearest.status_code == 200
    assert nearest.json()["id"] == area["id"]
    assert client.get("/api/security-areas/nearest?lat=0&lng=0").status_code == 404

    filtered = client.get(f"/api/incidents?area={area['id']}").json()
    assert len(filtered) == 1

    assert client.patch("/api/security-areas/missing", json={"riskLevel": "low"}).status_code == 404
    bad = client.patch(f"/api/security-areas/{area['id']}", json={"radiusMeters": -1})
    assert bad.status_code == 400


def test_spatial_endpoints(client):
    client.post("/api/incidents", json=SCENARIO)
    far = dict(SCENARIO, idempotencyKey="far", lat=10.6, lng=11.5)
    client.post("/api/incidents", json=far)

    nearby = client.get("/api/incidents/nearby?lat=10.29&lng=11.17&radius=500").json()
    assert [i["location"] for i in nearby] == ["Market"]

    within = client.get(
        "/api/incidents/within?minLat=10&minLng=11&maxLat=11&maxLng=12"
    ).json()
    assert len(within) == 2

    assert client.get("/api/incidents/nearby?lat=95&lng=0").status_code == 400


def test_summary_and_rebuild(client):
    client.post("/api/incidents", json=SCENARIO)

    summary = client.get("/api/stats/summary").json()
    assert summary["totalIncidents"] == 1
    assert summary["activeShare"] == 100.0

    response = client.post("/api/stats/rebuild")
    assert response.status_code == 200
    assert response.json()["incidents"] == 1


def test_realtime_broadcasts_new_incidents(client):
    with client.websocket_connect("/api/realtime/incidents") as websocket:
        client.post("/api/incidents", json=SCENARIO)
        message = websocket.receive_json()
        assert message["type"] == "new_incident"
        assert message["data"]["location"] == "Market"


def test_seeded_app_has_gombe_areas():
    app = create_app(Settings(seed_demo_data=True))
    client = TestClient(app)

    areas = client.get("/api/security-areas").json()
    assert len(areas) == 10
    assert client.get("/api/health").json()["incidents"] == 5


def test_event_log_survives_restart(tmp_path):
    settings = Settings(seed_demo_data=False, event_log_url=f"sqlite:///{tmp_path / 'events.db'}")
    first = TestClient(create_app(settings))
    created = first.post("/api/incidents", json=SCENARIO).json()

    second = TestClient(create_app(settings))
    assert second.get(f"/api/incidents/{created['id']}").status_code == 200
    assert second.post("/api/incidents", json=SCENARIO).status_code == 200
    assert second.get("/api/health").json()["eventLog"] == "ok"
