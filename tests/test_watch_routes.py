import pytest
from unittest.mock import patch

ALICE = "alice@example.com"

# --- Session-authenticated sync ---

def test_watch_sync_happy_path(client, alice_session):
    response = client.post("/api/health/watch-sync", json={"heartRateBpm": 72, "temperatureC": 36.5})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Data synced successfully"}
    latest = client.get("/api/health/latest").json()
    assert latest["heartRateBpm"] == 72
    assert latest["temperatureC"] == 36.5
    assert latest["hasTemperature"] is True
    assert latest["source"] == "AppleWatch_HealthKit"
    assert latest["lastSyncUtc"].startswith("2026-10-19T12:00:00")

def test_watch_sync_without_session(client):
    response = client.post("/api/health/watch-sync", json={"heartRateBpm": 72})
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "User not authenticated"}

def test_watch_sync_without_body(client, alice_session):
    response = client.post("/api/health/watch-sync")
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid payload"}

def test_watch_sync_empty_payload_keeps_previous_sample(client, alice_session):
    client.post("/api/health/watch-sync", json={"heartRateBpm": 72, "temperatureC": 36.5})

    response = client.post("/api/health/watch-sync", json={"source": "AppleWatch_HealthKit"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "No health data provided"}
    assert client.get("/api/health/latest").json()["temperatureC"] == 36.5

def test_watch_sync_replaces_previous_sample(client, alice_session):
    client.post("/api/health/watch-sync", json={"heartRateBpm": 72, "temperatureC": 36.5})
    client.post("/api/health/watch-sync", json={"heartRateBpm": 80})

    latest = client.get("/api/health/latest").json()
    assert latest["heartRateBpm"] == 80
    assert latest["temperatureC"] is None
    assert latest["hasTemperature"] is False

def test_watch_sync_rejects_malformed_numbers(client, alice_session):
    response = client.post("/api/health/watch-sync", json={"heartRateBpm": "fast"})
    assert response.status_code == 422

# --- Key-based sync ---

def test_watch_sync_with_key(client, login, alice_id):
    response = client.post(
        "/api/health/watch-sync-key",
        json={"apiKey": ALICE, "heartRateBpm": 64, "source": "iPhone", "timestampUtc": "2026-10-19T11:59:00Z"},
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    login(alice_id)
    latest = client.get("/api/health/latest").json()
    assert latest["heartRateBpm"] == 64
    assert latest["source"] == "iPhone"
    assert latest["hasTemperature"] is False

@pytest.mark.parametrize("body", [None, {"heartRateBpm": 64}, {"apiKey": "", "heartRateBpm": 64}])
def test_watch_sync_with_key_requires_key(client, body):
    response = client.post("/api/health/watch-sync-key", json=body)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "API key required"}

def test_watch_sync_with_unknown_key(client, login, alice_id):
    response = client.post("/api/health/watch-sync-key", json={"apiKey": "mallory@example.com", "heartRateBpm": 64})
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid API key"}

    login(alice_id)
    assert client.get("/api/health/latest").json()["lastSyncUtc"] is None

def test_watch_sync_with_key_and_no_measurement(client):
    response = client.post("/api/health/watch-sync-key", json={"apiKey": ALICE})
    assert response.status_code == 400
    assert response.json()["message"] == "No health data provided"

def test_watch_sync_internal_failure_is_opaque(client, app, alice_session):
    samples = app.state.watch_ingestor.samples
    with patch.object(samples, "upsert", side_effect=RuntimeError("lock poisoned")):
        response = client.post("/api/health/watch-sync", json={"heartRateBpm": 72})

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Server error"}

# --- Latest ---

def test_latest_without_any_sync(client, alice_session):
    response = client.get("/api/health/latest")

    assert response.status_code == 200
    assert response.json() == {
        "heartRateBpm": None,
        "temperatureC": None,
        "hasTemperature": False,
        "source": "",
        "lastSyncUtc": None,
    }
    assert "no-store" in response.headers["cache-control"]

def test_latest_requires_session(client):
    assert client.get("/api/health/latest").status_code == 401

def test_latest_is_per_user(client, login, alice_id, bob_id):
    login(alice_id)
    client.post("/api/health/watch-sync", json={"heartRateBpm": 72})
    login(bob_id)
    assert client.get("/api/health/latest").json()["heartRateBpm"] is None
