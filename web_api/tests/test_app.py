"""Smoke tests for the FastAPI app wiring in main.py."""

from fastapi.testclient import TestClient


def test_health_and_cron_route_mounted():
    from main import app

    client = TestClient(app)  # No context manager: lifespan does not run

    assert client.get("/health").json()["status"] == "healthy"
    # Mounted routes reject unauthenticated calls; unknown paths would 404
    assert client.post("/api/cron/session-reminders").status_code == 401
    assert client.get("/api/cron/session-reminders/status").status_code == 401
    assert client.get("/api/cron/unknown").status_code == 404
