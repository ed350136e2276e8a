import pytest
from fastapi.testclient import TestClient

from streamsite.core.config import settings
from streamsite.main import app


@pytest.fixture
def health_client():
    # No lifespan: Redis stays disconnected
    return TestClient(app)


def test_liveness(health_client):
    response = health_client.get("/livez")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ready_without_redis_when_cms_configured(health_client, monkeypatch):
    monkeypatch.setattr(settings, "COSMIC_BUCKET_SLUG", "site-bucket")
    monkeypatch.setattr(settings, "COSMIC_READ_KEY", "read-key")

    response = health_client.get("/readyz")

    assert response.status_code == 200
    assert response.json()["dependencies"]["redis"] == "degraded (not connected)"


def test_not_ready_without_cms(health_client, monkeypatch):
    monkeypatch.setattr(settings, "COSMIC_BUCKET_SLUG", None)

    response = health_client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["detail"]["cms"] == "not configured"


def test_metrics_are_exposed(health_client):
    response = health_client.get("/metrics")

    assert response.status_code == 200
    assert "streamsite_webhook_events_total" in response.text
