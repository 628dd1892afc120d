from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock


def test_health_returns_status_and_services(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] in ("healthy", "degraded")
    assert "version" in data
    assert "cosmos_db" in data["services"]


def test_health_not_configured_is_healthy(client):
    response = client.get("/api/v1/health")
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"]["cosmos_db"] == "not_configured"


def test_health_degraded_when_cosmos_check_fails(client):
    database = MagicMock()
    database.database = object()
    database.check_connection = AsyncMock(return_value=False)
    client.app.state.database = database

    data = client.get("/api/v1/health").json()

    assert data["status"] == "degraded"
    assert data["services"]["cosmos_db"] == "error"


def test_readiness_probe_without_store(client):
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["ready"] is False


def test_readiness_probe_with_services(client, services):
    client.app.state.services = services
    assert client.get("/api/v1/health/ready").json()["ready"] is True


def test_health_protected_requires_auth(client):
    response = client.get("/api/v1/health/protected")
    assert response.status_code == 401


def test_health_protected_with_auth(authenticated_client):
    response = authenticated_client.get("/api/v1/health/protected")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "user" in data
