"""Tests for health endpoints."""

from fastapi.testclient import TestClient


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness(client: TestClient) -> None:
    """Ready once the resolver is wired, even without Cassandra or Redis."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["environment"] == "testing"
    assert data["cassandra"] is False
    assert data["redis"] is False


def test_readiness_503_without_resolver(client: TestClient) -> None:
    """Without a database the API starts but stays out of rotation."""
    client.app.state.access_resolver = None
    response = client.get("/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "eduaccess"
    assert "version" in data
    assert "environment" in data


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "EduAccess" in data["message"]
    assert "version" in data
