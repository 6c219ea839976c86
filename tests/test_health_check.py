import pytest
from django.db import DatabaseError

pytestmark = pytest.mark.integration


class TestHealthCheck:
    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert set(data["services"]) == {"database", "cache"}

    def test_health_check_is_public(self, api_client):
        assert api_client.get("/health").status_code == 200

    def test_health_check_reports_service_timings(self, client):
        services = client.get("/health").json()["services"]
        for name in ("database", "cache"):
            assert services[name]["status"] == "up"
            assert services[name]["response_time_ms"] >= 0

    def test_database_down_returns_503(self, client, monkeypatch):
        def broken(self):
            raise DatabaseError("connection refused")

        monkeypatch.setattr("django.db.backends.base.base.BaseDatabaseWrapper.ensure_connection", broken)

        response = client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["services"]["database"] == {"status": "down"}
