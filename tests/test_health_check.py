from unittest.mock import patch

import pytest


class TestHealthCheck:
    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_health_check_reports_database_status(self, client):
        data = client.get("/health").json()
        assert data["services"]["database"]["status"] == "up"
        assert "response_time_ms" in data["services"]["database"]

    def test_health_check_reports_cache_status(self, client):
        data = client.get("/health").json()
        assert data["services"]["cache"]["status"] == "up"

    def test_cache_outage_reports_503(self, client):
        with patch("django.core.cache.backends.locmem.LocMemCache.get", return_value=None):
            response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["services"]["cache"]["status"] == "down"

    @pytest.mark.parametrize("path", ["/api/v1/orders/"])
    def test_health_needs_no_credentials_unlike_the_api(self, client, path):
        assert client.get("/health").status_code == 200
        assert client.get(path).status_code == 401
