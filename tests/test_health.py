"""Health and readiness endpoint tests."""

from dataclasses import replace

from fastapi.testclient import TestClient

from clixen.main import create_app


class TestHealth:

    def test_health_returns_ok(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "X-Correlation-ID" in response.headers

    def test_correlation_id_is_propagated(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"


class TestReadiness:

    def test_ready_when_database_and_config_present(self, client):
        response = client.get("/api/health/readiness")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["database"] == "ok"
        assert body["checks"]["tables"]["missing"] == []
        assert body["checks"]["missing_config"] == []

    def test_not_ready_when_config_missing(self, app_services):
        app_services.settings = replace(app_services.settings, stripe_webhook_secret="", openai_api_key="")
        client = TestClient(create_app(services=app_services))

        response = client.get("/api/health/readiness")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["missing_config"] == ["STRIPE_WEBHOOK_SECRET", "OPENAI_API_KEY"]

    def test_not_ready_without_database(self, app_services):
        app_services.session_factory = None
        client = TestClient(create_app(services=app_services))

        response = client.get("/api/health/readiness")

        assert response.status_code == 503
