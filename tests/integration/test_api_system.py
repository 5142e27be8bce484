"""Integration tests for service endpoints and middleware"""

from fastapi.testclient import TestClient

from charge_mgmt.config import settings

API = settings.api_prefix


def test_health_endpoint(client: TestClient):
    """Health is not enveloped; the dashboard reads status directly"""
    response = client.get(f"{API}/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "UP"
    assert body["service"] == settings.service_name
    assert body["database"] == "UP"


def test_welcome(client: TestClient):
    body = client.get(f"{API}/welcome").json()

    assert body["message"].startswith("Welcome")
    assert body["version"] == settings.service_version


def test_database_probe(client: TestClient):
    body = client.get(f"{API}/database/test").json()

    assert body == {"success": True, "data": {"database": "CONNECTED", "rules": 8, "customers": 5}}


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    client.post(
        f"{API}/charges/calculate",
        json={"customerCode": "CUST001", "transactionType": "STATEMENT_PRINT", "amount": 0},
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "charge_calculations_total" in response.text
    assert "http_request_duration_seconds" in response.text


def test_request_id_is_propagated(client: TestClient):
    response = client.get(f"{API}/welcome", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated(client: TestClient):
    response = client.get(f"{API}/welcome")

    assert len(response.headers["X-Request-ID"]) == 36


def test_unknown_route_uses_error_envelope(client: TestClient):
    response = client.get(f"{API}/nowhere")

    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["kind"] == "NotFound"
