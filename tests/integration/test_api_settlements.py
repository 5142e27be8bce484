"""Integration tests for settlements and users"""

from fastapi.testclient import TestClient

from charge_mgmt.config import settings

API = settings.api_prefix

SETTLEMENT = {
    "customerCode": "CUST001",
    "accountNumber": "ACC-0001",
    "settlementType": "CREDIT",
    "amount": 1500,
    "description": "Reversal of duplicate card fee",
    "requestedBy": "ops",
}


def test_settlement_workflow(client: TestClient):
    created = client.post(f"{API}/settlements", json=SETTLEMENT)
    assert created.status_code == 201
    settlement = created.json()["data"]
    assert settlement["status"] == "PENDING"
    assert settlement["amount"] == 1500.0
    assert settlement["signedAmount"] == -1500.0
    assert settlement["settlementId"].startswith("STL-")

    approved = client.post(
        f"{API}/settlements/{settlement['id']}/approve",
        json={"reviewedBy": "checker", "remarks": "verified"},
    ).json()["data"]
    assert approved["status"] == "APPROVED"
    assert approved["reviewedBy"] == "checker"

    processed = client.post(f"{API}/settlements/{settlement['id']}/process")
    assert processed.json()["data"]["status"] == "PROCESSED"

    rejected = client.post(f"{API}/settlements/{settlement['id']}/reject")
    assert rejected.status_code == 409
    assert rejected.json()["error"] == "Cannot reject settlement in status PROCESSED"


def test_settlement_zero_amount(client: TestClient):
    response = client.post(f"{API}/settlements", json={**SETTLEMENT, "amount": 0})

    assert response.status_code == 400
    assert response.json()["kind"] == "ValidationError"


def test_settlement_listing_and_lookup(client: TestClient):
    first = client.post(f"{API}/settlements", json=SETTLEMENT).json()["data"]
    second = client.post(f"{API}/settlements", json={**SETTLEMENT, "customerCode": "CUST002"}).json()["data"]
    client.post(f"{API}/settlements/{first['id']}/reject", json={"remarks": "not needed"})

    everything = client.get(f"{API}/settlements").json()["data"]
    pending = client.get(f"{API}/settlements", params={"status": "PENDING"}).json()["data"]
    acme = client.get(f"{API}/settlements", params={"customerCode": "CUST002"}).json()["data"]

    assert [s["id"] for s in everything] == [second["id"], first["id"]]
    assert [s["id"] for s in pending] == [second["id"]]
    assert [s["id"] for s in acme] == [second["id"]]
    assert client.get(f"{API}/settlements/{first['id']}").json()["data"]["remarks"] == "not needed"
    assert client.get(f"{API}/settlements/999").status_code == 404


def test_user_crud(client: TestClient):
    created = client.post(
        f"{API}/users",
        json={"username": "asha", "email": "asha@example.com", "firstName": "Asha", "role": "APPROVER"},
    )
    assert created.status_code == 201
    user = created.json()["data"]
    assert user["role"] == "APPROVER"
    assert user["isActive"] is True

    updated = client.put(f"{API}/users/{user['id']}", json={"lastName": "Rao", "isActive": False}).json()["data"]
    assert updated["lastName"] == "Rao"
    assert updated["firstName"] == "Asha"
    assert updated["isActive"] is False

    assert [u["username"] for u in client.get(f"{API}/users").json()["data"]] == ["asha"]

    assert client.delete(f"{API}/users/{user['id']}").json()["data"]["deleted"] is True
    assert client.get(f"{API}/users/{user['id']}").status_code == 404


def test_user_uniqueness(client: TestClient):
    client.post(f"{API}/users", json={"username": "asha", "email": "asha@example.com"})
    other = client.post(f"{API}/users", json={"username": "vikram", "email": "vikram@example.com"}).json()["data"]

    duplicate_name = client.post(f"{API}/users", json={"username": "asha", "email": "other@example.com"})
    duplicate_email = client.put(f"{API}/users/{other['id']}", json={"email": "asha@example.com"})

    assert duplicate_name.status_code == 400
    assert "username" in duplicate_name.json()["error"]
    assert duplicate_email.status_code == 400


def test_user_validation(client: TestClient):
    response = client.post(f"{API}/users", json={"username": "x", "email": "not-an-email"})

    assert response.status_code == 400
