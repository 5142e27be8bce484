"""Integration tests for the charge calculation and test execution endpoints"""

import asyncio
import itertools

from fastapi.testclient import TestClient

from charge_mgmt.api.dependencies import get_cancel_event
from charge_mgmt.config import settings
from charge_mgmt.domain import batch

API = settings.api_prefix


def transaction(transaction_id: str, customer_code: str = "CUST001", **overrides) -> dict:
    body = {
        "transactionId": transaction_id,
        "customerCode": customer_code,
        "transactionType": "ATM_WITHDRAWAL_OTHER",
        "amount": 500,
        "channel": "ATM",
    }
    body.update(overrides)
    return body


def test_calculate(client: TestClient):
    response = client.post(f"{API}/charges/calculate", json=transaction("TXN_1"))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["transactionId"] == "TXN_1"
    assert data["totalCharges"] == 25.0
    assert data["calculatedCharges"] == [
        {
            "ruleCode": "ATM01",
            "ruleName": "Other bank ATM withdrawal fee",
            "feeType": "FLAT",
            "chargeAmount": 25.0,
            "calculationBasis": "Flat fee of 25.00",
        }
    ]
    assert data["calculatedAt"] is not None


def test_calculate_generates_transaction_id(client: TestClient):
    body = transaction("ignored")
    del body["transactionId"]

    data = client.post(f"{API}/charges/calculate", json=body).json()["data"]

    assert data["transactionId"].startswith("TXN_")


def test_calculate_unknown_customer(client: TestClient):
    response = client.post(f"{API}/charges/calculate", json=transaction("TXN_1", customer_code="CUST999"))

    assert response.status_code == 422
    assert response.json()["kind"] == "UnknownCustomer"


def test_calculate_negative_amount(client: TestClient):
    response = client.post(f"{API}/charges/calculate", json=transaction("TXN_1", amount=-5))

    assert response.status_code == 422
    assert response.json()["kind"] == "InvalidAmount"


def test_approved_rule_takes_part_in_next_calculation(client: TestClient):
    transfer = transaction(
        "TXN_C", customer_code="CUST002", transactionType="FUNDS_TRANSFER", amount=10000, channel="ONLINE"
    )
    before = client.post(f"{API}/charges/calculate", json=transfer).json()["data"]

    trf03 = client.get(f"{API}/rules/code/TRF03").json()["data"]["id"]
    client.post(f"{API}/rules/{trf03}/approve")
    after = client.post(f"{API}/charges/calculate", json=transfer).json()["data"]

    assert before["totalCharges"] == 100.0
    assert [c["ruleCode"] for c in after["calculatedCharges"]] == ["TRF02", "TRF03"]
    assert after["totalCharges"] == 125.0


def test_bulk_calculate_isolates_failures(client: TestClient):
    response = client.post(
        f"{API}/charges/bulk-calculate",
        json={
            "batchId": "BATCH_1",
            "transactions": [
                transaction("T1"),
                transaction("T2", customer_code="CUST999"),
                transaction("T3"),
            ],
        },
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["batchId"] == "BATCH_1"
    assert data["totalTransactions"] == 3
    assert data["successfulCalculations"] == 2
    assert data["failedCalculations"] == 1
    assert data["errors"] == {"T2": "UnknownCustomer"}
    assert data["errorDetails"] == {"T2": "Unknown customer: CUST999"}
    assert data["chargesByRule"] == {"ATM01": 50.0}
    assert data["totalChargesCalculated"] == 50.0
    assert data["transactionTypeCount"] == {"ATM_WITHDRAWAL_OTHER": 2}
    assert data["incomplete"] is False


def test_bulk_calculate_stop_on_error(client: TestClient):
    response = client.post(
        f"{API}/charges/bulk-calculate",
        json={
            "stopOnError": True,
            "transactions": [transaction("T1", amount=-1), transaction("T2"), transaction("T3")],
        },
    )

    data = response.json()["data"]
    assert data["totalTransactions"] == 1
    assert data["failedCalculations"] == 1
    assert data["chargesByRule"] == {}
    assert data["requestedTransactions"] == 3
    assert data["incomplete"] is True


def test_bulk_calculate_rejects_duplicate_ids(client: TestClient):
    response = client.post(
        f"{API}/charges/bulk-calculate",
        json={"transactions": [transaction("T1"), transaction("T1")]},
    )

    assert response.status_code == 400
    assert response.json()["kind"] == "ValidationError"


def test_bulk_calculate_rejects_oversized_batch(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "max_batch_size", 2)

    response = client.post(
        f"{API}/charges/bulk-calculate",
        json={"transactions": [transaction(f"T{i}") for i in range(3)]},
    )

    assert response.status_code == 400


def test_bulk_calculate_timeout_returns_partial_result(client: TestClient, monkeypatch):
    # Every clock reading after the start is past the one-millisecond deadline
    readings = itertools.count(0, 10)
    monkeypatch.setattr(batch.time, "perf_counter", lambda: next(readings))

    response = client.post(
        f"{API}/charges/bulk-calculate",
        json={"timeoutMs": 1, "transactions": [transaction("T1"), transaction("T2")]},
    )

    assert response.status_code == 504
    body = response.json()
    assert body["success"] is False
    assert body["kind"] == "Timeout"
    assert body["data"]["timedOut"] is True
    assert body["data"]["incomplete"] is True
    assert body["data"]["requestedTransactions"] == 2


def test_statistics_track_calculations(client: TestClient):
    client.post(f"{API}/charges/calculate", json=transaction("T1"))
    client.post(
        f"{API}/charges/bulk-calculate",
        json={"transactions": [transaction("T2"), transaction("T3", customer_code="NOPE")]},
    )

    data = client.get(f"{API}/charges/statistics").json()["data"]

    assert data["systemStatus"] == "OPERATIONAL"
    assert data["totalCalculationsToday"] == 2
    assert data["totalChargesCalculated"] == 50.0
    assert data["averageChargePerTransaction"] == 25.0


def test_run_predefined_suite(client: TestClient):
    response = client.post(f"{API}/charges/test", json={"testSuiteId": "atm_scenarios"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["testSuiteId"] == "atm_scenarios"
    assert data["customerCode"] == "CUST001"
    assert data["totalTransactionsTested"] == 3
    assert data["totalChargesAcrossAllTransactions"] == 50.0
    assert data["transactionResults"][1]["rulesApplied"] == 1


def test_run_custom_transactions(client: TestClient):
    response = client.post(
        f"{API}/charges/test",
        json={
            "customerCode": "CUST003",
            "testDescription": "Card replacement",
            "testTransactions": [
                {"transactionType": "DUPLICATE_CREDIT_CARD", "amount": 0, "channel": "BRANCH"},
                {"transactionType": "UNKNOWN_ACTIVITY", "amount": 10},
            ],
        },
    )

    data = response.json()["data"]
    assert data["testSuiteName"] == "Card replacement"
    assert data["customerName"] == "Priya Sharma"
    assert data["totalTransactionsTested"] == 2
    assert data["transactionsWithCharges"] == 1
    assert data["totalChargesAcrossAllTransactions"] == 300.0


def test_run_test_errors(client: TestClient):
    unknown_suite = client.post(f"{API}/charges/test", json={"testSuiteId": "nope"})
    unknown_customer = client.post(
        f"{API}/charges/test", json={"testSuiteId": "atm_scenarios", "customerCode": "CUST999"}
    )
    empty = client.post(f"{API}/charges/test", json={})

    assert unknown_suite.status_code == 404
    assert unknown_customer.status_code == 422
    assert empty.status_code == 400


def test_test_scenarios_catalogue(client: TestClient):
    data = client.get(f"{API}/charges/test-scenarios").json()["data"]

    assert set(data) == {
        "atm_scenarios",
        "transfer_scenarios",
        "special_scenarios",
        "edge_scenarios",
        "sample_customers",
        "test_suites",
    }
    assert data["atm_scenarios"][0]["transactionType"] == "ATM_WITHDRAWAL_PARENT"
    assert [c["code"] for c in data["sample_customers"]] == ["CUST001", "CUST002", "CUST003", "CUST004", "CUST005"]
    assert data["test_suites"][0]["customerTypes"] == ["RETAIL", "CORPORATE"]


def test_quick_test(client: TestClient):
    response = client.get(
        f"{API}/charges/quick-test",
        params={"customerCode": "CUST001", "transactionType": "STATEMENT_PRINT", "amount": "0"},
    )

    data = response.json()["data"]
    assert data["transactionId"] == "QUICK_TEST"
    assert data["totalCharges"] == 50.0


def test_simulate(client: TestClient):
    response = client.post(f"{API}/charges/simulate", params={"customerCode": "CUST002", "transactionCount": 3})

    data = response.json()["data"]
    assert data["totalTransactions"] == 3
    assert data["failedCalculations"] == 0


def test_simulate_unknown_customer(client: TestClient):
    response = client.post(f"{API}/charges/simulate", params={"customerCode": "CUST999"})

    assert response.status_code == 422


def test_validate_transaction(client: TestClient):
    ok = client.post(
        f"{API}/charges/validate",
        json=transaction("T1", transactionType="FUNDS_TRANSFER", channel="BRANCH", amount=100),
    ).json()["data"]
    bad = client.post(
        f"{API}/charges/validate",
        json=transaction("T2", customer_code="CUST999", amount=-1, channel="FAX"),
    ).json()["data"]

    assert ok == {"valid": True, "errors": [], "matchingRules": ["TRF01", "TRF02"]}
    assert bad["valid"] is False
    assert len(bad["errors"]) == 3
    assert bad["matchingRules"] == []


def test_charge_health_and_samples(client: TestClient):
    health = client.get(f"{API}/charges/health").json()["data"]
    samples = client.get(f"{API}/charges/sample-requests").json()["data"]

    assert health == {"status": "UP", "activeRules": 7, "customers": 5, "currency": "INR"}
    assert {"calculate", "bulkCalculate", "testSuite", "customTest"} <= set(samples)


class FakeRequest:
    def __init__(self, disconnected: bool):
        self.disconnected = disconnected

    async def is_disconnected(self) -> bool:
        return self.disconnected


async def test_client_disconnect_sets_cancel_event():
    request = FakeRequest(disconnected=False)
    provider = get_cancel_event(request)
    cancel = await provider.__anext__()

    await asyncio.sleep(0.01)
    assert not cancel.is_set()

    request.disconnected = True
    await asyncio.wait_for(cancel.wait(), timeout=1)
    await provider.aclose()

    assert cancel.is_set()


async def test_cancel_watcher_stops_with_the_request():
    provider = get_cancel_event(FakeRequest(disconnected=False))
    cancel = await provider.__anext__()
    await provider.aclose()

    await asyncio.sleep(0.1)
    assert not cancel.is_set()
