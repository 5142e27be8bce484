"""Integration tests for the async API client"""

import httpx
import pytest
from sqlalchemy.orm import Session

from charge_mgmt.api.main import create_app
from charge_mgmt.domain.exceptions import ChargeApiError
from charge_mgmt.infrastructure.clients.charge_api import ChargeApiClient, ClientConfig
from charge_mgmt.infrastructure.database.session import get_db

BASE_URL = "http://testserver/charge-mgmt/api"


@pytest.fixture
def asgi_transport(db: Session) -> httpx.ASGITransport:
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    return httpx.ASGITransport(app=app)


def fast_config(**overrides) -> ClientConfig:
    fields = {"base_url": BASE_URL, "max_retries": 2, "backoff_base": 0}
    fields.update(overrides)
    return ClientConfig(**fields)


async def test_rule_round_trip_through_client(asgi_transport):
    async with ChargeApiClient(fast_config(), transport=asgi_transport) as api:
        rule = await api.create_rule(
            {
                "ruleCode": "ACC02",
                "ruleName": "Dormant account fee",
                "category": "ACCOUNT",
                "activityType": "DORMANT_ACCOUNT",
                "feeType": "FLAT",
                "feeValue": 75,
            }
        )
        approved = await api.approve_rule(rule["id"])
        pending = await api.list_pending_rules()

    assert rule["status"] == "DRAFT"
    assert approved["status"] == "ACTIVE"
    assert [r["ruleCode"] for r in pending] == ["TRF03"]


async def test_calculation_and_batch_through_client(asgi_transport):
    async with ChargeApiClient(fast_config(), transport=asgi_transport) as api:
        health = await api.health()
        result = await api.calculate(
            {"customerCode": "CUST001", "transactionType": "FUNDS_TRANSFER", "amount": 50000, "channel": "ONLINE"}
        )
        batch = await api.bulk_calculate(
            [
                {"transactionId": "A", "customerCode": "CUST001", "transactionType": "STATEMENT_PRINT", "amount": 0},
                {"transactionId": "B", "customerCode": "CUST999", "transactionType": "STATEMENT_PRINT", "amount": 0},
            ]
        )

    assert health["status"] == "UP"
    assert result["totalCharges"] == 100.0
    assert batch["errors"] == {"B": "UnknownCustomer"}


async def test_error_envelope_becomes_charge_api_error(asgi_transport):
    async with ChargeApiClient(fast_config(), transport=asgi_transport) as api:
        with pytest.raises(ChargeApiError) as exc_info:
            await api.run_test_suite("atm_scenarios", customer_code="CUST999")

    assert exc_info.value.kind == "UnknownCustomer"
    assert exc_info.value.status_code == 422
    assert exc_info.value.message == "Unknown customer: CUST999"


async def test_settlement_actions_through_client(asgi_transport):
    async with ChargeApiClient(fast_config(), transport=asgi_transport) as api:
        settlement = await api.create_settlement(
            {"customerCode": "CUST001", "accountNumber": "ACC-1", "settlementType": "DEBIT", "amount": 200}
        )
        approved = await api.approve_settlement(settlement["id"], reviewed_by="checker")
        listed = await api.list_settlements(status="APPROVED")

    assert approved["reviewedBy"] == "checker"
    assert [s["id"] for s in listed] == [settlement["id"]]


async def test_idempotent_requests_are_retried_on_503():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        if len(calls) < 3:
            return httpx.Response(503, json={"success": False, "error": "busy", "kind": "Internal"})
        return httpx.Response(200, json={"success": True, "data": []})

    async with ChargeApiClient(fast_config(), transport=httpx.MockTransport(handler)) as api:
        rules = await api.list_rules(status="ACTIVE")

    assert rules == []
    assert calls == ["GET", "GET", "GET"]


async def test_retries_give_up_after_max_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        return httpx.Response(502, text="bad gateway")

    async with ChargeApiClient(fast_config(max_retries=1), transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(ChargeApiError) as exc_info:
            await api.get_rule(1)

    assert len(calls) == 2
    assert exc_info.value.status_code == 502


async def test_post_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        return httpx.Response(503, json={"success": False, "error": "busy", "kind": "Internal"})

    async with ChargeApiClient(fast_config(), transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(ChargeApiError) as exc_info:
            await api.approve_rule(1)

    assert calls == ["POST"]
    assert exc_info.value.message == "busy"


async def test_network_errors_are_retried_then_raised():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        raise httpx.ConnectError("connection refused", request=request)

    async with ChargeApiClient(fast_config(), transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(ChargeApiError) as exc_info:
            await api.list_users()

    assert len(calls) == 3
    assert exc_info.value.kind == "Unavailable"
    assert exc_info.value.status_code is None


async def test_client_requires_context_manager():
    api = ChargeApiClient(fast_config())

    with pytest.raises(RuntimeError):
        await api.health()


def test_config_from_settings():
    config = ClientConfig.from_settings()

    assert config.base_url.endswith("/charge-mgmt/api")
    assert config.max_retries == 3
