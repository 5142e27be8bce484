"""Async HTTP client for the charge management REST API"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from charge_mgmt.config import settings
from charge_mgmt.domain.exceptions import ChargeApiError
from charge_mgmt.infrastructure.observability.metrics import (
    api_client_latency_histogram,
    api_client_retry_counter,
)

IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE"})
RETRYABLE_STATUSES = frozenset({502, 503})


@dataclass(frozen=True)
class ClientConfig:
    """Explicit, immutable client settings; one value per client instance"""

    base_url: str
    timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_base: float = 0.5

    @classmethod
    def from_settings(cls) -> "ClientConfig":
        return cls(
            base_url=settings.api_base_url,
            timeout_seconds=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            backoff_base=settings.http_backoff_base,
        )


def _params(**values: Any) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _body(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """JSON-ready copy of a request body: Decimals become numbers, None fields are dropped"""
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in payload.items() if v is not None}


class ChargeApiClient:
    """
    Client for the charge management service.

    Use as an async context manager. Successful calls return the unwrapped
    ``data`` of the response envelope; failures raise ChargeApiError carrying the
    envelope's kind, message and partial data.

    Usage:
        async with ChargeApiClient(ClientConfig.from_settings()) as api:
            rules = await api.list_rules(status="ACTIVE")
    """

    def __init__(self, config: ClientConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ChargeApiClient":
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """
        Send one request, retrying idempotent methods.

        Retry strategy:
        - Only GET, PUT and DELETE are retried
        - Retries on network errors and 502/503 responses
        - Exponential backoff: base, 2*base, 4*base, ...
        """
        if self._client is None:
            raise RuntimeError("ChargeApiClient must be used as an async context manager")

        retryable = method in IDEMPOTENT_METHODS
        attempt = 0
        while True:
            try:
                with api_client_latency_histogram.labels(method=method).time():
                    response = await self._client.request(method, path, params=params, json=json)
            except httpx.RequestError as e:
                if not retryable or attempt >= self.config.max_retries:
                    raise ChargeApiError("Unavailable", f"{method} {path} failed: {e}") from e
            else:
                if not (retryable and response.status_code in RETRYABLE_STATUSES) or (
                    attempt >= self.config.max_retries
                ):
                    return self._unwrap(response)

            attempt += 1
            api_client_retry_counter.labels(method=method).inc()
            await asyncio.sleep(self.config.backoff_base * (2 ** (attempt - 1)))

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            if isinstance(body, dict) and "success" in body and "data" in body:
                return body["data"]
            # /health and /welcome are not enveloped
            return body

        if isinstance(body, dict) and "error" in body:
            raise ChargeApiError(
                body.get("kind", "Internal"),
                body["error"],
                response.status_code,
                body.get("data"),
            )
        raise ChargeApiError("Internal", response.text or response.reason_phrase, response.status_code)

    # System

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/health")

    async def welcome(self) -> Dict[str, Any]:
        return await self._request("GET", "/welcome")

    async def database_test(self) -> Dict[str, Any]:
        return await self._request("GET", "/database/test")

    # Rules

    async def list_rules(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return await self._request("GET", "/rules", params=_params(status=status, category=category, search=search))

    async def list_active_rules(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/rules/active")

    async def list_rules_by_category(self, category: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/rules/category/{category}")

    async def list_pending_rules(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/rules/pending-approval")

    async def rule_statistics(self) -> Dict[str, Any]:
        return await self._request("GET", "/rules/statistics")

    async def rule_metadata(self) -> Dict[str, Any]:
        return await self._request("GET", "/rules/metadata")

    async def get_rule(self, rule_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/rules/{rule_id}")

    async def get_rule_by_code(self, rule_code: str) -> Dict[str, Any]:
        return await self._request("GET", f"/rules/code/{rule_code}")

    async def create_rule(self, rule: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/rules", json=_body(rule))

    async def validate_rule(self, rule: Mapping[str, Any], rule_id: Optional[int] = None) -> Dict[str, Any]:
        return await self._request("POST", "/rules/validate", params=_params(ruleId=rule_id), json=_body(rule))

    async def update_rule(self, rule_id: int, rule: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/rules/{rule_id}", json=_body(rule))

    async def delete_rule(self, rule_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/rules/{rule_id}")

    async def approve_rule(self, rule_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"/rules/{rule_id}/approve")

    async def deactivate_rule(self, rule_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"/rules/{rule_id}/deactivate")

    async def reactivate_rule(self, rule_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"/rules/{rule_id}/reactivate")

    async def bulk_action(self, action: str, rule_ids: Iterable[int]) -> Dict[str, Any]:
        return await self._request("POST", "/rules/bulk-action", json={"action": action, "ruleIds": list(rule_ids)})

    # Charges

    async def calculate(self, transaction: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/charges/calculate", json=_body(transaction))

    async def bulk_calculate(
        self,
        transactions: Iterable[Mapping[str, Any]],
        stop_on_error: bool = False,
        batch_id: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        body = _params(
            transactions=[_body(t) for t in transactions],
            stopOnError=stop_on_error,
            batchId=batch_id,
            timeoutMs=timeout_ms,
        )
        return await self._request("POST", "/charges/bulk-calculate", json=body)

    async def run_test(self, test_request: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/charges/test", json=_body(test_request))

    async def run_test_suite(self, suite_id: str, customer_code: Optional[str] = None) -> Dict[str, Any]:
        return await self.run_test(_params(testSuiteId=suite_id, customerCode=customer_code))

    async def test_scenarios(self) -> Dict[str, Any]:
        return await self._request("GET", "/charges/test-scenarios")

    async def quick_test(
        self,
        customer_code: str = "CUST001",
        transaction_type: str = "ATM_WITHDRAWAL_PARENT",
        amount: Any = 1000,
        channel: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = _params(
            customerCode=customer_code,
            transactionType=transaction_type,
            amount=str(amount),
            channel=channel,
        )
        return await self._request("GET", "/charges/quick-test", params=params)

    async def simulate(self, customer_code: str = "CUST001", transaction_count: int = 5) -> Dict[str, Any]:
        params = {"customerCode": customer_code, "transactionCount": transaction_count}
        return await self._request("POST", "/charges/simulate", params=params)

    async def validate_transaction(self, transaction: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/charges/validate", json=_body(transaction))

    async def charge_statistics(self) -> Dict[str, Any]:
        return await self._request("GET", "/charges/statistics")

    async def charge_health(self) -> Dict[str, Any]:
        return await self._request("GET", "/charges/health")

    async def sample_requests(self) -> Dict[str, Any]:
        return await self._request("GET", "/charges/sample-requests")

    # Settlements

    async def list_settlements(
        self,
        status: Optional[str] = None,
        customer_code: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = _params(status=status, customerCode=customer_code, dateFrom=date_from, dateTo=date_to)
        return await self._request("GET", "/settlements", params=params)

    async def create_settlement(self, settlement: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/settlements", json=_body(settlement))

    async def get_settlement(self, settlement_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/settlements/{settlement_id}")

    async def approve_settlement(self, settlement_id: int, **review: Optional[str]) -> Dict[str, Any]:
        return await self._settlement_action(settlement_id, "approve", **review)

    async def reject_settlement(self, settlement_id: int, **review: Optional[str]) -> Dict[str, Any]:
        return await self._settlement_action(settlement_id, "reject", **review)

    async def process_settlement(self, settlement_id: int, **review: Optional[str]) -> Dict[str, Any]:
        return await self._settlement_action(settlement_id, "process", **review)

    async def _settlement_action(
        self,
        settlement_id: int,
        action: str,
        reviewed_by: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = _params(reviewedBy=reviewed_by, remarks=remarks)
        return await self._request("POST", f"/settlements/{settlement_id}/{action}", json=body or None)

    # Users

    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/users")

    async def create_user(self, user: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/users", json=_body(user))

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{user_id}")

    async def update_user(self, user_id: int, user: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/users/{user_id}", json=_body(user))

    async def delete_user(self, user_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/users/{user_id}")
