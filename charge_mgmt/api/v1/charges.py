"""Charge calculation, bulk processing and test execution endpoints"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from charge_mgmt.api.dependencies import (
    get_batch_processor,
    get_cancel_event,
    get_charge_engine,
    get_request_id,
    get_statistics,
    get_test_harness,
)
from charge_mgmt.api.v1.schemas import (
    ApiResponse,
    BatchResultSchema,
    BulkCalculateRequest,
    CalculationResultSchema,
    ChargeHealthSchema,
    ChargeStatisticsSchema,
    CustomerSchema,
    ScenarioSchema,
    TestRequest,
    TestResultSchema,
    TestScenariosSchema,
    TestSuiteSchema,
    TransactionRequest,
    TransactionValidationSchema,
)
from charge_mgmt.config import settings
from charge_mgmt.domain.batch import BatchProcessor
from charge_mgmt.domain.charges import ChargeEngine
from charge_mgmt.domain.exceptions import BatchTimeoutError, DomainException, InvalidInputError
from charge_mgmt.domain.models import BatchResult, Channel, Transaction
from charge_mgmt.domain.scenarios import TEST_SUITES, TestHarness, grouped_catalogue
from charge_mgmt.infrastructure.observability.logging import log_batch, log_calculation
from charge_mgmt.infrastructure.observability.metrics import record_batch, record_calculations
from charge_mgmt.infrastructure.observability.statistics import ChargeStatistics

router = APIRouter()


def _timeout_seconds(timeout_ms: Optional[int]) -> float:
    if timeout_ms:
        return timeout_ms / 1000
    return settings.batch_timeout_seconds


def _finish_batch(kind: str, result: BatchResult, request: Request, stop_on_error: bool = False) -> BatchResultSchema:
    """Record metrics and logs; raise with the partial result when the deadline hit"""
    record_calculations(
        kind, result.successful_calculations, result.failed_calculations, result.total_charges_calculated
    )
    record_batch(kind, result.processing_time_ms, result.incomplete, result.timed_out, stop_on_error)
    log_batch(
        get_request_id(request),
        result.batch_id,
        result.requested_transactions,
        result.successful_calculations,
        result.failed_calculations,
        result.incomplete,
        result.processing_time_ms,
    )

    payload = BatchResultSchema.model_validate(result)
    if result.timed_out:
        raise BatchTimeoutError(
            f"Batch {result.batch_id} timed out after {result.total_transactions} of "
            f"{result.requested_transactions} transactions",
            partial=payload.model_dump(mode="json", by_alias=True),
        )
    return payload


@router.post("/charges/calculate", response_model=ApiResponse[CalculationResultSchema])
async def calculate_charges(
    body: TransactionRequest,
    request: Request,
    engine: ChargeEngine = Depends(get_charge_engine),
    statistics: ChargeStatistics = Depends(get_statistics),
):
    """
    Calculate itemized charges for one transaction.

    Flow:
    1. Resolve the customer and check the amount
    2. Match the transaction against the active rule snapshot
    3. Compute each charge and the rounded total
    4. Record statistics, metrics and a structured log line
    """
    start_time = time.time()
    transaction = body.to_domain()

    try:
        result = engine.calculate(transaction, calculated_at=datetime.now(timezone.utc))
    except DomainException:
        record_calculations("single", 0, 1, Decimal("0"))
        raise

    statistics.record(1, result.total_charges)
    record_calculations("single", 1, 0, result.total_charges)
    log_calculation(
        get_request_id(request),
        result.transaction_id,
        result.customer_code,
        len(result.calculated_charges),
        float(result.total_charges),
        (time.time() - start_time) * 1000,
    )

    return ApiResponse(data=CalculationResultSchema.model_validate(result))


@router.post("/charges/bulk-calculate", response_model=ApiResponse[BatchResultSchema])
async def bulk_calculate(
    body: BulkCalculateRequest,
    request: Request,
    processor: BatchProcessor = Depends(get_batch_processor),
    statistics: ChargeStatistics = Depends(get_statistics),
    cancel: asyncio.Event = Depends(get_cancel_event),
):
    """
    Calculate charges for an ordered list of transactions.

    Per-item failures land in ``errors``; the batch still succeeds unless
    ``stopOnError`` is set. Past the deadline the partial result comes back as a 504.
    """
    if len(body.transactions) > settings.max_batch_size:
        raise InvalidInputError(
            f"Batch of {len(body.transactions)} exceeds the limit of {settings.max_batch_size} transactions"
        )

    result = await processor.process(
        [t.to_domain() for t in body.transactions],
        stop_on_error=body.stop_on_error,
        batch_id=body.batch_id,
        timeout_seconds=_timeout_seconds(body.timeout_ms),
        cancel_event=cancel,
    )
    statistics.record(result.successful_calculations, result.total_charges_calculated)

    return ApiResponse(data=_finish_batch("bulk", result, request, stop_on_error=body.stop_on_error))


@router.post("/charges/test", response_model=ApiResponse[TestResultSchema])
async def run_test(
    body: TestRequest,
    request: Request,
    harness: TestHarness = Depends(get_test_harness),
    cancel: asyncio.Event = Depends(get_cancel_event),
):
    """Run a predefined suite (testSuiteId) or an explicit list of test transactions"""
    timeout = _timeout_seconds(body.timeout_ms)

    if body.test_suite_id:
        result = await harness.run_suite(
            body.test_suite_id, body.customer_code, timeout_seconds=timeout, cancel_event=cancel
        )
    elif body.test_transactions:
        if not body.customer_code:
            raise InvalidInputError("customerCode is required for custom test transactions")
        result = await harness.run_scenarios(
            body.customer_code,
            [s.to_template() for s in body.test_transactions],
            name=body.test_description or "Custom Test",
            timeout_seconds=timeout,
            cancel_event=cancel,
        )
    else:
        raise InvalidInputError("Either testSuiteId or testTransactions is required")

    record_batch("test", result.processing_time_ms, result.incomplete, result.timed_out, False)
    logging.info(
        "Test run completed",
        extra={
            "request_id": get_request_id(request),
            "test_suite": result.test_suite_id or result.test_suite_name,
            "customer_code": result.customer_code,
            "transactions_tested": result.total_transactions_tested,
            "failed_transactions": result.failed_transactions,
            "incomplete": result.incomplete,
        },
    )

    payload = TestResultSchema.model_validate(result)
    if result.timed_out:
        raise BatchTimeoutError(
            f"Test run timed out after {result.total_transactions_tested} transactions",
            partial=payload.model_dump(mode="json", by_alias=True),
        )
    return ApiResponse(data=payload)


@router.get("/charges/test-scenarios", response_model=ApiResponse[TestScenariosSchema])
def test_scenarios(harness: TestHarness = Depends(get_test_harness)):
    catalogue = grouped_catalogue()

    def scenarios(tag):
        return [ScenarioSchema.model_validate(s) for s in catalogue[tag]]

    return ApiResponse(
        data=TestScenariosSchema(
            atm_scenarios=scenarios("atm"),
            transfer_scenarios=scenarios("transfer"),
            special_scenarios=scenarios("special"),
            edge_scenarios=scenarios("edge"),
            sample_customers=[CustomerSchema.model_validate(c) for c in harness.sample_customers()],
            test_suites=[TestSuiteSchema.model_validate(s) for s in TEST_SUITES.values()],
        )
    )


@router.get("/charges/quick-test", response_model=ApiResponse[CalculationResultSchema])
async def quick_test(
    customer_code: str = Query("CUST001", alias="customerCode"),
    transaction_type: str = Query("ATM_WITHDRAWAL_PARENT", alias="transactionType"),
    amount: Decimal = Query(Decimal("1000")),
    channel: Optional[str] = Query(None),
    engine: ChargeEngine = Depends(get_charge_engine),
):
    """One calculation from query parameters; not counted in the daily statistics"""
    transaction = Transaction(
        transaction_id="QUICK_TEST",
        customer_code=customer_code,
        transaction_type=transaction_type,
        amount=amount,
        channel=channel or None,
    )
    result = engine.calculate(transaction, calculated_at=datetime.now(timezone.utc))
    return ApiResponse(data=CalculationResultSchema.model_validate(result))


@router.post("/charges/simulate", response_model=ApiResponse[BatchResultSchema])
async def simulate(
    request: Request,
    customer_code: str = Query("CUST001", alias="customerCode"),
    transaction_count: int = Query(5, alias="transactionCount", ge=1),
    harness: TestHarness = Depends(get_test_harness),
    cancel: asyncio.Event = Depends(get_cancel_event),
):
    """Run ``transactionCount`` catalogue transactions for one customer as a batch"""
    if transaction_count > settings.max_batch_size:
        raise InvalidInputError(f"transactionCount cannot exceed {settings.max_batch_size}")

    result = await harness.simulate(
        customer_code,
        transaction_count,
        timeout_seconds=settings.batch_timeout_seconds,
        cancel_event=cancel,
    )
    return ApiResponse(data=_finish_batch("simulate", result, request))


@router.post("/charges/validate", response_model=ApiResponse[TransactionValidationSchema])
def validate_transaction(body: TransactionRequest, engine: ChargeEngine = Depends(get_charge_engine)):
    """Dry run: report problems and the rules that would apply, without calculating"""
    transaction = body.to_domain()
    errors = []
    matching = []

    if not transaction.transaction_type:
        errors.append("transactionType is required")
    if transaction.amount < 0:
        errors.append(f"Invalid transaction amount: {transaction.amount}")
    if transaction.channel is not None and transaction.channel not in Channel.__members__:
        errors.append(f"Unknown channel: {transaction.channel}")

    try:
        customer = engine.resolve_customer(transaction.customer_code)
    except DomainException as e:
        errors.append(e.message)
    else:
        matching = [r.rule_code for r in engine.candidate_rules(transaction, customer)]

    return ApiResponse(
        data=TransactionValidationSchema(valid=not errors, errors=errors, matching_rules=matching)
    )


@router.get("/charges/statistics", response_model=ApiResponse[ChargeStatisticsSchema])
def charge_statistics(statistics: ChargeStatistics = Depends(get_statistics)):
    return ApiResponse(data=ChargeStatisticsSchema.model_validate(statistics.snapshot()))


@router.get("/charges/health", response_model=ApiResponse[ChargeHealthSchema])
def charge_health(engine: ChargeEngine = Depends(get_charge_engine)):
    return ApiResponse(
        data=ChargeHealthSchema(
            status="UP",
            active_rules=len(engine.active_rules),
            customers=len(engine.customers),
            currency=settings.currency,
        )
    )


@router.get("/charges/sample-requests", response_model=ApiResponse[Dict[str, Any]])
def sample_requests():
    """Example request bodies for the calculation endpoints"""
    return ApiResponse(
        data={
            "calculate": {
                "transactionId": "TXN_SAMPLE_001",
                "customerCode": "CUST001",
                "transactionType": "ATM_WITHDRAWAL_OTHER",
                "amount": 500,
                "channel": "ATM",
            },
            "bulkCalculate": {
                "batchId": "BATCH_SAMPLE",
                "stopOnError": False,
                "transactions": [
                    {
                        "transactionId": "TXN_SAMPLE_101",
                        "customerCode": "CUST001",
                        "transactionType": "FUNDS_TRANSFER",
                        "amount": 5000,
                        "channel": "ONLINE",
                    },
                    {
                        "transactionId": "TXN_SAMPLE_102",
                        "customerCode": "CUST002",
                        "transactionType": "FUNDS_TRANSFER",
                        "amount": 50000,
                        "channel": "BRANCH",
                    },
                ],
            },
            "testSuite": {"testSuiteId": "atm_scenarios", "customerCode": "CUST001"},
            "customTest": {
                "customerCode": "CUST001",
                "testDescription": "Statement and card fees",
                "testTransactions": [
                    {"transactionType": "STATEMENT_PRINT", "amount": 0, "channel": "BRANCH"},
                    {"transactionType": "DUPLICATE_DEBIT_CARD", "amount": 0, "channel": "BRANCH"},
                ],
            },
        }
    )
