"""Test harness - scenario catalogue, predefined suites and test runs"""

import asyncio
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from charge_mgmt.domain.batch import BatchProcessor
from charge_mgmt.domain.exceptions import NotFoundError
from charge_mgmt.domain.models import (
    BatchResult,
    Customer,
    ScenarioTemplate,
    TestResult,
    TestSuite,
    TestTransactionResult,
    Transaction,
)

SCENARIO_CATALOGUE: List[ScenarioTemplate] = [
    # ATM
    ScenarioTemplate("atm", "ATM_WITHDRAWAL_PARENT", Decimal("1000"), "ATM", "Own bank ATM withdrawal"),
    ScenarioTemplate("atm", "ATM_WITHDRAWAL_OTHER", Decimal("500"), "ATM", "Other bank ATM withdrawal"),
    ScenarioTemplate("atm", "ATM_WITHDRAWAL_OTHER", Decimal("10000"), "ATM", "Large other bank ATM withdrawal"),
    # Funds transfer
    ScenarioTemplate("transfer", "FUNDS_TRANSFER", Decimal("5000"), "ONLINE", "Online funds transfer"),
    ScenarioTemplate("transfer", "FUNDS_TRANSFER", Decimal("50000"), "BRANCH", "High value branch transfer"),
    ScenarioTemplate("transfer", "FUNDS_TRANSFER", Decimal("1000"), "MOBILE", "Mobile funds transfer"),
    # Special services
    ScenarioTemplate("special", "STATEMENT_PRINT", Decimal("0"), "BRANCH", "Statement print at branch"),
    ScenarioTemplate("special", "DUPLICATE_DEBIT_CARD", Decimal("0"), "BRANCH", "Duplicate debit card issue"),
    ScenarioTemplate("special", "DUPLICATE_CREDIT_CARD", Decimal("0"), "BRANCH", "Duplicate credit card issue"),
    # Boundary conditions
    ScenarioTemplate("edge", "FUNDS_TRANSFER", Decimal("0"), "ONLINE", "Zero amount transfer"),
    ScenarioTemplate("edge", "FUNDS_TRANSFER", Decimal("10000000"), "ONLINE", "Very large transfer hitting fee cap"),
    ScenarioTemplate("edge", "ATM_WITHDRAWAL_OTHER", Decimal("500"), "MOBILE", "Channel with no matching rule"),
]

SCENARIO_TAGS = ["atm", "transfer", "special", "edge"]

TEST_SUITES: Dict[str, TestSuite] = {
    suite.id: suite
    for suite in [
        TestSuite(
            id="comprehensive",
            name="Comprehensive Test Suite",
            description="Tests all rule categories with multiple scenarios",
            tags=list(SCENARIO_TAGS),
            customer_types=["RETAIL", "CORPORATE"],
            estimated_duration="2-3 minutes",
        ),
        TestSuite(
            id="atm_scenarios",
            name="ATM Transaction Tests",
            description="Focus on ATM withdrawal charges",
            tags=["atm"],
            customer_types=["RETAIL"],
            estimated_duration="1 minute",
        ),
        TestSuite(
            id="funds_transfer",
            name="Funds Transfer Tests",
            description="Various funds transfer scenarios",
            tags=["transfer"],
            customer_types=["RETAIL", "CORPORATE"],
            estimated_duration="1-2 minutes",
        ),
        TestSuite(
            id="special_services",
            name="Special Services Tests",
            description="Card replacement, statement printing etc.",
            tags=["special"],
            customer_types=["RETAIL"],
            estimated_duration="30 seconds",
        ),
        TestSuite(
            id="edge_cases",
            name="Edge Case Tests",
            description="Boundary conditions and special scenarios",
            tags=["edge"],
            customer_types=["RETAIL", "CORPORATE"],
            estimated_duration="1 minute",
        ),
    ]
}


def scenarios_for_tags(tags: Sequence[str]) -> List[ScenarioTemplate]:
    return [s for s in SCENARIO_CATALOGUE if s.tag in tags]


def grouped_catalogue() -> Dict[str, List[ScenarioTemplate]]:
    """Catalogue keyed by tag, in catalogue order"""
    return {tag: scenarios_for_tags([tag]) for tag in SCENARIO_TAGS}


def build_transactions(
    scenarios: Sequence[ScenarioTemplate],
    customer_code: str,
    prefix: str = "TEST",
) -> List[Transaction]:
    """Resolve templates against one customer with deterministic ids"""
    return [
        Transaction(
            transaction_id=f"{prefix}_{i + 1:03d}",
            customer_code=customer_code,
            transaction_type=s.transaction_type,
            amount=s.amount,
            channel=s.channel,
            description=s.description,
        )
        for i, s in enumerate(scenarios)
    ]


class TestHarness:
    """Runs scenario sets for one customer through the batch processor"""

    __test__ = False

    def __init__(self, processor: BatchProcessor):
        self.processor = processor
        self.engine = processor.engine

    def sample_customers(self) -> List[Customer]:
        return sorted(self.engine.customers, key=lambda c: c.code)

    def default_customer(self, suite: TestSuite) -> Customer:
        """First sample customer of the suite's primary customer type"""
        wanted = suite.customer_types[0]
        for customer in self.sample_customers():
            if customer.type == wanted:
                return customer
        raise NotFoundError("Sample customer of type", wanted)

    async def run_suite(
        self,
        suite_id: str,
        customer_code: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TestResult:
        suite = TEST_SUITES.get(suite_id)
        if suite is None:
            raise NotFoundError("Test suite", suite_id)

        if customer_code:
            customer = self.engine.resolve_customer(customer_code)
        else:
            customer = self.default_customer(suite)

        return await self._run(
            scenarios_for_tags(suite.tags),
            customer,
            suite_id=suite.id,
            suite_name=suite.name,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

    async def run_scenarios(
        self,
        customer_code: str,
        scenarios: Sequence[ScenarioTemplate],
        name: str = "Custom Test",
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TestResult:
        """Ad hoc run: same semantics as a batch against a single customer"""
        customer = self.engine.resolve_customer(customer_code)
        return await self._run(
            scenarios,
            customer,
            suite_id=None,
            suite_name=name,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

    async def simulate(
        self,
        customer_code: str,
        transaction_count: int,
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """Cycle through the catalogue to build ``transaction_count`` transactions"""
        self.engine.resolve_customer(customer_code)
        scenarios = [SCENARIO_CATALOGUE[i % len(SCENARIO_CATALOGUE)] for i in range(transaction_count)]
        transactions = build_transactions(scenarios, customer_code, prefix="SIM")
        return await self.processor.process(
            transactions, timeout_seconds=timeout_seconds, cancel_event=cancel_event
        )

    async def _run(
        self,
        scenarios: Sequence[ScenarioTemplate],
        customer: Customer,
        suite_id: Optional[str],
        suite_name: str,
        timeout_seconds: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> TestResult:
        transactions = build_transactions(scenarios, customer.code)
        batch = await self.processor.process(
            transactions,
            stop_on_error=False,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

        lines = []
        for outcome in batch.outcomes:
            txn = outcome.transaction
            if outcome.succeeded:
                lines.append(
                    TestTransactionResult(
                        transaction_id=txn.transaction_id,
                        transaction_type=txn.transaction_type,
                        transaction_amount=outcome.result.transaction_amount,
                        channel=txn.channel,
                        description=txn.description,
                        calculated_charges=list(outcome.result.calculated_charges),
                        total_charge_for_transaction=outcome.result.total_charges,
                    )
                )
            else:
                lines.append(
                    TestTransactionResult(
                        transaction_id=txn.transaction_id,
                        transaction_type=txn.transaction_type,
                        transaction_amount=txn.amount,
                        channel=txn.channel,
                        description=txn.description,
                        calculated_charges=[],
                        total_charge_for_transaction=Decimal("0.00"),
                        error=f"{outcome.error_kind}: {outcome.error_message}",
                    )
                )

        return TestResult(
            test_suite_id=suite_id,
            test_suite_name=suite_name,
            customer_code=customer.code,
            customer_name=customer.name,
            customer_type=customer.type,
            total_transactions_tested=batch.total_transactions,
            transactions_with_charges=sum(1 for line in lines if line.calculated_charges),
            failed_transactions=batch.failed_calculations,
            total_charges_across_all_transactions=batch.total_charges_calculated,
            processing_time_ms=batch.processing_time_ms,
            incomplete=batch.incomplete,
            timed_out=batch.timed_out,
            transaction_results=lines,
        )
