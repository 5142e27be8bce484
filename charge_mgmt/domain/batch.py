"""Batch charge processing with per-item failure isolation"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from charge_mgmt.domain.charges import ChargeEngine, round_money
from charge_mgmt.domain.exceptions import DomainException, InvalidInputError
from charge_mgmt.domain.models import BatchResult, ItemOutcome, Transaction

logger = logging.getLogger(__name__)


def new_batch_id() -> str:
    return f"BATCH_{uuid.uuid4().hex[:12].upper()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchProcessor:
    """
    Drives a ChargeEngine over an ordered list of transactions.

    Items are evaluated by up to ``concurrency`` asyncio workers. Each worker writes
    its outcome into the item's own slot; the slots are folded into the aggregate in
    input order after all workers have joined, so no counter is shared between
    workers.
    """

    def __init__(
        self,
        engine: ChargeEngine,
        concurrency: int = 8,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.engine = engine
        self.concurrency = max(1, concurrency)
        self.clock = clock

    async def process(
        self,
        transactions: Sequence[Transaction],
        stop_on_error: bool = False,
        batch_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """
        Evaluate every transaction and aggregate the outcomes.

        Requirements:
        - Failed items are recorded in ``errors`` and do not abort the batch,
          unless ``stop_on_error`` is set, in which case nothing after the first
          failure (in input order) appears in the result
        - Once the deadline passes or ``cancel_event`` is set, no new item is
          started and the partial result is returned marked incomplete

        Raises:
            InvalidInputError: duplicate transaction ids in the input
        """
        self._check_unique_ids(transactions)

        start = time.perf_counter()
        deadline = start + timeout_seconds if timeout_seconds is not None else None
        slots: List[Optional[ItemOutcome]] = [None] * len(transactions)
        pending = iter(range(len(transactions)))
        halt = asyncio.Event()
        timed_out = False

        async def worker() -> None:
            nonlocal timed_out
            # The shared iterator hands out indices in input order
            for index in pending:
                if halt.is_set() or (cancel_event is not None and cancel_event.is_set()):
                    return
                if deadline is not None and time.perf_counter() >= deadline:
                    timed_out = True
                    halt.set()
                    return

                outcome = self._evaluate(index, transactions[index])
                slots[index] = outcome
                if stop_on_error and not outcome.succeeded:
                    halt.set()

                # Yield so other workers and the cancellation signal get a turn
                await asyncio.sleep(0)

        workers = min(self.concurrency, len(transactions)) or 1
        await asyncio.gather(*(worker() for _ in range(workers)))

        result = self._merge(slots, stop_on_error, batch_id or new_batch_id())
        result.timed_out = timed_out
        result.processing_time_ms = int((time.perf_counter() - start) * 1000)
        return result

    def _evaluate(self, index: int, transaction: Transaction) -> ItemOutcome:
        outcome = ItemOutcome(index=index, transaction=transaction)
        try:
            outcome.result = self.engine.calculate(transaction, calculated_at=self.clock())
        except DomainException as e:
            outcome.error_kind = e.kind
            outcome.error_message = e.message
        except Exception:
            logger.exception(
                "Unexpected error calculating charges",
                extra={"transaction_id": transaction.transaction_id},
            )
            outcome.error_kind = "Internal"
            outcome.error_message = "Internal error during calculation"
        return outcome

    @staticmethod
    def _merge(
        slots: Sequence[Optional[ItemOutcome]],
        stop_on_error: bool,
        batch_id: str,
    ) -> BatchResult:
        result = BatchResult(batch_id=batch_id, requested_transactions=len(slots))
        total = Decimal("0")

        for outcome in slots:
            if outcome is None:
                # Never started: halted, cancelled or out of time
                break

            result.outcomes.append(outcome)
            txn = outcome.transaction

            if outcome.succeeded:
                result.successful_calculations += 1
                result.transaction_type_count[txn.transaction_type] = (
                    result.transaction_type_count.get(txn.transaction_type, 0) + 1
                )
                for charge in outcome.result.calculated_charges:
                    result.charges_by_rule[charge.rule_code] = (
                        result.charges_by_rule.get(charge.rule_code, Decimal("0.00"))
                        + charge.charge_amount
                    )
                total += outcome.result.total_charges
            else:
                result.failed_calculations += 1
                result.errors[txn.transaction_id] = outcome.error_kind
                result.error_details[txn.transaction_id] = outcome.error_message
                if stop_on_error:
                    break

        result.total_transactions = result.successful_calculations + result.failed_calculations
        result.total_charges_calculated = round_money(total)
        result.incomplete = result.total_transactions < result.requested_transactions
        return result

    @staticmethod
    def _check_unique_ids(transactions: Sequence[Transaction]) -> None:
        seen = set()
        duplicates = []
        for txn in transactions:
            if txn.transaction_id in seen:
                duplicates.append(txn.transaction_id)
            seen.add(txn.transaction_id)
        if duplicates:
            raise InvalidInputError(f"Duplicate transaction ids: {', '.join(sorted(set(duplicates)))}")
