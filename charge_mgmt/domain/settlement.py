"""Settlement request workflow, independent of the rule lifecycle"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Protocol

from charge_mgmt.domain.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from charge_mgmt.domain.models import (
    SettlementAction,
    SettlementDraft,
    SettlementStatus,
    SettlementType,
)

SETTLEMENT_TRANSITIONS: Dict[SettlementStatus, Dict[SettlementAction, SettlementStatus]] = {
    SettlementStatus.PENDING: {
        SettlementAction.APPROVE: SettlementStatus.APPROVED,
        SettlementAction.REJECT: SettlementStatus.REJECTED,
    },
    SettlementStatus.APPROVED: {SettlementAction.PROCESS: SettlementStatus.PROCESSED},
    # Terminal states
    SettlementStatus.PROCESSED: {},
    SettlementStatus.REJECTED: {},
}


@dataclass(frozen=True)
class SettlementFilters:
    status: Optional[SettlementStatus] = None
    customer_code: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class SettlementStore(Protocol):
    """Storage contract for settlements. Returned rows expose ``id`` and ``status``."""

    def get(self, settlement_id: int) -> Optional[Any]: ...

    def list(self, filters: SettlementFilters) -> List[Any]: ...

    def create(self, draft: SettlementDraft, reference: str) -> Any: ...

    def compare_and_set_status(
        self,
        settlement_id: int,
        expected: SettlementStatus,
        new: SettlementStatus,
        reviewed_by: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> bool: ...


def new_settlement_reference() -> str:
    return f"STL-{uuid.uuid4().hex[:10].upper()}"


def signed_amount(settlement_type: str, amount: Decimal) -> Decimal:
    """Presentation sign: DEBIT charges the customer, CREDIT refunds (negative)"""
    if settlement_type == SettlementType.CREDIT.value:
        return -amount
    return amount


def validate_settlement_draft(draft: SettlementDraft) -> List[str]:
    errors = []
    if not (draft.customer_code or "").strip():
        errors.append("customerCode is required")
    if not (draft.account_number or "").strip():
        errors.append("accountNumber is required")
    if draft.settlement_type not in SettlementType.__members__:
        errors.append(f"Unknown settlementType: {draft.settlement_type}")
    try:
        if draft.amount is None or Decimal(draft.amount) <= 0:
            errors.append("amount must be greater than zero")
    except InvalidOperation:
        errors.append("amount must be a number")
    return errors


class SettlementWorkflow:
    """Enforces the settlement state machine against a SettlementStore"""

    def __init__(self, store: SettlementStore):
        self.store = store

    def create(self, draft: SettlementDraft) -> Any:
        errors = validate_settlement_draft(draft)
        if errors:
            raise InvalidInputError("; ".join(errors))
        return self.store.create(draft, new_settlement_reference())

    def get(self, settlement_id: int) -> Any:
        settlement = self.store.get(settlement_id)
        if settlement is None:
            raise NotFoundError("Settlement", settlement_id)
        return settlement

    def list_settlements(self, filters: Optional[SettlementFilters] = None) -> List[Any]:
        return self.store.list(filters or SettlementFilters())

    def apply(
        self,
        settlement_id: int,
        action: SettlementAction,
        reviewed_by: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> Any:
        """Single compare-and-set on the stored status; failures leave the row untouched"""
        settlement = self.get(settlement_id)
        current = SettlementStatus(settlement.status)
        edges = SETTLEMENT_TRANSITIONS.get(current, {})
        if action not in edges:
            raise InvalidTransitionError("settlement", current.value, action.value)

        if not self.store.compare_and_set_status(
            settlement_id, current, edges[action], reviewed_by=reviewed_by, remarks=remarks
        ):
            found = self.get(settlement_id)
            raise InvalidTransitionError("settlement", SettlementStatus(found.status).value, action.value)
        return self.store.get(settlement_id)

    def approve(self, settlement_id: int, reviewed_by: Optional[str] = None, remarks: Optional[str] = None) -> Any:
        return self.apply(settlement_id, SettlementAction.APPROVE, reviewed_by, remarks)

    def reject(self, settlement_id: int, reviewed_by: Optional[str] = None, remarks: Optional[str] = None) -> Any:
        return self.apply(settlement_id, SettlementAction.REJECT, reviewed_by, remarks)

    def process(self, settlement_id: int, reviewed_by: Optional[str] = None, remarks: Optional[str] = None) -> Any:
        return self.apply(settlement_id, SettlementAction.PROCESS, reviewed_by, remarks)
