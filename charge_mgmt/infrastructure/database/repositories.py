"""Data access layer for charge management entities"""

from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from charge_mgmt.domain.exceptions import InvalidInputError
from charge_mgmt.domain.models import (
    ChargeRule,
    Customer,
    RuleDraft,
    RuleFilters,
    RuleStatus,
    SettlementDraft,
    SettlementStatus,
)
from charge_mgmt.domain.settlement import SettlementFilters
from charge_mgmt.infrastructure.database.models import (
    CustomerRecord,
    RuleRecord,
    SettlementRecord,
    UserRecord,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RuleRepository:
    """Repository for charge rules; implements the lifecycle's RuleStore"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, rule_id: int) -> Optional[RuleRecord]:
        return self.db.get(RuleRecord, rule_id)

    def get_by_code(self, rule_code: str) -> Optional[RuleRecord]:
        return (
            self.db.query(RuleRecord)
            .filter(RuleRecord.rule_code == rule_code.strip())
            .first()
        )

    def list(self, filters: RuleFilters) -> List[RuleRecord]:
        """Filtered listing in creation order"""
        query = self.db.query(RuleRecord)
        if filters.status is not None:
            query = query.filter(RuleRecord.status == filters.status.value)
        if filters.category:
            query = query.filter(RuleRecord.category == filters.category)
        if filters.search:
            term = filters.search.strip().lower()
            query = query.filter(
                or_(
                    func.lower(RuleRecord.rule_name).contains(term, autoescape=True),
                    func.lower(RuleRecord.rule_code).contains(term, autoescape=True),
                )
            )
        return query.order_by(RuleRecord.id).all()

    def active_rules(self) -> List[ChargeRule]:
        """One consistent read of the ACTIVE set, as domain objects"""
        rows = (
            self.db.query(RuleRecord)
            .filter(RuleRecord.status == RuleStatus.ACTIVE.value)
            .order_by(RuleRecord.id)
            .all()
        )
        return [row.to_domain() for row in rows]

    def create(self, draft: RuleDraft) -> RuleRecord:
        record = RuleRecord(status=RuleStatus.DRAFT.value, **self._draft_fields(draft))
        record.created_by = draft.created_by
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def update_draft(self, rule_id: int, draft: RuleDraft) -> bool:
        """Overwrite editable fields only while the rule is still DRAFT"""
        fields = self._draft_fields(draft)
        fields["updated_at"] = _now()
        updated = (
            self.db.query(RuleRecord)
            .filter(RuleRecord.id == rule_id, RuleRecord.status == RuleStatus.DRAFT.value)
            .update(fields, synchronize_session="fetch")
        )
        return updated == 1

    def compare_and_set_status(self, rule_id: int, expected: RuleStatus, new: RuleStatus) -> bool:
        """Atomic check-and-set: a single UPDATE guarded by the expected status"""
        values: Dict[str, Any] = {"status": new.value, "updated_at": _now()}
        if new == RuleStatus.ACTIVE and expected == RuleStatus.DRAFT:
            values["approved_at"] = values["updated_at"]
        updated = (
            self.db.query(RuleRecord)
            .filter(RuleRecord.id == rule_id, RuleRecord.status == expected.value)
            .update(values, synchronize_session="fetch")
        )
        return updated == 1

    def delete_if_status(self, rule_id: int, expected: RuleStatus) -> bool:
        deleted = (
            self.db.query(RuleRecord)
            .filter(RuleRecord.id == rule_id, RuleRecord.status == expected.value)
            .delete(synchronize_session="fetch")
        )
        return deleted == 1

    def count_by_status(self) -> Dict[str, int]:
        rows = (
            self.db.query(RuleRecord.status, func.count(RuleRecord.id))
            .group_by(RuleRecord.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def _draft_fields(draft: RuleDraft) -> Dict[str, Any]:
        return {
            "rule_code": draft.rule_code.strip(),
            "rule_name": draft.rule_name.strip(),
            "description": draft.description,
            "category": draft.category,
            "activity_type": draft.activity_type.strip(),
            "channel": draft.channel,
            "customer_type": draft.customer_type,
            "fee_type": draft.fee_type,
            "fee_value": draft.fee_value,
            "fee_cap": draft.fee_cap,
        }


class CustomerRepository:
    """Read access to customer reference data"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, code: str) -> Optional[Customer]:
        row = self.db.get(CustomerRecord, code)
        return row.to_domain() if row else None

    def all(self) -> Dict[str, Customer]:
        rows = self.db.query(CustomerRecord).order_by(CustomerRecord.code).all()
        return {row.code: row.to_domain() for row in rows}


class SettlementRepository:
    """Repository for settlements; implements the workflow's SettlementStore"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, settlement_id: int) -> Optional[SettlementRecord]:
        return self.db.get(SettlementRecord, settlement_id)

    def list(self, filters: SettlementFilters) -> List[SettlementRecord]:
        """Newest first"""
        query = self.db.query(SettlementRecord)
        if filters.status is not None:
            query = query.filter(SettlementRecord.status == filters.status.value)
        if filters.customer_code:
            query = query.filter(SettlementRecord.customer_code == filters.customer_code)
        if filters.date_from:
            query = query.filter(SettlementRecord.created_at >= datetime.combine(filters.date_from, time.min))
        if filters.date_to:
            upper = datetime.combine(filters.date_to + timedelta(days=1), time.min)
            query = query.filter(SettlementRecord.created_at < upper)
        return query.order_by(SettlementRecord.id.desc()).all()

    def create(self, draft: SettlementDraft, reference: str) -> SettlementRecord:
        record = SettlementRecord(
            settlement_id=reference,
            customer_code=draft.customer_code.strip(),
            account_number=draft.account_number.strip(),
            settlement_type=draft.settlement_type,
            amount=draft.amount,
            description=draft.description,
            requested_by=draft.requested_by,
            status=SettlementStatus.PENDING.value,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def compare_and_set_status(
        self,
        settlement_id: int,
        expected: SettlementStatus,
        new: SettlementStatus,
        reviewed_by: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> bool:
        values: Dict[str, Any] = {"status": new.value, "updated_at": _now()}
        if reviewed_by is not None:
            values["reviewed_by"] = reviewed_by
        if remarks is not None:
            values["remarks"] = remarks
        updated = (
            self.db.query(SettlementRecord)
            .filter(SettlementRecord.id == settlement_id, SettlementRecord.status == expected.value)
            .update(values, synchronize_session="fetch")
        )
        return updated == 1


class UserRepository:
    """Plain CRUD for users; the only rule is unique username and email"""

    def __init__(self, db: Session):
        self.db = db

    def list(self) -> List[UserRecord]:
        return self.db.query(UserRecord).order_by(UserRecord.id).all()

    def get(self, user_id: int) -> Optional[UserRecord]:
        return self.db.get(UserRecord, user_id)

    def create(self, fields: Mapping[str, Any]) -> UserRecord:
        self._check_unique(fields, user_id=None)
        record = UserRecord(**fields)
        self.db.add(record)
        self.db.flush()
        return record

    def update(self, record: UserRecord, fields: Mapping[str, Any]) -> UserRecord:
        self._check_unique(fields, user_id=record.id)
        for key, value in fields.items():
            setattr(record, key, value)
        self.db.flush()
        return record

    def delete(self, record: UserRecord) -> None:
        self.db.delete(record)
        self.db.flush()

    def _check_unique(self, fields: Mapping[str, Any], user_id: Optional[int]) -> None:
        for column, label in ((UserRecord.username, "username"), (UserRecord.email, "email")):
            value = fields.get(label)
            if value is None:
                continue
            query = self.db.query(UserRecord).filter(column == value)
            if user_id is not None:
                query = query.filter(UserRecord.id != user_id)
            if query.first() is not None:
                raise InvalidInputError(f"A user with this {label} already exists: {value}")
