"""Charge rule lifecycle - status state machine and authoring validation"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Protocol

from charge_mgmt.domain.exceptions import (
    DomainException,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from charge_mgmt.domain.models import (
    Channel,
    CustomerType,
    FeeType,
    RuleAction,
    RuleCategory,
    RuleDraft,
    RuleFilters,
    RuleStatus,
)

# Allowed edges: status -> {action: target}. A None target means hard removal.
RULE_TRANSITIONS: Dict[RuleStatus, Dict[RuleAction, Optional[RuleStatus]]] = {
    RuleStatus.DRAFT: {
        RuleAction.APPROVE: RuleStatus.ACTIVE,
        RuleAction.DELETE: None,
    },
    RuleStatus.ACTIVE: {RuleAction.DEACTIVATE: RuleStatus.INACTIVE},
    RuleStatus.INACTIVE: {RuleAction.REACTIVATE: RuleStatus.ACTIVE},
    # Terminal, reached only through out-of-engine archival
    RuleStatus.ARCHIVED: {},
}


class RuleStore(Protocol):
    """Storage contract the lifecycle needs. Returned rules expose ``id`` and ``status``."""

    def get(self, rule_id: int) -> Optional[Any]: ...

    def get_by_code(self, rule_code: str) -> Optional[Any]: ...

    def list(self, filters: RuleFilters) -> List[Any]: ...

    def create(self, draft: RuleDraft) -> Any: ...

    def update_draft(self, rule_id: int, draft: RuleDraft) -> bool: ...

    def compare_and_set_status(self, rule_id: int, expected: RuleStatus, new: RuleStatus) -> bool: ...

    def delete_if_status(self, rule_id: int, expected: RuleStatus) -> bool: ...

    def count_by_status(self) -> Dict[str, int]: ...


@dataclass
class RuleStatistics:
    total_rules: int
    active_rules: int
    draft_rules: int
    inactive_rules: int
    archived_rules: int


@dataclass
class BulkActionOutcome:
    action: RuleAction
    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)


def resolve_transition(current: RuleStatus, action: RuleAction) -> Optional[RuleStatus]:
    """Return the target status for ``action`` or raise InvalidTransitionError"""
    edges = RULE_TRANSITIONS.get(current, {})
    if action not in edges:
        raise InvalidTransitionError("rule", current.value, action.value)
    return edges[action]


def validate_rule_draft(draft: RuleDraft) -> List[str]:
    """Check field-level constraints; returns human-readable problems"""
    errors = []

    if not (draft.rule_code or "").strip():
        errors.append("ruleCode is required")
    if not (draft.rule_name or "").strip():
        errors.append("ruleName is required")
    if not (draft.activity_type or "").strip():
        errors.append("activityType is required")

    if draft.category not in RuleCategory.__members__:
        errors.append(f"Unknown category: {draft.category}")
    if draft.channel is not None and draft.channel not in Channel.__members__:
        errors.append(f"Unknown channel: {draft.channel}")
    if draft.customer_type is not None and draft.customer_type not in CustomerType.__members__:
        errors.append(f"Unknown customerType: {draft.customer_type}")

    if draft.fee_type not in FeeType.__members__:
        errors.append(f"Unknown feeType: {draft.fee_type}")
    if draft.fee_value is None or draft.fee_value < 0:
        errors.append("feeValue must be zero or greater")
    elif draft.fee_type == FeeType.PERCENTAGE.value and draft.fee_value > 100:
        errors.append("Percentage feeValue cannot exceed 100")

    if draft.fee_cap is not None:
        if draft.fee_type != FeeType.PERCENTAGE.value:
            errors.append("feeCap applies only to PERCENTAGE rules")
        elif draft.fee_cap < Decimal("0"):
            errors.append("feeCap must be zero or greater")

    return errors


class RuleLifecycle:
    """Authorizes and applies rule status transitions against a RuleStore"""

    def __init__(self, store: RuleStore):
        self.store = store

    def get(self, rule_id: int) -> Any:
        rule = self.store.get(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)
        return rule

    def get_by_code(self, rule_code: str) -> Any:
        rule = self.store.get_by_code(rule_code)
        if rule is None:
            raise NotFoundError("Rule", rule_code)
        return rule

    def list_rules(self, filters: Optional[RuleFilters] = None) -> List[Any]:
        return self.store.list(filters or RuleFilters())

    def validate(self, draft: RuleDraft, rule_id: Optional[int] = None) -> List[str]:
        """Field checks plus ruleCode uniqueness (ignoring the rule being edited)"""
        errors = validate_rule_draft(draft)
        code = (draft.rule_code or "").strip()
        if code:
            existing = self.store.get_by_code(code)
            if existing is not None and existing.id != rule_id:
                errors.append(f"Rule code already exists: {code}")
        return errors

    def create(self, draft: RuleDraft) -> Any:
        errors = self.validate(draft)
        if errors:
            raise InvalidInputError("; ".join(errors))
        return self.store.create(draft)

    def update(self, rule_id: int, draft: RuleDraft) -> Any:
        """Edit a rule's fields; only DRAFT rules are editable"""
        rule = self.get(rule_id)
        if RuleStatus(rule.status) != RuleStatus.DRAFT:
            raise InvalidTransitionError("rule", RuleStatus(rule.status).value, "update")

        errors = self.validate(draft, rule_id=rule_id)
        if errors:
            raise InvalidInputError("; ".join(errors))

        if not self.store.update_draft(rule_id, draft):
            self._raise_lost_race(rule_id, "update")
        return self.store.get(rule_id)

    def apply(self, rule_id: int, action: RuleAction) -> Optional[Any]:
        """
        Apply a lifecycle action as a single compare-and-set on the stored status.

        Returns the updated rule, or None after a delete. A concurrent writer that
        changed the status first makes this call fail with InvalidTransitionError
        naming the status actually found.
        """
        rule = self.get(rule_id)
        current = RuleStatus(rule.status)
        target = resolve_transition(current, action)

        if target is None:
            if not self.store.delete_if_status(rule_id, current):
                self._raise_lost_race(rule_id, action.value)
            return None

        if not self.store.compare_and_set_status(rule_id, current, target):
            self._raise_lost_race(rule_id, action.value)
        return self.store.get(rule_id)

    def approve(self, rule_id: int) -> Any:
        return self.apply(rule_id, RuleAction.APPROVE)

    def deactivate(self, rule_id: int) -> Any:
        return self.apply(rule_id, RuleAction.DEACTIVATE)

    def reactivate(self, rule_id: int) -> Any:
        return self.apply(rule_id, RuleAction.REACTIVATE)

    def delete(self, rule_id: int) -> None:
        self.apply(rule_id, RuleAction.DELETE)

    def bulk_action(self, action: RuleAction, rule_ids: Iterable[int]) -> BulkActionOutcome:
        """Apply one action to many rules; each id succeeds or fails on its own"""
        outcome = BulkActionOutcome(action=action)
        for rule_id in rule_ids:
            try:
                self.apply(rule_id, action)
            except DomainException as e:
                outcome.failed[rule_id] = e.message
            else:
                outcome.succeeded.append(rule_id)
        return outcome

    def statistics(self) -> RuleStatistics:
        counts = self.store.count_by_status()
        return RuleStatistics(
            total_rules=sum(counts.values()),
            active_rules=counts.get(RuleStatus.ACTIVE.value, 0),
            draft_rules=counts.get(RuleStatus.DRAFT.value, 0),
            inactive_rules=counts.get(RuleStatus.INACTIVE.value, 0),
            archived_rules=counts.get(RuleStatus.ARCHIVED.value, 0),
        )

    @staticmethod
    def metadata() -> Dict[str, List[str]]:
        return {
            "statuses": [s.value for s in RuleStatus],
            "categories": [c.value for c in RuleCategory],
            "fee_types": [f.value for f in FeeType],
            "channels": [c.value for c in Channel],
        }

    def _raise_lost_race(self, rule_id: int, action: str) -> None:
        rule = self.store.get(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)
        raise InvalidTransitionError("rule", RuleStatus(rule.status).value, action)
