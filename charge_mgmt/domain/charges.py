"""Charge calculation engine - core business logic for fee computation"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Mapping, Optional, Tuple

from charge_mgmt.domain.exceptions import InvalidAmountError, UnknownCustomerError
from charge_mgmt.domain.models import (
    CalculatedCharge,
    CalculationResult,
    ChargeRule,
    Customer,
    FeeType,
    RuleStatus,
    Transaction,
)

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(value: Decimal) -> Decimal:
    """Round to the currency minor unit (two places, half-up)"""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _percent(value: Decimal) -> str:
    # 1.0000 -> "1", 0.1250 -> "0.125"
    return format(Decimal(value).normalize(), "f")


def rule_matches(rule: ChargeRule, transaction: Transaction, customer: Customer) -> bool:
    """
    Candidate test for a single rule.

    A rule matches when its activity type equals the transaction type, its channel
    filter is unset or equal to the transaction channel, and its customer-type filter
    is unset or equal to the customer's type.
    """
    if rule.activity_type != transaction.transaction_type:
        return False
    if rule.channel is not None and rule.channel != transaction.channel:
        return False
    if rule.customer_type is not None and rule.customer_type != customer.type:
        return False
    return True


def compute_charge(rule: ChargeRule, amount: Decimal) -> CalculatedCharge:
    """
    Compute one itemized charge.

    FLAT: the fee value itself.
    PERCENTAGE: amount * fee / 100, limited by the rule's cap when one is set.
    """
    if rule.fee_type == FeeType.FLAT:
        exact = Decimal(rule.fee_value)
        basis = f"Flat fee of {round_money(exact)}"
    else:
        computed = Decimal(amount) * Decimal(rule.fee_value) / HUNDRED
        exact = computed
        basis = f"{_percent(rule.fee_value)}% of {round_money(amount)} = {round_money(computed)}"
        if rule.fee_cap is not None and computed > rule.fee_cap:
            exact = Decimal(rule.fee_cap)
            basis += f", capped at {round_money(exact)}"

    return CalculatedCharge(
        rule_code=rule.rule_code,
        rule_name=rule.rule_name,
        fee_type=rule.fee_type,
        charge_amount=round_money(exact),
        calculation_basis=basis,
    )


class ChargeEngine:
    """
    Evaluates transactions against an immutable snapshot of active rules.

    The snapshot is taken once (one consistent read of rules and customers) and never
    re-read per rule, so a single engine can serve concurrent calculations without
    locking.
    """

    def __init__(self, rules: Iterable[ChargeRule], customers: Mapping[str, Customer]):
        active = [r for r in rules if r.status == RuleStatus.ACTIVE]
        # Creation order; ids are assigned monotonically by the store
        self._rules: Tuple[ChargeRule, ...] = tuple(sorted(active, key=lambda r: r.id))
        self._customers = dict(customers)

    @property
    def active_rules(self) -> Tuple[ChargeRule, ...]:
        return self._rules

    @property
    def customers(self) -> List[Customer]:
        return list(self._customers.values())

    def resolve_customer(self, customer_code: str) -> Customer:
        customer = self._customers.get(customer_code)
        if customer is None:
            raise UnknownCustomerError(customer_code)
        return customer

    def candidate_rules(self, transaction: Transaction, customer: Customer) -> List[ChargeRule]:
        return [r for r in self._rules if rule_matches(r, transaction, customer)]

    def calculate(
        self,
        transaction: Transaction,
        calculated_at: Optional[datetime] = None,
    ) -> CalculationResult:
        """
        Main entry point: produce itemized and total charges for one transaction.

        Raises:
            UnknownCustomerError: customer code does not resolve
            InvalidAmountError: amount is negative
        """
        customer = self.resolve_customer(transaction.customer_code)
        if transaction.amount is None or transaction.amount < 0:
            raise InvalidAmountError(f"Invalid transaction amount: {transaction.amount}")

        charges = [
            compute_charge(rule, transaction.amount)
            for rule in self.candidate_rules(transaction, customer)
        ]

        # Sum of the rounded lines, so the total reconciles with the itemization
        total = round_money(sum((c.charge_amount for c in charges), Decimal("0")))

        return CalculationResult(
            transaction_id=transaction.transaction_id,
            customer_code=customer.code,
            transaction_type=transaction.transaction_type,
            transaction_amount=round_money(transaction.amount),
            channel=transaction.channel,
            calculated_charges=charges,
            total_charges=total,
            calculated_at=calculated_at,
        )
