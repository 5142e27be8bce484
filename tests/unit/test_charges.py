"""Unit tests for the charge calculation engine"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from charge_mgmt.domain.charges import ChargeEngine, compute_charge, round_money, rule_matches
from charge_mgmt.domain.exceptions import InvalidAmountError, UnknownCustomerError
from charge_mgmt.domain.models import ChargeRule, Customer, FeeType, RuleStatus, Transaction


def make_transaction(**overrides) -> Transaction:
    fields = {
        "transaction_id": "TXN_001",
        "customer_code": "CUST001",
        "transaction_type": "ATM_WITHDRAWAL_OTHER",
        "amount": Decimal("500"),
        "channel": "ATM",
    }
    fields.update(overrides)
    return Transaction(**fields)


def make_rule(rule_id: int, **overrides) -> ChargeRule:
    fields = {
        "id": rule_id,
        "rule_code": f"R{rule_id:02d}",
        "rule_name": f"Rule {rule_id}",
        "category": "OTHER",
        "activity_type": "FUNDS_TRANSFER",
        "fee_type": FeeType.PERCENTAGE,
        "fee_value": Decimal("1"),
        "status": RuleStatus.ACTIVE,
    }
    fields.update(overrides)
    return ChargeRule(**fields)


def test_round_money_is_half_up():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("0.005")) == Decimal("0.01")
    assert round_money(Decimal("2.344")) == Decimal("2.34")
    assert round_money(Decimal("25")) == Decimal("25.00")


def test_flat_fee_on_other_bank_atm_withdrawal(charge_engine: ChargeEngine):
    """ATM01 FLAT 25 on ATM_WITHDRAWAL_OTHER via ATM, amount 500"""
    result = charge_engine.calculate(make_transaction())

    assert len(result.calculated_charges) == 1
    charge = result.calculated_charges[0]
    assert charge.rule_code == "ATM01"
    assert charge.fee_type == FeeType.FLAT
    assert charge.charge_amount == Decimal("25.00")
    assert charge.calculation_basis == "Flat fee of 25.00"
    assert result.total_charges == Decimal("25.00")
    assert result.transaction_amount == Decimal("500.00")


def test_percentage_fee_is_capped(charge_engine: ChargeEngine):
    """TRF02 1% capped at 100 on a 50000 transfer"""
    result = charge_engine.calculate(
        make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("50000"), channel="ONLINE")
    )

    assert [c.rule_code for c in result.calculated_charges] == ["TRF02"]
    charge = result.calculated_charges[0]
    assert charge.charge_amount == Decimal("100.00")
    assert charge.calculation_basis == "1% of 50000.00 = 500.00, capped at 100.00"
    assert result.total_charges == Decimal("100.00")


def test_percentage_fee_below_cap_is_not_capped(charge_engine: ChargeEngine):
    result = charge_engine.calculate(
        make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("5000"), channel="MOBILE")
    )

    charge = result.calculated_charges[0]
    assert charge.charge_amount == Decimal("50.00")
    assert charge.calculation_basis == "1% of 5000.00 = 50.00"


def test_zero_charge_is_included(charge_engine: ChargeEngine):
    """ATM02 charges nothing but still appears in the itemization"""
    result = charge_engine.calculate(
        make_transaction(transaction_type="ATM_WITHDRAWAL_PARENT", amount=Decimal("1000"))
    )

    assert [c.rule_code for c in result.calculated_charges] == ["ATM02"]
    assert result.calculated_charges[0].charge_amount == Decimal("0.00")
    assert result.total_charges == Decimal("0.00")


def test_channel_filter_and_creation_order(charge_engine: ChargeEngine):
    """A branch transfer matches the branch-only rule and the any-channel rule, oldest first"""
    result = charge_engine.calculate(
        make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("50000"), channel="BRANCH")
    )

    assert [c.rule_code for c in result.calculated_charges] == ["TRF01", "TRF02"]
    assert result.total_charges == Decimal("110.00")


def test_channel_mismatch_yields_no_charges(charge_engine: ChargeEngine):
    result = charge_engine.calculate(make_transaction(channel="MOBILE"))

    assert result.calculated_charges == []
    assert result.total_charges == Decimal("0.00")


def test_non_active_rules_are_ignored(charge_engine: ChargeEngine):
    """TRF03 is seeded as DRAFT so corporate customers pay only TRF02"""
    result = charge_engine.calculate(
        make_transaction(
            customer_code="CUST002",
            transaction_type="FUNDS_TRANSFER",
            amount=Decimal("10000"),
            channel="ONLINE",
        )
    )

    assert [c.rule_code for c in result.calculated_charges] == ["TRF02"]
    assert "TRF03" not in [r.rule_code for r in charge_engine.active_rules]


def test_customer_type_filter(sample_rules, sample_customers):
    rules = [replace(r, status=RuleStatus.ACTIVE) if r.rule_code == "TRF03" else r for r in sample_rules]
    engine = ChargeEngine(rules, sample_customers)
    transfer = dict(transaction_type="FUNDS_TRANSFER", amount=Decimal("10000"), channel="ONLINE")

    corporate = engine.calculate(make_transaction(customer_code="CUST002", **transfer))
    retail = engine.calculate(make_transaction(customer_code="CUST001", **transfer))

    assert [c.rule_code for c in corporate.calculated_charges] == ["TRF02", "TRF03"]
    assert corporate.calculated_charges[1].calculation_basis == "0.25% of 10000.00 = 25.00"
    assert corporate.total_charges == Decimal("125.00")
    assert [c.rule_code for c in retail.calculated_charges] == ["TRF02"]


def test_total_is_sum_of_itemized_charges(sample_customers):
    """Three 0.333 charges each show 0.33, and the total reconciles to 0.99"""
    rules = [make_rule(i, fee_value=Decimal("33.3")) for i in (1, 2, 3)]
    engine = ChargeEngine(rules, sample_customers)

    result = engine.calculate(make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("1")))

    assert [c.charge_amount for c in result.calculated_charges] == [Decimal("0.33")] * 3
    assert result.total_charges == Decimal("0.99")
    assert result.total_charges == round_money(sum(c.charge_amount for c in result.calculated_charges))


def test_total_equals_sum_of_charges_without_sub_cent_remainders(charge_engine: ChargeEngine):
    result = charge_engine.calculate(
        make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("2500"), channel="BRANCH")
    )

    assert result.total_charges == round_money(sum(c.charge_amount for c in result.calculated_charges))


def test_calculate_is_pure(charge_engine: ChargeEngine):
    txn = make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("12345.67"), channel="BRANCH")

    first = charge_engine.calculate(txn, calculated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    second = charge_engine.calculate(txn, calculated_at=datetime.now(timezone.utc))

    assert first == second
    assert first.calculated_charges[1].charge_amount == Decimal("100.00")


def test_unknown_customer(charge_engine: ChargeEngine):
    with pytest.raises(UnknownCustomerError) as exc_info:
        charge_engine.calculate(make_transaction(customer_code="CUST999"))

    assert exc_info.value.kind == "UnknownCustomer"
    assert "CUST999" in exc_info.value.message


def test_negative_amount(charge_engine: ChargeEngine):
    with pytest.raises(InvalidAmountError):
        charge_engine.calculate(make_transaction(amount=Decimal("-1")))


def test_unknown_customer_is_reported_before_amount(charge_engine: ChargeEngine):
    with pytest.raises(UnknownCustomerError):
        charge_engine.calculate(make_transaction(customer_code="NOPE", amount=Decimal("-5")))


def test_zero_amount_is_valid(charge_engine: ChargeEngine):
    result = charge_engine.calculate(
        make_transaction(transaction_type="FUNDS_TRANSFER", amount=Decimal("0"), channel="ONLINE")
    )

    assert result.total_charges == Decimal("0.00")
    assert len(result.calculated_charges) == 1


def test_rule_matches_unset_filters_match_anything():
    rule = make_rule(1)
    customer = Customer(code="C", name="Any", type="STAFF")

    assert rule_matches(rule, make_transaction(transaction_type="FUNDS_TRANSFER", channel=None), customer)
    assert not rule_matches(rule, make_transaction(transaction_type="STATEMENT_PRINT"), customer)


def test_compute_charge_rounds_half_up():
    charge = compute_charge(make_rule(1, fee_value=Decimal("0.125")), Decimal("99.99"))

    assert charge.charge_amount == Decimal("0.12")
    assert charge.calculation_basis == "0.125% of 99.99 = 0.12"

    midpoint = compute_charge(make_rule(2, fee_value=Decimal("12.5")), Decimal("1"))

    assert midpoint.charge_amount == Decimal("0.13")
