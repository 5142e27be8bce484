"""Schema creation and reference data seeding"""

import logging
from decimal import Decimal

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from charge_mgmt.infrastructure.database.models import Base, CustomerRecord, RuleRecord

SAMPLE_CUSTOMERS = [
    {"code": "CUST001", "name": "Rajesh Kumar", "type": "RETAIL"},
    {"code": "CUST002", "name": "Acme Industries Ltd", "type": "CORPORATE"},
    {"code": "CUST003", "name": "Priya Sharma", "type": "PREMIUM"},
    {"code": "CUST004", "name": "Mohan Das", "type": "SENIOR_CITIZEN"},
    {"code": "CUST005", "name": "Anita Desai", "type": "STAFF"},
]

SAMPLE_RULES = [
    {
        "rule_code": "ATM01",
        "rule_name": "Other bank ATM withdrawal fee",
        "category": "ATM",
        "activity_type": "ATM_WITHDRAWAL_OTHER",
        "channel": "ATM",
        "fee_type": "FLAT",
        "fee_value": Decimal("25"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "ATM02",
        "rule_name": "Own bank ATM withdrawal",
        "category": "ATM",
        "activity_type": "ATM_WITHDRAWAL_PARENT",
        "channel": "ATM",
        "fee_type": "FLAT",
        "fee_value": Decimal("0"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "TRF01",
        "rule_name": "Branch transfer handling fee",
        "category": "TRANSFER",
        "activity_type": "FUNDS_TRANSFER",
        "channel": "BRANCH",
        "fee_type": "FLAT",
        "fee_value": Decimal("10"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "TRF02",
        "rule_name": "Funds transfer commission",
        "category": "TRANSFER",
        "activity_type": "FUNDS_TRANSFER",
        "fee_type": "PERCENTAGE",
        "fee_value": Decimal("1"),
        "fee_cap": Decimal("100"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "STM01",
        "rule_name": "Statement print charge",
        "category": "STATEMENT",
        "activity_type": "STATEMENT_PRINT",
        "fee_type": "FLAT",
        "fee_value": Decimal("50"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "CRD01",
        "rule_name": "Duplicate debit card issuance",
        "category": "CARD",
        "activity_type": "DUPLICATE_DEBIT_CARD",
        "fee_type": "FLAT",
        "fee_value": Decimal("200"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "CRD02",
        "rule_name": "Duplicate credit card issuance",
        "category": "CARD",
        "activity_type": "DUPLICATE_CREDIT_CARD",
        "fee_type": "FLAT",
        "fee_value": Decimal("300"),
        "status": "ACTIVE",
    },
    {
        "rule_code": "TRF03",
        "rule_name": "Corporate transfer surcharge",
        "category": "TRANSFER",
        "activity_type": "FUNDS_TRANSFER",
        "customer_type": "CORPORATE",
        "fee_type": "PERCENTAGE",
        "fee_value": Decimal("0.25"),
        "fee_cap": Decimal("500"),
        "status": "DRAFT",
    },
]


def seed_reference_data(db: Session) -> None:
    """Insert sample customers and rules into empty tables"""
    if db.query(CustomerRecord).first() is None:
        db.add_all(CustomerRecord(**c) for c in SAMPLE_CUSTOMERS)
        logging.info("Seeded sample customers", extra={"count": len(SAMPLE_CUSTOMERS)})
    if db.query(RuleRecord).first() is None:
        db.add_all(RuleRecord(created_by="system", **r) for r in SAMPLE_RULES)
        logging.info("Seeded sample rules", extra={"count": len(SAMPLE_RULES)})
    db.commit()


def init_db(engine: Engine, seed: bool = True) -> None:
    Base.metadata.create_all(bind=engine)
    if seed:
        with Session(engine) as db:
            seed_reference_data(db)
