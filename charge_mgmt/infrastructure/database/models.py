"""SQLAlchemy ORM models for rules, customers, settlements and users"""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from charge_mgmt.domain.models import ChargeRule, Customer, FeeType, RuleStatus

Base = declarative_base()


class RuleRecord(Base):
    """Charge rule with lifecycle status"""

    __tablename__ = "charge_rule"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_code = Column(String(64), nullable=False, unique=True, index=True)
    rule_name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(32), nullable=False, index=True)
    activity_type = Column(String(64), nullable=False)
    channel = Column(String(32), nullable=True)
    customer_type = Column(String(32), nullable=True)
    fee_type = Column(String(16), nullable=False)
    fee_value = Column(Numeric(18, 4), nullable=False)
    fee_cap = Column(Numeric(18, 4), nullable=True)
    status = Column(String(16), nullable=False, default=RuleStatus.DRAFT.value, index=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    def to_domain(self) -> ChargeRule:
        return ChargeRule(
            id=self.id,
            rule_code=self.rule_code,
            rule_name=self.rule_name,
            category=self.category,
            activity_type=self.activity_type,
            fee_type=FeeType(self.fee_type),
            fee_value=self.fee_value,
            status=RuleStatus(self.status),
            channel=self.channel,
            customer_type=self.customer_type,
            fee_cap=self.fee_cap,
            created_at=self.created_at,
        )


class CustomerRecord(Base):
    """Customer reference data"""

    __tablename__ = "customer"

    code = Column(String(32), primary_key=True)
    name = Column(Text, nullable=False)
    type = Column(String(32), nullable=False)

    def to_domain(self) -> Customer:
        return Customer(code=self.code, name=self.name, type=self.type)


class SettlementRecord(Base):
    """Settlement request moving through its approval workflow"""

    __tablename__ = "settlement"

    id = Column(Integer, primary_key=True, autoincrement=True)
    settlement_id = Column(String(32), nullable=False, unique=True)
    customer_code = Column(String(32), nullable=False, index=True)
    account_number = Column(String(64), nullable=False)
    settlement_type = Column(String(16), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    description = Column(Text, nullable=True)
    requested_by = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, index=True)
    reviewed_by = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class UserRecord(Base):
    """Dashboard user, plain CRUD"""

    __tablename__ = "app_user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    role = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
