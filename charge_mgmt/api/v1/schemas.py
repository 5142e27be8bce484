"""Pydantic schemas for API request/response validation

JSON keys are camelCase; Python attributes stay snake_case.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, computed_field, field_validator
from pydantic.alias_generators import to_camel

from charge_mgmt.domain.models import (
    FeeType,
    RuleAction,
    RuleDraft,
    ScenarioTemplate,
    SettlementDraft,
    SettlementStatus,
    Transaction,
    UserRole,
)
from charge_mgmt.domain.settlement import signed_amount

T = TypeVar("T")

# Monetary values travel as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: {success: true, data: ...}"""

    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    """Failure envelope; ``data`` carries a partial result on timeout"""

    success: bool = False
    error: str
    kind: str
    data: Optional[Any] = None


# Rules


class RuleRequest(CamelModel):
    """Request body for POST /rules and PUT /rules/{id}"""

    rule_code: str
    rule_name: str
    category: str
    activity_type: str
    fee_type: str
    fee_value: Decimal
    channel: Optional[str] = None
    customer_type: Optional[str] = None
    fee_cap: Optional[Decimal] = None
    description: Optional[str] = None
    created_by: Optional[str] = None

    @field_validator("channel", "customer_type", "fee_cap", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def to_draft(self) -> RuleDraft:
        return RuleDraft(
            rule_code=self.rule_code,
            rule_name=self.rule_name,
            category=self.category,
            activity_type=self.activity_type,
            fee_type=self.fee_type,
            fee_value=self.fee_value,
            channel=self.channel,
            customer_type=self.customer_type,
            fee_cap=self.fee_cap,
            description=self.description,
            created_by=self.created_by,
        )


class RuleSchema(CamelModel):
    id: int
    rule_code: str
    rule_name: str
    description: Optional[str] = None
    category: str
    activity_type: str
    channel: Optional[str] = None
    customer_type: Optional[str] = None
    fee_type: str
    fee_value: Money
    fee_cap: Optional[Money] = None
    status: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None


class RuleStatisticsSchema(CamelModel):
    total_rules: int
    active_rules: int
    draft_rules: int
    inactive_rules: int
    archived_rules: int


class RuleMetadataSchema(CamelModel):
    statuses: List[str]
    categories: List[str]
    fee_types: List[str]
    channels: List[str]


class RuleValidationSchema(CamelModel):
    valid: bool
    errors: List[str]


class BulkActionRequest(CamelModel):
    action: RuleAction
    rule_ids: List[int] = Field(..., min_length=1)


class BulkActionSchema(CamelModel):
    action: RuleAction
    succeeded: List[int]
    failed: Dict[int, str]


class DeletedSchema(CamelModel):
    id: int
    deleted: bool = True


# Charges


class TransactionRequest(CamelModel):
    """Request body for POST /charges/calculate and bulk items"""

    transaction_id: Optional[str] = None
    customer_code: str
    transaction_type: str
    amount: Decimal
    channel: Optional[str] = None
    source_account: Optional[str] = None
    destination_account: Optional[str] = None
    transaction_date: Optional[datetime] = None
    description: Optional[str] = None

    @field_validator("channel", "source_account", "destination_account", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def to_domain(self) -> Transaction:
        return Transaction(
            transaction_id=self.transaction_id or f"TXN_{uuid.uuid4().hex[:12].upper()}",
            customer_code=self.customer_code.strip(),
            transaction_type=self.transaction_type.strip(),
            amount=self.amount,
            channel=self.channel,
            source_account=self.source_account,
            destination_account=self.destination_account,
            transaction_date=self.transaction_date or datetime.now(timezone.utc),
            description=self.description,
        )


class CalculatedChargeSchema(CamelModel):
    rule_code: str
    rule_name: str
    fee_type: FeeType
    charge_amount: Money
    calculation_basis: str


class CalculationResultSchema(CamelModel):
    transaction_id: str
    customer_code: str
    transaction_type: str
    transaction_amount: Money
    channel: Optional[str] = None
    calculated_charges: List[CalculatedChargeSchema]
    total_charges: Money
    calculated_at: Optional[datetime] = None


class BulkCalculateRequest(CamelModel):
    """Request body for POST /charges/bulk-calculate"""

    transactions: List[TransactionRequest]
    stop_on_error: bool = False
    batch_id: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, gt=0)


class BatchResultSchema(CamelModel):
    batch_id: str
    requested_transactions: int
    total_transactions: int
    successful_calculations: int
    failed_calculations: int
    processing_time_ms: int
    total_charges_calculated: Money
    transaction_type_count: Dict[str, int]
    charges_by_rule: Dict[str, Money]
    errors: Dict[str, str]
    error_details: Dict[str, str]
    incomplete: bool
    timed_out: bool


class ScenarioSchema(CamelModel):
    """Scenario template; also the shape of ad hoc test transactions"""

    transaction_type: str
    amount: Money
    channel: Optional[str] = None
    description: Optional[str] = None

    def to_template(self) -> ScenarioTemplate:
        return ScenarioTemplate(
            tag="custom",
            transaction_type=self.transaction_type,
            amount=self.amount,
            channel=self.channel or None,
            description=self.description or self.transaction_type,
        )


class TestRequest(CamelModel):
    """Request body for POST /charges/test: a suite id or an explicit list"""

    __test__ = False

    customer_code: Optional[str] = None
    test_transactions: Optional[List[ScenarioSchema]] = None
    test_suite_id: Optional[str] = None
    test_description: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, gt=0)


class TestTransactionResultSchema(CamelModel):
    __test__ = False

    transaction_id: str
    transaction_type: str
    transaction_amount: Money
    channel: Optional[str] = None
    description: Optional[str] = None
    calculated_charges: List[CalculatedChargeSchema]
    total_charge_for_transaction: Money
    rules_applied: int
    error: Optional[str] = None


class TestResultSchema(CamelModel):
    __test__ = False

    test_suite_id: Optional[str] = None
    test_suite_name: str
    customer_code: str
    customer_name: str
    customer_type: str
    total_transactions_tested: int
    transactions_with_charges: int
    failed_transactions: int
    total_charges_across_all_transactions: Money
    processing_time_ms: int
    incomplete: bool
    timed_out: bool
    transaction_results: List[TestTransactionResultSchema]


class CustomerSchema(CamelModel):
    code: str
    name: str
    type: str


class TestSuiteSchema(CamelModel):
    __test__ = False

    id: str
    name: str
    description: str
    tags: List[str]
    customer_types: List[str]
    estimated_duration: str


class TestScenariosSchema(BaseModel):
    """Scenario catalogue; top-level keys are snake_case as the dashboard reads them"""

    __test__ = False

    atm_scenarios: List[ScenarioSchema]
    transfer_scenarios: List[ScenarioSchema]
    special_scenarios: List[ScenarioSchema]
    edge_scenarios: List[ScenarioSchema]
    sample_customers: List[CustomerSchema]
    test_suites: List[TestSuiteSchema]


class TransactionValidationSchema(CamelModel):
    valid: bool
    errors: List[str]
    matching_rules: List[str]


class ChargeStatisticsSchema(CamelModel):
    system_status: str
    total_calculations_today: int
    total_charges_calculated: Money
    average_charge_per_transaction: Money


class ChargeHealthSchema(CamelModel):
    status: str
    active_rules: int
    customers: int
    currency: str


# Settlements


class SettlementRequest(CamelModel):
    """Request body for POST /settlements; constraints are checked by the workflow"""

    customer_code: str = ""
    account_number: str = ""
    settlement_type: str = "DEBIT"
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    requested_by: Optional[str] = None

    def to_draft(self) -> SettlementDraft:
        return SettlementDraft(
            customer_code=self.customer_code,
            account_number=self.account_number,
            settlement_type=self.settlement_type,
            amount=self.amount,
            description=self.description,
            requested_by=self.requested_by,
        )


class SettlementActionRequest(CamelModel):
    reviewed_by: Optional[str] = None
    remarks: Optional[str] = None


class SettlementSchema(CamelModel):
    id: int
    settlement_id: str
    customer_code: str
    account_number: str
    settlement_type: str
    amount: Money
    description: Optional[str] = None
    requested_by: Optional[str] = None
    status: SettlementStatus
    reviewed_by: Optional[str] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field(alias="signedAmount")
    @property
    def signed_amount(self) -> float:
        return float(signed_amount(self.settlement_type, self.amount))


# Users


class UserCreateRequest(CamelModel):
    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.RULE_VIEWER
    is_active: bool = True


class UserUpdateRequest(CamelModel):
    username: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserSchema(CamelModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None


# System


class HealthSchema(BaseModel):
    status: str
    service: str
    version: str
    database: str
    timestamp: datetime


class DatabaseCheckSchema(BaseModel):
    database: str
    rules: int
    customers: int


class WelcomeSchema(BaseModel):
    message: str
    description: str
    version: str
