"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class RuleStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class RuleAction(str, Enum):
    APPROVE = "approve"
    DEACTIVATE = "deactivate"
    REACTIVATE = "reactivate"
    DELETE = "delete"


class RuleCategory(str, Enum):
    ATM = "ATM"
    TRANSFER = "TRANSFER"
    CARD = "CARD"
    STATEMENT = "STATEMENT"
    ACCOUNT = "ACCOUNT"
    OTHER = "OTHER"


class FeeType(str, Enum):
    FLAT = "FLAT"
    PERCENTAGE = "PERCENTAGE"


class Channel(str, Enum):
    ATM = "ATM"
    ONLINE = "ONLINE"
    BRANCH = "BRANCH"
    MOBILE = "MOBILE"
    API = "API"


class CustomerType(str, Enum):
    RETAIL = "RETAIL"
    CORPORATE = "CORPORATE"
    PREMIUM = "PREMIUM"
    SENIOR_CITIZEN = "SENIOR_CITIZEN"
    STAFF = "STAFF"


class SettlementType(str, Enum):
    DEBIT = "DEBIT"  # charges the customer
    CREDIT = "CREDIT"  # refunds the customer


class SettlementStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


class SettlementAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    PROCESS = "process"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    APPROVER = "APPROVER"
    CREATOR = "CREATOR"
    RULE_VIEWER = "RULE_VIEWER"


@dataclass(frozen=True)
class ChargeRule:
    """Charge rule as seen by the calculation engine"""

    id: int
    rule_code: str
    rule_name: str
    category: str
    activity_type: str
    fee_type: FeeType
    fee_value: Decimal
    status: RuleStatus
    channel: Optional[str] = None  # None matches any channel
    customer_type: Optional[str] = None  # None matches any customer type
    fee_cap: Optional[Decimal] = None  # PERCENTAGE ceiling, None means uncapped
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RuleDraft:
    """Author-supplied rule fields for create/update"""

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


@dataclass(frozen=True)
class RuleFilters:
    """Listing filters, AND-combined; None imposes no constraint"""

    status: Optional[RuleStatus] = None
    category: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    """Read-only customer reference data"""

    code: str
    name: str
    type: str


@dataclass(frozen=True)
class Transaction:
    """Transaction submitted for charge calculation"""

    transaction_id: str
    customer_code: str
    transaction_type: str
    amount: Decimal
    channel: Optional[str] = None
    source_account: Optional[str] = None
    destination_account: Optional[str] = None
    transaction_date: Optional[datetime] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class CalculatedCharge:
    """Single itemized charge produced by one matching rule"""

    rule_code: str
    rule_name: str
    fee_type: FeeType
    charge_amount: Decimal
    calculation_basis: str


@dataclass(frozen=True)
class CalculationResult:
    """Output of evaluating one transaction against the active rule set"""

    transaction_id: str
    customer_code: str
    transaction_type: str
    transaction_amount: Decimal
    channel: Optional[str]
    calculated_charges: List[CalculatedCharge]
    total_charges: Decimal
    calculated_at: Optional[datetime] = field(default=None, compare=False)


@dataclass
class ItemOutcome:
    """Per-item slot filled by a batch worker"""

    index: int
    transaction: Transaction
    result: Optional[CalculationResult] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


@dataclass
class BatchResult:
    """Aggregated outcome of a batch run"""

    batch_id: str
    requested_transactions: int
    total_transactions: int = 0
    successful_calculations: int = 0
    failed_calculations: int = 0
    processing_time_ms: int = 0
    total_charges_calculated: Decimal = Decimal("0.00")
    transaction_type_count: Dict[str, int] = field(default_factory=dict)
    charges_by_rule: Dict[str, Decimal] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    error_details: Dict[str, str] = field(default_factory=dict)
    incomplete: bool = False
    timed_out: bool = False
    outcomes: List[ItemOutcome] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class ScenarioTemplate:
    """Catalogue entry used by the test harness"""

    tag: str
    transaction_type: str
    amount: Decimal
    channel: Optional[str]
    description: str


@dataclass(frozen=True)
class TestSuite:
    """Predefined group of scenario tags"""

    __test__ = False  # not a pytest class

    id: str
    name: str
    description: str
    tags: List[str]
    customer_types: List[str]
    estimated_duration: str


@dataclass
class TestTransactionResult:
    """Per-scenario line of a test run"""

    __test__ = False

    transaction_id: str
    transaction_type: str
    transaction_amount: Decimal
    channel: Optional[str]
    description: Optional[str]
    calculated_charges: List[CalculatedCharge]
    total_charge_for_transaction: Decimal
    error: Optional[str] = None

    @property
    def rules_applied(self) -> int:
        return len(self.calculated_charges)


@dataclass
class TestResult:
    """Aggregated outcome of a test-harness run"""

    __test__ = False

    test_suite_id: Optional[str]
    test_suite_name: str
    customer_code: str
    customer_name: str
    customer_type: str
    total_transactions_tested: int
    transactions_with_charges: int
    failed_transactions: int
    total_charges_across_all_transactions: Decimal
    processing_time_ms: int
    incomplete: bool
    timed_out: bool
    transaction_results: List[TestTransactionResult]


@dataclass(frozen=True)
class SettlementDraft:
    """Settlement request as submitted, before validation"""

    customer_code: str
    account_number: str
    settlement_type: str
    amount: Decimal
    description: Optional[str] = None
    requested_by: Optional[str] = None
