"""Pytest fixtures for testing"""

from typing import Dict, Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from charge_mgmt.api.main import create_app
from charge_mgmt.domain.batch import BatchProcessor
from charge_mgmt.domain.charges import ChargeEngine
from charge_mgmt.domain.models import ChargeRule, Customer, FeeType, RuleStatus
from charge_mgmt.infrastructure.database.models import Base
from charge_mgmt.infrastructure.database.seed import SAMPLE_CUSTOMERS, SAMPLE_RULES, seed_reference_data
from charge_mgmt.infrastructure.database.session import get_db

# Test database: one shared in-memory connection
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database seeded with the sample customers and rules"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    seed_reference_data(db)
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def sample_customers() -> Dict[str, Customer]:
    return {c["code"]: Customer(**c) for c in SAMPLE_CUSTOMERS}


@pytest.fixture
def sample_rules() -> List[ChargeRule]:
    """Sample rules as engine objects, ids in seed order"""
    return [
        ChargeRule(
            id=i,
            rule_code=r["rule_code"],
            rule_name=r["rule_name"],
            category=r["category"],
            activity_type=r["activity_type"],
            fee_type=FeeType(r["fee_type"]),
            fee_value=r["fee_value"],
            status=RuleStatus(r["status"]),
            channel=r.get("channel"),
            customer_type=r.get("customer_type"),
            fee_cap=r.get("fee_cap"),
        )
        for i, r in enumerate(SAMPLE_RULES, start=1)
    ]


@pytest.fixture
def charge_engine(sample_rules, sample_customers) -> ChargeEngine:
    return ChargeEngine(sample_rules, sample_customers)


@pytest.fixture
def processor(charge_engine) -> BatchProcessor:
    return BatchProcessor(charge_engine, concurrency=4)
