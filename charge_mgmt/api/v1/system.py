"""Service liveness, welcome banner and database probe"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from charge_mgmt.api.dependencies import get_request_id
from charge_mgmt.api.v1.schemas import ApiResponse, DatabaseCheckSchema, HealthSchema, WelcomeSchema
from charge_mgmt.config import settings
from charge_mgmt.infrastructure.database.models import CustomerRecord, RuleRecord
from charge_mgmt.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/health", response_model=HealthSchema)
def health_check(request: Request, db: Session = Depends(get_db)):
    """Liveness plus a trivial database round trip; never fails the request"""
    try:
        db.execute(text("SELECT 1"))
        database = "UP"
    except SQLAlchemyError as e:
        logging.warning(f"Database probe failed: {e}", extra={"request_id": get_request_id(request)})
        database = "DOWN"

    return HealthSchema(
        status="UP" if database == "UP" else "DEGRADED",
        service=settings.service_name,
        version=settings.service_version,
        database=database,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/welcome", response_model=WelcomeSchema)
def welcome():
    return WelcomeSchema(
        message="Welcome to the Charge Management System",
        description="Charge rule lifecycle, charge calculation, test execution and settlement requests",
        version=settings.service_version,
    )


@router.get("/database/test", response_model=ApiResponse[DatabaseCheckSchema])
def database_test(db: Session = Depends(get_db)):
    """Row counts of the reference tables; errors surface through the envelope"""
    return ApiResponse(
        data=DatabaseCheckSchema(
            database="CONNECTED",
            rules=db.query(RuleRecord).count(),
            customers=db.query(CustomerRecord).count(),
        )
    )
