"""Dependency injection for FastAPI endpoints"""

import asyncio
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from charge_mgmt.config import settings
from charge_mgmt.domain.batch import BatchProcessor
from charge_mgmt.domain.charges import ChargeEngine
from charge_mgmt.domain.lifecycle import RuleLifecycle
from charge_mgmt.domain.scenarios import TestHarness
from charge_mgmt.domain.settlement import SettlementWorkflow
from charge_mgmt.infrastructure.database.repositories import (
    CustomerRepository,
    RuleRepository,
    SettlementRepository,
    UserRepository,
)
from charge_mgmt.infrastructure.database.session import get_db
from charge_mgmt.infrastructure.observability.statistics import ChargeStatistics

DISCONNECT_POLL_SECONDS = 0.05


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_rule_lifecycle(db: Session = Depends(get_db)) -> RuleLifecycle:
    return RuleLifecycle(RuleRepository(db))


def get_settlement_workflow(db: Session = Depends(get_db)) -> SettlementWorkflow:
    return SettlementWorkflow(SettlementRepository(db))


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_charge_engine(db: Session = Depends(get_db)) -> ChargeEngine:
    """Snapshot the active rules and customers once for the whole request"""
    return ChargeEngine(RuleRepository(db).active_rules(), CustomerRepository(db).all())


def get_batch_processor(engine: ChargeEngine = Depends(get_charge_engine)) -> BatchProcessor:
    return BatchProcessor(engine, concurrency=settings.batch_concurrency)


def get_test_harness(processor: BatchProcessor = Depends(get_batch_processor)) -> TestHarness:
    return TestHarness(processor)


def get_statistics(request: Request) -> ChargeStatistics:
    """Operational counters live on the app, not in module state"""
    return request.app.state.charge_statistics


async def _watch_disconnect(request: Request, cancel: asyncio.Event) -> None:
    while not cancel.is_set():
        if await request.is_disconnected():
            cancel.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def get_cancel_event(request: Request) -> AsyncGenerator[asyncio.Event, None]:
    """
    Cancellation signal for long batch calls.

    Set when the client goes away, so the batch stops starting new items.
    """
    cancel = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        yield cancel
    finally:
        watcher.cancel()
