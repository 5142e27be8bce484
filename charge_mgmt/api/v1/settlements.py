"""Settlement request endpoints"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from charge_mgmt.api.dependencies import get_request_id, get_settlement_workflow
from charge_mgmt.api.v1.schemas import (
    ApiResponse,
    SettlementActionRequest,
    SettlementRequest,
    SettlementSchema,
)
from charge_mgmt.domain.models import SettlementAction, SettlementStatus
from charge_mgmt.domain.settlement import SettlementFilters, SettlementWorkflow
from charge_mgmt.infrastructure.database.session import get_db
from charge_mgmt.infrastructure.observability.logging import log_transition
from charge_mgmt.infrastructure.observability.metrics import settlement_transition_counter

router = APIRouter()


@router.get("/settlements", response_model=ApiResponse[List[SettlementSchema]])
def list_settlements(
    status: Optional[SettlementStatus] = None,
    customer_code: Optional[str] = Query(None, alias="customerCode"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    workflow: SettlementWorkflow = Depends(get_settlement_workflow),
):
    """Newest first; date bounds are inclusive calendar days"""
    filters = SettlementFilters(
        status=status,
        customer_code=customer_code or None,
        date_from=date_from,
        date_to=date_to,
    )
    settlements = workflow.list_settlements(filters)
    return ApiResponse(data=[SettlementSchema.model_validate(s) for s in settlements])


@router.post("/settlements", response_model=ApiResponse[SettlementSchema], status_code=201)
def create_settlement(
    body: SettlementRequest,
    request: Request,
    workflow: SettlementWorkflow = Depends(get_settlement_workflow),
    db: Session = Depends(get_db),
):
    settlement = workflow.create(body.to_draft())
    db.commit()

    log_transition(get_request_id(request), "settlement", settlement.settlement_id, "create", settlement.status)
    return ApiResponse(data=SettlementSchema.model_validate(settlement))


@router.get("/settlements/{settlement_id}", response_model=ApiResponse[SettlementSchema])
def get_settlement(settlement_id: int, workflow: SettlementWorkflow = Depends(get_settlement_workflow)):
    return ApiResponse(data=SettlementSchema.model_validate(workflow.get(settlement_id)))


def _transition(
    settlement_id: int,
    action: SettlementAction,
    body: Optional[SettlementActionRequest],
    request: Request,
    workflow: SettlementWorkflow,
    db: Session,
) -> ApiResponse[SettlementSchema]:
    body = body or SettlementActionRequest()
    settlement = workflow.apply(settlement_id, action, reviewed_by=body.reviewed_by, remarks=body.remarks)
    db.commit()

    settlement_transition_counter.labels(action=action.value).inc()
    log_transition(get_request_id(request), "settlement", settlement.settlement_id, action.value, settlement.status)
    return ApiResponse(data=SettlementSchema.model_validate(settlement))


@router.post("/settlements/{settlement_id}/approve", response_model=ApiResponse[SettlementSchema])
def approve_settlement(
    settlement_id: int,
    request: Request,
    body: Optional[SettlementActionRequest] = Body(None),
    workflow: SettlementWorkflow = Depends(get_settlement_workflow),
    db: Session = Depends(get_db),
):
    return _transition(settlement_id, SettlementAction.APPROVE, body, request, workflow, db)


@router.post("/settlements/{settlement_id}/reject", response_model=ApiResponse[SettlementSchema])
def reject_settlement(
    settlement_id: int,
    request: Request,
    body: Optional[SettlementActionRequest] = Body(None),
    workflow: SettlementWorkflow = Depends(get_settlement_workflow),
    db: Session = Depends(get_db),
):
    return _transition(settlement_id, SettlementAction.REJECT, body, request, workflow, db)


@router.post("/settlements/{settlement_id}/process", response_model=ApiResponse[SettlementSchema])
def process_settlement(
    settlement_id: int,
    request: Request,
    body: Optional[SettlementActionRequest] = Body(None),
    workflow: SettlementWorkflow = Depends(get_settlement_workflow),
    db: Session = Depends(get_db),
):
    """Mark an approved settlement as posted"""
    return _transition(settlement_id, SettlementAction.PROCESS, body, request, workflow, db)
