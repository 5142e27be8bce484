"""Charge rule endpoints - listing, authoring and lifecycle transitions"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from charge_mgmt.api.dependencies import get_request_id, get_rule_lifecycle
from charge_mgmt.api.v1.schemas import (
    ApiResponse,
    BulkActionRequest,
    BulkActionSchema,
    DeletedSchema,
    RuleMetadataSchema,
    RuleRequest,
    RuleSchema,
    RuleStatisticsSchema,
    RuleValidationSchema,
)
from charge_mgmt.domain.lifecycle import RuleLifecycle
from charge_mgmt.domain.models import RuleAction, RuleFilters, RuleStatus
from charge_mgmt.infrastructure.database.session import get_db
from charge_mgmt.infrastructure.observability.logging import log_transition
from charge_mgmt.infrastructure.observability.metrics import rule_transition_counter

router = APIRouter()


def _rule_list(rules) -> ApiResponse[List[RuleSchema]]:
    return ApiResponse(data=[RuleSchema.model_validate(r) for r in rules])


def _transition(
    rule_id: int,
    action: RuleAction,
    request: Request,
    lifecycle: RuleLifecycle,
    db: Session,
):
    rule = lifecycle.apply(rule_id, action)
    db.commit()

    rule_transition_counter.labels(action=action.value).inc()
    status = rule.status if rule is not None else "DELETED"
    log_transition(get_request_id(request), "rule", rule_id, action.value, status)
    return rule


@router.get("/rules", response_model=ApiResponse[List[RuleSchema]])
def list_rules(
    status: Optional[RuleStatus] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
):
    """Filtered listing; filters combine with AND, blank values are ignored"""
    filters = RuleFilters(status=status, category=category or None, search=search or None)
    return _rule_list(lifecycle.list_rules(filters))


# Static paths are declared before /rules/{rule_id} so they are not captured by it


@router.get("/rules/active", response_model=ApiResponse[List[RuleSchema]])
def list_active_rules(lifecycle: RuleLifecycle = Depends(get_rule_lifecycle)):
    return _rule_list(lifecycle.list_rules(RuleFilters(status=RuleStatus.ACTIVE)))


@router.get("/rules/pending-approval", response_model=ApiResponse[List[RuleSchema]])
def list_pending_rules(lifecycle: RuleLifecycle = Depends(get_rule_lifecycle)):
    return _rule_list(lifecycle.list_rules(RuleFilters(status=RuleStatus.DRAFT)))


@router.get("/rules/category/{category}", response_model=ApiResponse[List[RuleSchema]])
def list_rules_by_category(category: str, lifecycle: RuleLifecycle = Depends(get_rule_lifecycle)):
    return _rule_list(lifecycle.list_rules(RuleFilters(category=category)))


@router.get("/rules/statistics", response_model=ApiResponse[RuleStatisticsSchema])
def rule_statistics(lifecycle: RuleLifecycle = Depends(get_rule_lifecycle)):
    return ApiResponse(data=RuleStatisticsSchema.model_validate(lifecycle.statistics()))


@router.get("/rules/metadata", response_model=ApiResponse[RuleMetadataSchema])
def rule_metadata():
    return ApiResponse(data=RuleMetadataSchema(**RuleLifecycle.metadata()))


@router.get("/rules/code/{rule_code}", response_model=ApiResponse[RuleSchema])
def get_rule_by_code(rule_code: str, lifecycle: RuleLifecycle = Depends(get_rule_lifecycle)):
    return ApiResponse(data=RuleSchema.model_validate(lifecycle.get_by_code(rule_code)))


@router.post("/rules/validate", response_model=ApiResponse[RuleValidationSchema])
def validate_rule(
    body: RuleRequest,
    rule_id: Optional[int] = Query(None, alias="ruleId"),
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
):
    """Dry run of create/update validation; nothing is stored"""
    errors = lifecycle.validate(body.to_draft(), rule_id=rule_id)
    return ApiResponse(data=RuleValidationSchema(valid=not errors, errors=errors))


@router.post("/rules/bulk-action", response_model=ApiResponse[BulkActionSchema])
def bulk_action(
    body: BulkActionRequest,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    """
    Apply one action to many rules.

    Each id is an independent compare-and-set, so one failing rule never blocks
    or undoes the others.
    """
    outcome = lifecycle.bulk_action(body.action, body.rule_ids)
    db.commit()

    request_id = get_request_id(request)
    for rule_id in outcome.succeeded:
        rule_transition_counter.labels(action=body.action.value).inc()
        log_transition(request_id, "rule", rule_id, body.action.value, "bulk")

    return ApiResponse(data=BulkActionSchema.model_validate(outcome))


@router.get("/rules/{rule_id}", response_model=ApiResponse[RuleSchema])
def get_rule(rule_id: int, lifecycle: RuleLifecycle = Depends(get_rule_lifecycle)):
    return ApiResponse(data=RuleSchema.model_validate(lifecycle.get(rule_id)))


@router.post("/rules", response_model=ApiResponse[RuleSchema], status_code=201)
def create_rule(
    body: RuleRequest,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    """Create a rule in DRAFT; it takes part in calculations only once approved"""
    rule = lifecycle.create(body.to_draft())
    db.commit()

    log_transition(get_request_id(request), "rule", rule.id, "create", rule.status)
    return ApiResponse(data=RuleSchema.model_validate(rule))


@router.put("/rules/{rule_id}", response_model=ApiResponse[RuleSchema])
def update_rule(
    rule_id: int,
    body: RuleRequest,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    rule = lifecycle.update(rule_id, body.to_draft())
    db.commit()

    log_transition(get_request_id(request), "rule", rule_id, "update", rule.status)
    return ApiResponse(data=RuleSchema.model_validate(rule))


@router.delete("/rules/{rule_id}", response_model=ApiResponse[DeletedSchema])
def delete_rule(
    rule_id: int,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    """Hard delete; only DRAFT rules can be removed"""
    _transition(rule_id, RuleAction.DELETE, request, lifecycle, db)
    return ApiResponse(data=DeletedSchema(id=rule_id))


@router.post("/rules/{rule_id}/approve", response_model=ApiResponse[RuleSchema])
def approve_rule(
    rule_id: int,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    rule = _transition(rule_id, RuleAction.APPROVE, request, lifecycle, db)
    return ApiResponse(data=RuleSchema.model_validate(rule))


@router.post("/rules/{rule_id}/deactivate", response_model=ApiResponse[RuleSchema])
def deactivate_rule(
    rule_id: int,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    rule = _transition(rule_id, RuleAction.DEACTIVATE, request, lifecycle, db)
    return ApiResponse(data=RuleSchema.model_validate(rule))


@router.post("/rules/{rule_id}/reactivate", response_model=ApiResponse[RuleSchema])
def reactivate_rule(
    rule_id: int,
    request: Request,
    lifecycle: RuleLifecycle = Depends(get_rule_lifecycle),
    db: Session = Depends(get_db),
):
    rule = _transition(rule_id, RuleAction.REACTIVATE, request, lifecycle, db)
    return ApiResponse(data=RuleSchema.model_validate(rule))
