"""Plan endpoints: operation validate/preview/apply and activation."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session

from stridesync.api.dependencies import get_athlete_id
from stridesync.db.session import get_db
from stridesync.plans.activation import activate_plan
from stridesync.plans.context import PlanContext, load_plan_context
from stridesync.plans.errors import PlanNotFoundError
from stridesync.plans.operations import (
    ApplyResult,
    FallbackRequest,
    OperationPreview,
    PlanOperation,
    ValidationResult,
    apply_operations,
    parse_operations,
    preview_operations,
    validate_operations,
)
from stridesync.plans.operations.types import RequestFallback

router = APIRouter(prefix="/plans", tags=["plans"])


def _parse_body(payload: Any) -> list[PlanOperation]:
    try:
        parsed = parse_operations(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid operations: {e.errors(include_url=False)}",
        ) from e
    if isinstance(parsed, FallbackRequest):
        return [RequestFallback(op="request_fallback", reason=parsed.reason)]
    return parsed


def _load_context(session: Session, plan_id: int, athlete_id: str) -> PlanContext:
    try:
        return load_plan_context(session, plan_id, athlete_id)
    except PlanNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/{plan_id}/operations/validate", response_model=ValidationResult)
def post_validate_operations(
    plan_id: int,
    payload: Any = Body(...),
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    operations = _parse_body(payload)
    context = _load_context(session, plan_id, athlete_id)
    return validate_operations(operations, context)


@router.post("/{plan_id}/operations/preview", response_model=list[OperationPreview])
def post_preview_operations(
    plan_id: int,
    payload: Any = Body(...),
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    operations = _parse_body(payload)
    context = _load_context(session, plan_id, athlete_id)
    return preview_operations(operations, context)


@router.post("/{plan_id}/operations/apply", response_model=ApplyResult)
def post_apply_operations(
    plan_id: int,
    payload: Any = Body(...),
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    """Apply operations; nothing is committed unless every write succeeded."""
    operations = _parse_body(payload)
    context = _load_context(session, plan_id, athlete_id)

    result = apply_operations(session, plan_id, operations, context)
    if result.success:
        session.commit()
    else:
        session.rollback()
        logger.info(f"[PLANS] Apply to plan {plan_id} not committed: {result.errors or result.fallback_reason}")
    return result


@router.post("/{plan_id}/activate")
def post_activate_plan(
    plan_id: int,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    try:
        plan = activate_plan(session, plan_id, athlete_id)
    except PlanNotFoundError as e:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    session.commit()
    return {"plan_id": plan.id, "status": plan.status}
