"""Plan activation.

At most one plan per athlete is active. Activating a plan demotes every
other active plan of the same athlete to draft in the same transaction.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import update
from sqlalchemy.orm import Session

from stridesync.db.models import TrainingPlan
from stridesync.plans.errors import PlanNotFoundError


def _get_owned_plan(session: Session, plan_id: int, athlete_id: str) -> TrainingPlan:
    plan = session.get(TrainingPlan, plan_id)
    if plan is None or plan.athlete_id != athlete_id:
        raise PlanNotFoundError(plan_id)
    return plan


def activate_plan(session: Session, plan_id: int, athlete_id: str) -> TrainingPlan:
    """Make a plan the athlete's only active plan.

    Raises:
        PlanNotFoundError: If the plan does not belong to the athlete
    """
    plan = _get_owned_plan(session, plan_id, athlete_id)

    result = session.execute(
        update(TrainingPlan)
        .where(
            TrainingPlan.athlete_id == athlete_id,
            TrainingPlan.status == "active",
            TrainingPlan.id != plan_id,
        )
        .values(status="draft")
    )
    plan.status = "active"
    session.flush()

    logger.info(f"Activated plan {plan_id} for athlete_id={athlete_id} (deactivated {result.rowcount} others)")
    return plan


def deactivate_plan(session: Session, plan_id: int, athlete_id: str) -> TrainingPlan:
    plan = _get_owned_plan(session, plan_id, athlete_id)
    plan.status = "draft"
    session.flush()
    logger.info(f"Deactivated plan {plan_id} for athlete_id={athlete_id}")
    return plan
