"""Tests for plan activation."""

import pytest

from stridesync.db.models import TrainingPlan
from stridesync.plans.activation import activate_plan, deactivate_plan
from stridesync.plans.errors import PlanNotFoundError


class TestActivatePlan:
    def test_only_one_active_plan(self, db_session, plan, athlete, plan_builder):
        other = plan_builder(name="Autumn Half")
        activate_plan(db_session, other.id, athlete.id)
        db_session.commit()

        activate_plan(db_session, plan.id, athlete.id)
        db_session.commit()

        db_session.expire_all()
        assert db_session.get(TrainingPlan, plan.id).status == "active"
        assert db_session.get(TrainingPlan, other.id).status == "draft"

    def test_activate_is_idempotent(self, db_session, plan, athlete):
        activate_plan(db_session, plan.id, athlete.id)
        activate_plan(db_session, plan.id, athlete.id)
        db_session.commit()

        assert db_session.get(TrainingPlan, plan.id).status == "active"

    def test_other_athletes_plan_is_not_found(self, db_session, plan):
        with pytest.raises(PlanNotFoundError):
            activate_plan(db_session, plan.id, "someone-else")

    def test_deactivate(self, db_session, plan, athlete):
        activate_plan(db_session, plan.id, athlete.id)

        deactivated = deactivate_plan(db_session, plan.id, athlete.id)

        assert deactivated.status == "draft"
