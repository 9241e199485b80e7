"""Plan operations engine.

Applies a validated batch of operations to the stored plan:

1. request_fallback anywhere in the batch → nothing is written, the reason
   is handed back so the caller can switch to full regeneration
2. validation errors → nothing is written, every error is returned
3. otherwise the batch is resolved against the snapshot and written in
   operation order

Every written workout gets version + 1 exactly once per batch. The first
write to a workout is conditioned on the version seen in the snapshot, so a
concurrent edit surfaces as StaleWriteError instead of being overwritten.
Workouts already pushed to Garmin flip from "synced" to "stale".

The engine flushes but never commits. The caller commits on success and
rolls back otherwise.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stridesync.db.models import PlannedWorkout, WeeklyPlan
from stridesync.plans.context import PlanContext
from stridesync.plans.operations.errors import PersistenceError, StaleWriteError
from stridesync.plans.operations.resolver import ResolvedOperation, WorkoutChange, resolve_operations
from stridesync.plans.operations.types import ApplyResult, PlanOperation, find_fallback
from stridesync.plans.operations.validators import validate_operations


class _WorkoutWriter:
    """Writes workout changes with per-batch version bookkeeping."""

    def __init__(self, session: Session, plan_id: int, context: PlanContext) -> None:
        self.session = session
        self.plan_id = plan_id
        self.snapshot_versions = {w.id: w.version for w in context.iter_workouts()}
        self.snapshot_sync_status = {w.id: w.garmin_sync_status for w in context.iter_workouts()}
        self.written: set[int] = set()

    def write(self, change: WorkoutChange) -> None:
        workout_id = change.workout_id
        snapshot_version = self.snapshot_versions[workout_id]
        first_write = workout_id not in self.written
        expected_version = snapshot_version if first_write else snapshot_version + 1

        values = dict(change.field_changes)
        if first_write:
            values["version"] = snapshot_version + 1
            if self.snapshot_sync_status.get(workout_id) == "synced":
                values["garmin_sync_status"] = "stale"

        try:
            result = self.session.execute(
                update(PlannedWorkout)
                .where(
                    PlannedWorkout.id == workout_id,
                    PlannedWorkout.plan_id == self.plan_id,
                    PlannedWorkout.version == expected_version,
                )
                .values(**values)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update workout {workout_id}: {e}") from e

        if result.rowcount == 0:
            raise StaleWriteError(workout_id, expected_version)

        self.written.add(workout_id)

    def write_operation(self, item: ResolvedOperation) -> None:
        for change in item.changes:
            self.write(change)

        for volume_change in item.week_volume_changes:
            try:
                self.session.execute(
                    update(WeeklyPlan)
                    .where(WeeklyPlan.id == volume_change.weekly_plan_id, WeeklyPlan.plan_id == self.plan_id)
                    .values(weekly_volume_target=volume_change.after)
                )
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to update week {volume_change.week_number} volume: {e}") from e


def apply_operations(
    session: Session,
    plan_id: int,
    operations: list[PlanOperation],
    context: PlanContext,
) -> ApplyResult:
    """Apply a batch of operations to a stored plan.

    Args:
        session: Database session (caller commits or rolls back)
        plan_id: Plan being edited
        operations: Operations in application order
        context: Snapshot the operations were generated against

    Returns:
        ApplyResult. On a mid-batch write failure, operations_applied and
        workouts_modified count what was written before the failure.
    """
    fallback = find_fallback(operations)
    if fallback is not None:
        logger.info(f"Fallback requested for plan {plan_id}: {fallback.reason}")
        return ApplyResult(success=False, fallback_reason=fallback.reason)

    if context.plan.id != plan_id:
        return ApplyResult(success=False, errors=[f"Plan context is for plan {context.plan.id}, not {plan_id}"])

    validation = validate_operations(operations, context)
    if not validation.valid:
        return ApplyResult(success=False, errors=validation.errors, warnings=validation.warnings)

    resolved, _ = resolve_operations(operations, context)
    writer = _WorkoutWriter(session, plan_id, context)

    errors: list[str] = []
    operations_applied = 0
    for item in resolved:
        try:
            writer.write_operation(item)
        except (StaleWriteError, PersistenceError) as e:
            logger.warning(f"Stopped applying operations to plan {plan_id} at {item.operation.op}: {e}")
            errors.append(f"{item.operation.op}: {e}")
            break
        operations_applied += 1

    if not errors:
        session.flush()

    logger.info(
        f"Applied {operations_applied}/{len(operations)} operations to plan {plan_id}, "
        f"{len(writer.written)} workouts modified"
    )

    return ApplyResult(
        success=not errors,
        operations_applied=operations_applied,
        workouts_modified=len(writer.written),
        errors=errors,
        warnings=validation.warnings,
    )
