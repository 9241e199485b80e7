"""Before/after previews of plan operations.

Previews come from the same resolution pass the engine writes from, so what
the athlete confirms is exactly what gets applied.
"""

from __future__ import annotations

from stridesync.plans.context import PlanContext, WorkoutSnapshot
from stridesync.plans.operations.describe import describe_operation
from stridesync.plans.operations.resolver import resolve_operations
from stridesync.plans.operations.types import AffectedWorkout, OperationPreview, PlanOperation, WorkoutState


def _state(workout: WorkoutSnapshot) -> WorkoutState:
    return WorkoutState(
        scheduled_date=workout.scheduled_date,
        workout_type=workout.workout_type,
        description=workout.description,
        distance_km=workout.distance_km,
        intensity_target=workout.intensity_target,
    )


def preview_operations(operations: list[PlanOperation], context: PlanContext) -> list[OperationPreview]:
    """Preview each operation's effect, in batch order.

    Each preview shows the workouts that operation changes, with the state
    it found them in (after earlier operations) and the state it leaves them
    in. Operations that change nothing get an empty affected list.
    """
    resolved, _ = resolve_operations(operations, context)
    week_starts_on = context.athlete_constraints.week_starts_on

    previews: list[OperationPreview] = []
    for item in resolved:
        previews.append(
            OperationPreview(
                operation=item.operation,
                description=describe_operation(item.operation, week_starts_on),
                affected_workouts=[
                    AffectedWorkout(
                        workout_id=change.workout_id,
                        week_number=change.week_number,
                        day=change.day,
                        before=_state(change.before),
                        after=_state(change.after),
                    )
                    for change in item.changes
                ],
                warnings=list(item.warnings) + list(item.errors),
            )
        )
    return previews
