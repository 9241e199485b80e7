"""Operation resolution against an in-memory plan snapshot.

Each operation is turned into concrete per-workout field changes without
touching the store. Operations resolve in array order against one working
copy of the snapshot, so later operations see the effect of earlier ones
(a swap followed by a type change on the swapped slot acts on the
post-swap content).

Fields whose value would not change are dropped: an operation that
changes nothing touches no workout.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from loguru import logger
from pydantic import ValidationError

from stridesync.plans.context import PlanContext, WeekSnapshot, WorkoutSnapshot
from stridesync.plans.operations.defaults import get_workout_type_defaults, round_half_up
from stridesync.plans.operations.types import (
    AllWeeks,
    ChangeIntensity,
    ChangeWorkoutDistance,
    ChangeWorkoutType,
    MoveWorkoutType,
    PlanOperation,
    RemoveWorkoutType,
    RequestFallback,
    RescheduleWorkout,
    ScalePhaseVolume,
    ScaleWeekVolume,
    ScaleWorkoutDistance,
    SwapDays,
    WorkoutTargetOperation,
)
from stridesync.plans.structured_workout import (
    STRUCTURED_WORKOUT_TYPES,
    StructuredWorkoutDetail,
    build_structured_workout,
    parse_structured_workout,
)

# Workout content exchanged by swap_days / move_workout_type; dates stay with the slot
CONTENT_FIELDS = (
    "workout_type",
    "description",
    "distance_target_meters",
    "duration_target_seconds",
    "intensity_target",
    "structured_workout",
)


@dataclass
class WorkoutChange:
    """Field changes for one workout within one operation.

    before/after are copies of the workout as the operation saw it and left it.
    """

    workout_id: int
    week_number: int
    day: int
    before: WorkoutSnapshot
    after: WorkoutSnapshot
    field_changes: dict[str, Any]


@dataclass
class WeekVolumeChange:
    weekly_plan_id: int
    week_number: int
    before: float | None
    after: float | None


@dataclass
class ResolvedOperation:
    operation: PlanOperation
    changes: list[WorkoutChange] = field(default_factory=list)
    week_volume_changes: list[WeekVolumeChange] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    touched_weeks: set[int] = field(default_factory=set)

    @property
    def workout_ids(self) -> set[int]:
        return {change.workout_id for change in self.changes}

    def update(self, week: WeekSnapshot, workout: WorkoutSnapshot, **fields: Any) -> None:
        """Apply field values to the working snapshot and record what actually changed."""
        changes = {name: value for name, value in fields.items() if getattr(workout, name) != value}
        self.touched_weeks.add(week.week_number)
        if not changes:
            return

        existing = next((c for c in self.changes if c.workout_id == workout.id), None)
        before = existing.before if existing is not None else workout.model_copy(deep=True)

        for name, value in changes.items():
            setattr(workout, name, copy.deepcopy(value))

        if existing is None:
            self.changes.append(
                WorkoutChange(
                    workout_id=workout.id,
                    week_number=week.week_number,
                    day=workout.day,
                    before=before,
                    after=workout.model_copy(deep=True),
                    field_changes=dict(changes),
                )
            )
            return

        existing.field_changes.update(changes)
        # A field that ended where it started is not a change
        for name in list(existing.field_changes):
            if getattr(before, name) == getattr(workout, name):
                del existing.field_changes[name]
        existing.after = workout.model_copy(deep=True)
        if not existing.field_changes:
            self.changes.remove(existing)


def select_weeks(selector: Any, context: PlanContext) -> list[WeekSnapshot]:
    """Resolve a week selector once; unknown week numbers are left to validation."""
    if isinstance(selector, AllWeeks):
        return list(context.weeks)
    weeks: list[WeekSnapshot] = []
    for week_number in dict.fromkeys(selector.weeks):
        week = context.get_week(week_number)
        if week is not None:
            weeks.append(week)
    return weeks


def find_target_workout(
    operation: WorkoutTargetOperation,
    context: PlanContext,
) -> tuple[WeekSnapshot, WorkoutSnapshot] | None:
    if operation.workout_index:
        workout = context.find_workout(operation.workout_index)
    elif operation.workout_id is not None:
        workout = next((w for w in context.iter_workouts() if w.id == operation.workout_id), None)
    else:
        workout = None
    if workout is None:
        return None
    for week in context.weeks:
        if any(w is workout for w in week.workouts):
            return week, workout
    return None


def _content(workout: WorkoutSnapshot) -> dict[str, Any]:
    return {name: copy.deepcopy(getattr(workout, name)) for name in CONTENT_FIELDS}


def _swap_content(resolved: ResolvedOperation, week: WeekSnapshot, a: WorkoutSnapshot, b: WorkoutSnapshot) -> None:
    a_content = _content(a)
    b_content = _content(b)
    resolved.update(week, a, **b_content)
    resolved.update(week, b, **a_content)


def _restructure(
    workout: WorkoutSnapshot,
    workout_type: str,
    distance_meters: int | None,
    intensity: str | None,
) -> dict[str, Any] | None:
    """structured_workout for a workout after its type or distance changes.

    Pace guidance and notes carry over; an interval main set is kept while
    the workout stays an interval session.
    """
    if workout.structured_workout is None and workout_type not in STRUCTURED_WORKOUT_TYPES:
        return None
    try:
        current = parse_structured_workout(workout.workout_type, workout.structured_workout)
    except ValidationError as e:
        logger.warning(f"Workout {workout.id} has an unreadable structured_workout, rebuilding it: {e}")
        current = None

    main_set = None
    if workout_type == "intervals" and isinstance(current, StructuredWorkoutDetail):
        main_set = [block.model_dump() for block in current.main_set]

    return build_structured_workout(
        workout_type,
        distance_meters=distance_meters,
        intensity=intensity,
        pace_guidance=current.pace_guidance if current else None,
        notes=current.notes if current else None,
        main_set=main_set,
    )


def _type_change_fields(workout: WorkoutSnapshot, new_type: str, new_description: str | None) -> dict[str, Any]:
    fields: dict[str, Any] = {"workout_type": new_type}
    fields.update(get_workout_type_defaults(new_type, workout.distance_target_meters).field_updates())
    if new_description:
        fields["description"] = new_description
    fields["structured_workout"] = _restructure(
        workout,
        new_type,
        fields.get("distance_target_meters", workout.distance_target_meters),
        fields.get("intensity_target", workout.intensity_target),
    )
    return fields


def _distance_fields(workout: WorkoutSnapshot, distance_meters: int) -> dict[str, Any]:
    fields: dict[str, Any] = {"distance_target_meters": distance_meters}
    # Tempo main sets cover the whole distance
    if distance_meters >= 0 and distance_meters != workout.distance_target_meters and workout.workout_type == "tempo":
        fields["structured_workout"] = _restructure(
            workout, workout.workout_type, distance_meters, workout.intensity_target
        )
    return fields


def _scale_distance(
    resolved: ResolvedOperation,
    week: WeekSnapshot,
    workout: WorkoutSnapshot,
    factor: float,
) -> None:
    if workout.distance_target_meters is None:
        return
    resolved.update(week, workout, **_distance_fields(workout, round_half_up(workout.distance_target_meters * factor)))


def _scale_week(resolved: ResolvedOperation, week: WeekSnapshot, factor: float) -> None:
    for workout in week.workouts:
        if workout.workout_type == "rest" or not workout.distance_target_meters:
            continue
        _scale_distance(resolved, week, workout, factor)
    resolved.touched_weeks.add(week.week_number)

    if week.weekly_volume_target is None:
        return
    new_target = float(round_half_up(week.weekly_volume_target * factor))
    if new_target == week.weekly_volume_target:
        return
    resolved.week_volume_changes.append(
        WeekVolumeChange(
            weekly_plan_id=week.id,
            week_number=week.week_number,
            before=week.weekly_volume_target,
            after=new_target,
        )
    )
    week.weekly_volume_target = new_target


def _resolve_swap_days(op: SwapDays, context: PlanContext, resolved: ResolvedOperation) -> None:
    if op.day_a == op.day_b:
        resolved.warnings.append(f"swap_days: day {op.day_a} swapped with itself, nothing to do")
        return
    for week in select_weeks(op.week_numbers, context):
        workout_a = week.workout_on_day(op.day_a)
        workout_b = week.workout_on_day(op.day_b)
        if workout_a is None or workout_b is None:
            missing = op.day_a if workout_a is None else op.day_b
            resolved.warnings.append(f"swap_days: Week {week.week_number} has no workout on day {missing}, skipped")
            continue
        _swap_content(resolved, week, workout_a, workout_b)


def _resolve_move_workout_type(op: MoveWorkoutType, context: PlanContext, resolved: ResolvedOperation) -> None:
    found_any = False
    for week in select_weeks(op.week_numbers, context):
        source = next((w for w in week.workouts if w.workout_type == op.workout_type), None)
        if source is None:
            continue
        found_any = True
        if source.day == op.to_day:
            continue
        target = week.workout_on_day(op.to_day)
        if target is None:
            resolved.warnings.append(
                f"move_workout_type: Week {week.week_number} has no workout on day {op.to_day}, skipped"
            )
            continue
        _swap_content(resolved, week, source, target)

    if not found_any:
        resolved.warnings.append(
            f'move_workout_type: No "{op.workout_type}" workout found in {op.week_numbers.describe()}'
        )


def _resolve_remove_workout_type(op: RemoveWorkoutType, context: PlanContext, resolved: ResolvedOperation) -> None:
    found_any = False
    for week in select_weeks(op.week_numbers, context):
        for workout in week.workouts:
            if workout.workout_type != op.workout_type:
                continue
            found_any = True
            resolved.update(week, workout, **_type_change_fields(workout, op.replacement, None))

    if not found_any:
        resolved.warnings.append(
            f'remove_workout_type: No "{op.workout_type}" workout found in {op.week_numbers.describe()}'
        )


def _resolve_single_workout(
    op: WorkoutTargetOperation,
    context: PlanContext,
    resolved: ResolvedOperation,
) -> None:
    target = find_target_workout(op, context)
    if target is None:
        resolved.errors.append(f"{op.op}: Workout {op.target_label} not found")
        return
    week, workout = target

    if isinstance(op, RescheduleWorkout):
        try:
            new_date = date.fromisoformat(op.new_date)
        except ValueError:
            resolved.errors.append(f'reschedule_workout: Invalid date format "{op.new_date}"')
            return
        resolved.update(week, workout, scheduled_date=new_date)
    elif isinstance(op, ChangeWorkoutType):
        resolved.update(week, workout, **_type_change_fields(workout, op.new_type, op.new_description))
    elif isinstance(op, ChangeWorkoutDistance):
        resolved.update(week, workout, **_distance_fields(workout, round_half_up(op.new_distance_meters)))
    elif isinstance(op, ScaleWorkoutDistance):
        if workout.distance_target_meters is None:
            resolved.warnings.append(f"scale_workout_distance: Workout {op.target_label} has no distance target")
            resolved.touched_weeks.add(week.week_number)
            return
        _scale_distance(resolved, week, workout, op.factor)
    elif isinstance(op, ChangeIntensity):
        resolved.update(week, workout, intensity_target=op.new_intensity)


def resolve_operation(operation: PlanOperation, context: PlanContext) -> ResolvedOperation:
    """Resolve one operation, mutating the working snapshot in place."""
    resolved = ResolvedOperation(operation=operation)

    if isinstance(operation, SwapDays):
        _resolve_swap_days(operation, context, resolved)
    elif isinstance(operation, MoveWorkoutType):
        _resolve_move_workout_type(operation, context, resolved)
    elif isinstance(operation, RemoveWorkoutType):
        _resolve_remove_workout_type(operation, context, resolved)
    elif isinstance(operation, ScaleWeekVolume):
        week = context.get_week(operation.week_number)
        if week is None:
            resolved.errors.append(f"scale_week_volume: Week {operation.week_number} not found")
        else:
            _scale_week(resolved, week, operation.factor)
    elif isinstance(operation, ScalePhaseVolume):
        phase_key = operation.phase_name.strip().lower()
        weeks = [w for w in context.weeks if w.phase_name.strip().lower() == phase_key]
        if not weeks:
            resolved.errors.append(f'scale_phase_volume: Phase "{operation.phase_name}" not found')
        for week in weeks:
            _scale_week(resolved, week, operation.factor)
    elif isinstance(operation, RequestFallback):
        pass
    else:
        _resolve_single_workout(operation, context, resolved)

    return resolved


def resolve_operations(
    operations: list[PlanOperation],
    context: PlanContext,
) -> tuple[list[ResolvedOperation], PlanContext]:
    """Resolve a batch in array order against a deep copy of the snapshot.

    Returns:
        (resolved operations, working snapshot after every operation)
    """
    working = context.model_copy(deep=True)
    resolved = [resolve_operation(operation, working) for operation in operations]
    logger.debug(
        f"Resolved {len(operations)} operations for plan {context.plan.id}: "
        f"{sum(len(r.changes) for r in resolved)} workout changes"
    )
    return resolved, working
