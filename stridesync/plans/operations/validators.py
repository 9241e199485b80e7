"""Validation for plan operations.

Validation never raises: every problem in the batch is collected so a UI can
highlight all of them at once. Errors block the write; warnings (unknown
types, large factors, back-to-back hard days, big volume swings) are shown
to the athlete but do not block it.
"""

from __future__ import annotations

import math
import re
from datetime import date, timedelta

from loguru import logger

from stridesync.plans.context import PlanContext, WeekSnapshot
from stridesync.plans.operations.defaults import HARD_WORKOUT_TYPES, VALID_INTENSITIES, VALID_WORKOUT_TYPES
from stridesync.plans.operations.resolver import ResolvedOperation, resolve_operations
from stridesync.plans.operations.types import (
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
    SpecificWeeks,
    SwapDays,
    ValidationResult,
    WorkoutTargetOperation,
    find_fallback,
)
from stridesync.plans.workout_reference import parse_workout_index

MIN_FACTOR = 0.0
MAX_FACTOR = 3.0
LOW_FACTOR_WARNING = 0.5
HIGH_FACTOR_WARNING = 2.0
MAX_REASONABLE_DISTANCE_METERS = 100_000
MAX_DISTANCE_METERS = 1_000_000
VOLUME_SWING_WARNING = 0.30

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _check_day(op_name: str, day: int, label: str, errors: list[str]) -> None:
    if day < 1 or day > 7:
        errors.append(f"{op_name}: Invalid {label} {day} (must be 1-7)")


def _check_week_number(op_name: str, week_number: int, context: PlanContext, errors: list[str]) -> None:
    if week_number < 1 or week_number > context.total_weeks or context.get_week(week_number) is None:
        errors.append(f"{op_name}: Week {week_number} not found (plan has {context.total_weeks} weeks)")


def _check_week_selector(op_name: str, selector: object, context: PlanContext, errors: list[str]) -> None:
    if not isinstance(selector, SpecificWeeks):
        return
    if not selector.weeks:
        errors.append(f"{op_name}: No weeks selected")
    for week_number in selector.weeks:
        _check_week_number(op_name, week_number, context, errors)


def _check_workout_type(op_name: str, workout_type: str, label: str, warnings: list[str]) -> None:
    if workout_type not in VALID_WORKOUT_TYPES:
        warnings.append(f'{op_name}: Unknown {label} "{workout_type}"')


def _check_factor(op_name: str, factor: float, errors: list[str], warnings: list[str]) -> None:
    if not math.isfinite(factor) or factor < MIN_FACTOR or factor > MAX_FACTOR:
        errors.append(f"{op_name}: Factor {factor} out of range (must be between {MIN_FACTOR:g} and {MAX_FACTOR:g})")
        return
    if factor > HIGH_FACTOR_WARNING:
        warnings.append(f"{op_name}: Scaling by more than 2x may be excessive")
    if factor < LOW_FACTOR_WARNING:
        warnings.append(f"{op_name}: Scaling to less than 50% may be excessive")


def _check_target(op: WorkoutTargetOperation, context: PlanContext, errors: list[str]) -> None:
    if op.workout_index is None:
        if op.workout_id is None:
            errors.append(f"{op.op}: workoutIndex or workoutId is required")
        return
    parsed = parse_workout_index(op.workout_index)
    if parsed is None:
        errors.append(f'{op.op}: Invalid workout index "{op.workout_index}" (expected W#:D#)')
        return
    week_number, day = parsed
    _check_week_number(op.op, week_number, context, errors)
    _check_day(op.op, day, "day", errors)


def _static_checks(op: PlanOperation, context: PlanContext, errors: list[str], warnings: list[str]) -> None:
    if isinstance(op, SwapDays):
        _check_week_selector(op.op, op.week_numbers, context, errors)
        _check_day(op.op, op.day_a, "day", errors)
        _check_day(op.op, op.day_b, "day", errors)
    elif isinstance(op, MoveWorkoutType):
        _check_week_selector(op.op, op.week_numbers, context, errors)
        _check_day(op.op, op.to_day, "target day", errors)
        _check_workout_type(op.op, op.workout_type, "workout type", warnings)
    elif isinstance(op, RemoveWorkoutType):
        _check_week_selector(op.op, op.week_numbers, context, errors)
        _check_workout_type(op.op, op.replacement, "replacement type", warnings)
    elif isinstance(op, ScaleWeekVolume):
        _check_week_number(op.op, op.week_number, context, errors)
        _check_factor(op.op, op.factor, errors, warnings)
    elif isinstance(op, ScalePhaseVolume):
        _check_factor(op.op, op.factor, errors, warnings)
    elif isinstance(op, RequestFallback):
        return
    else:
        _check_target(op, context, errors)
        if isinstance(op, RescheduleWorkout):
            if not _DATE_PATTERN.match(op.new_date):
                errors.append(f'reschedule_workout: Invalid date format "{op.new_date}"')
        elif isinstance(op, ChangeWorkoutType):
            _check_workout_type(op.op, op.new_type, "workout type", warnings)
        elif isinstance(op, ChangeWorkoutDistance):
            if not math.isfinite(op.new_distance_meters):
                errors.append("change_workout_distance: Distance must be a finite number")
            elif op.new_distance_meters < 0:
                errors.append("change_workout_distance: Distance cannot be negative")
            elif op.new_distance_meters > MAX_DISTANCE_METERS:
                errors.append(
                    f"change_workout_distance: Distance over {MAX_DISTANCE_METERS // 1000}km is not a workout"
                )
            elif op.new_distance_meters > MAX_REASONABLE_DISTANCE_METERS:
                warnings.append("change_workout_distance: Distance over 100km seems high")
        elif isinstance(op, ScaleWorkoutDistance):
            _check_factor(op.op, op.factor, errors, warnings)
        elif isinstance(op, ChangeIntensity):
            if op.new_intensity not in VALID_INTENSITIES:
                warnings.append(f'change_intensity: Unknown intensity "{op.new_intensity}"')


def _adjacent_hard_days(week: WeekSnapshot) -> list[str]:
    by_date: dict[date, list[str]] = {}
    for workout in week.workouts:
        if workout.workout_type in HARD_WORKOUT_TYPES:
            by_date.setdefault(workout.scheduled_date, []).append(workout.workout_type)

    conflicts: list[str] = []
    for day in sorted(by_date):
        next_day = day + timedelta(days=1)
        if next_day in by_date:
            conflicts.append(
                f"Week {week.week_number}: consecutive hard workouts on {day.isoformat()} "
                f"({', '.join(by_date[day])}) and {next_day.isoformat()} ({', '.join(by_date[next_day])})"
            )
    return conflicts


def _volume_swing(before: WeekSnapshot, after: WeekSnapshot) -> str | None:
    before_meters = before.planned_distance_meters()
    after_meters = after.planned_distance_meters()
    if before_meters <= 0:
        return None
    change = (after_meters - before_meters) / before_meters
    if abs(change) <= VOLUME_SWING_WARNING:
        return None
    return (
        f"Week {after.week_number}: planned volume changes by {change * 100:+.0f}% "
        f"({before_meters / 1000:.1f}km → {after_meters / 1000:.1f}km)"
    )


def conflict_warnings(
    resolved: list[ResolvedOperation],
    original: PlanContext,
    working: PlanContext,
) -> list[str]:
    """Warnings about the plan as it would look after the batch, limited to touched weeks."""
    touched: set[int] = set()
    for item in resolved:
        touched |= item.touched_weeks
        touched |= {change.week_number for change in item.changes}

    warnings: list[str] = []
    for week_number in sorted(touched):
        before = original.get_week(week_number)
        after = working.get_week(week_number)
        if before is None or after is None:
            continue
        warnings.extend(_adjacent_hard_days(after))
        swing = _volume_swing(before, after)
        if swing is not None:
            warnings.append(swing)
    return warnings


def validate_operations(operations: list[PlanOperation], context: PlanContext) -> ValidationResult:
    """Validate a batch of operations against a plan snapshot.

    A batch containing request_fallback is always valid: it is a signal to
    regenerate, not an edit, and nothing else in the batch will be applied.

    Args:
        operations: Operations in the order they will be applied
        context: Plan snapshot (not modified)

    Returns:
        ValidationResult with every error and warning
    """
    fallback = find_fallback(operations)
    if fallback is not None:
        warnings = []
        if len(operations) > 1:
            warnings.append("request_fallback: other operations in the batch are ignored")
        return ValidationResult(valid=True, errors=[], warnings=warnings)

    errors: list[str] = []
    warnings: list[str] = []

    if not operations:
        warnings.append("No operations to apply")

    # Only statically sound operations are simulated; the rest already failed
    resolvable: list[PlanOperation] = []
    for operation in operations:
        error_count = len(errors)
        _static_checks(operation, context, errors, warnings)
        if len(errors) == error_count:
            resolvable.append(operation)

    resolved, working = resolve_operations(resolvable, context)
    for item in resolved:
        errors.extend(item.errors)
        warnings.extend(item.warnings)

    if not errors:
        warnings.extend(conflict_warnings(resolved, context, working))

    errors = list(dict.fromkeys(errors))
    warnings = list(dict.fromkeys(warnings))

    if errors:
        logger.info(f"Operation validation failed for plan {context.plan.id}: {len(errors)} errors")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
