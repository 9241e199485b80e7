"""Human-readable operation descriptions for previews and the calendar UI."""

from __future__ import annotations

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
    SwapDays,
)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def get_day_name(day_number: int, week_starts_on: int = 0) -> str:
    """Calendar name of plan day 1-7, where day 1 falls on week_starts_on (0=Sunday)."""
    return DAY_NAMES[(week_starts_on + day_number - 1) % 7]


def _percent(factor: float) -> str:
    return f"{factor * 100:.0f}%"


def describe_operation(op: PlanOperation, week_starts_on: int = 0) -> str:
    if isinstance(op, SwapDays):
        return (
            f"Swap {get_day_name(op.day_a, week_starts_on)} and {get_day_name(op.day_b, week_starts_on)} "
            f"in {op.week_numbers.describe()}"
        )
    if isinstance(op, MoveWorkoutType):
        return (
            f"Move {op.workout_type} workouts to {get_day_name(op.to_day, week_starts_on)} "
            f"in {op.week_numbers.describe()}"
        )
    if isinstance(op, RescheduleWorkout):
        return f"Move workout {op.target_label} to {op.new_date}"
    if isinstance(op, ChangeWorkoutType):
        return f"Change workout {op.target_label} to {op.new_type}"
    if isinstance(op, ChangeWorkoutDistance):
        return f"Change workout {op.target_label} distance to {op.new_distance_meters / 1000:.1f}km"
    if isinstance(op, ScaleWorkoutDistance):
        return f"Scale workout {op.target_label} distance by {_percent(op.factor)}"
    if isinstance(op, ChangeIntensity):
        return f"Change workout {op.target_label} intensity to {op.new_intensity}"
    if isinstance(op, RemoveWorkoutType):
        return f"Replace {op.workout_type} with {op.replacement} in {op.week_numbers.describe()}"
    if isinstance(op, ScaleWeekVolume):
        return f"Scale week {op.week_number} volume by {_percent(op.factor)}"
    if isinstance(op, ScalePhaseVolume):
        return f"Scale {op.phase_name} phase volume by {_percent(op.factor)}"
    if isinstance(op, RequestFallback):
        return f"Regenerate plan: {op.reason}" if op.reason else "Regenerate plan"
    return "Unknown operation"
