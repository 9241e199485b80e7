"""Plan operation types.

A closed vocabulary of deterministic edits to a training plan. LLM tool
calls and calendar actions both produce these; the engine validates,
previews and applies them. Field names are accepted in snake_case and in
the camelCase used by tool-calling providers.

All modifications are explicit and validated - no free-text mutation.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel


class AllWeeks(BaseModel):
    """Week selector covering every week of the plan."""

    model_config = ConfigDict(frozen=True)

    def describe(self) -> str:
        return "all weeks"


class SpecificWeeks(BaseModel):
    """Week selector listing explicit 1-indexed week numbers."""

    model_config = ConfigDict(frozen=True)

    weeks: tuple[int, ...]

    def describe(self) -> str:
        return f"weeks {', '.join(str(w) for w in self.weeks)}"


def _coerce_week_selector(value: Any) -> Any:
    if isinstance(value, (AllWeeks, SpecificWeeks)):
        return value
    if isinstance(value, str) and value.strip().lower() == "all":
        return AllWeeks()
    if isinstance(value, int) and not isinstance(value, bool):
        return SpecificWeeks(weeks=(value,))
    if isinstance(value, (list, tuple)):
        return SpecificWeeks(weeks=tuple(value))
    return value


def _serialize_week_selector(value: AllWeeks | SpecificWeeks) -> str | list[int]:
    if isinstance(value, AllWeeks):
        return "all"
    return list(value.weeks)


WeekSelector = Annotated[
    AllWeeks | SpecificWeeks,
    BeforeValidator(_coerce_week_selector),
    PlainSerializer(_serialize_week_selector),
]


class _Operation(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class _WorkoutTargetOperation(_Operation):
    """Operation on one workout, addressed by W#:D# index or by id."""

    workout_index: str | None = None
    workout_id: int | None = None

    @property
    def target_label(self) -> str:
        return self.workout_index or f"#{self.workout_id}"


class SwapDays(_Operation):
    op: Literal["swap_days"]
    week_numbers: WeekSelector
    day_a: int
    day_b: int


class MoveWorkoutType(_Operation):
    op: Literal["move_workout_type"]
    workout_type: str
    to_day: int
    week_numbers: WeekSelector


class RescheduleWorkout(_WorkoutTargetOperation):
    op: Literal["reschedule_workout"]
    new_date: str  # YYYY-MM-DD, checked by validation


class ChangeWorkoutType(_WorkoutTargetOperation):
    op: Literal["change_workout_type"]
    new_type: str
    new_description: str | None = None


class ChangeWorkoutDistance(_WorkoutTargetOperation):
    op: Literal["change_workout_distance"]
    new_distance_meters: float


class ScaleWorkoutDistance(_WorkoutTargetOperation):
    op: Literal["scale_workout_distance"]
    factor: float


class ChangeIntensity(_WorkoutTargetOperation):
    op: Literal["change_intensity"]
    new_intensity: str


class RemoveWorkoutType(_Operation):
    op: Literal["remove_workout_type"]
    workout_type: str
    replacement: str
    week_numbers: WeekSelector


class ScaleWeekVolume(_Operation):
    op: Literal["scale_week_volume"]
    week_number: int
    factor: float


class ScalePhaseVolume(_Operation):
    op: Literal["scale_phase_volume"]
    phase_name: str
    factor: float


class RequestFallback(_Operation):
    """Not an edit: the request needs a full-plan regeneration instead."""

    op: Literal["request_fallback"]
    reason: str = ""


PlanOperation = Annotated[
    SwapDays
    | MoveWorkoutType
    | RescheduleWorkout
    | ChangeWorkoutType
    | ChangeWorkoutDistance
    | ScaleWorkoutDistance
    | ChangeIntensity
    | RemoveWorkoutType
    | ScaleWeekVolume
    | ScalePhaseVolume
    | RequestFallback,
    Field(discriminator="op"),
]

WorkoutTargetOperation = (
    RescheduleWorkout | ChangeWorkoutType | ChangeWorkoutDistance | ScaleWorkoutDistance | ChangeIntensity
)
ScaleOperation = ScaleWorkoutDistance | ScaleWeekVolume | ScalePhaseVolume

_operations_adapter: TypeAdapter[list[PlanOperation]] = TypeAdapter(list[PlanOperation])


class FallbackRequest(BaseModel):
    """LLM response asking for full regeneration instead of operations."""

    fallback: Literal[True] = True
    reason: str


def parse_operations(payload: Any) -> list[PlanOperation] | FallbackRequest:
    """Parse raw JSON into operations.

    Accepts a list of operations, {"operations": [...]} or
    {"fallback": true, "reason": "..."}.

    Raises:
        pydantic.ValidationError: If an operation is malformed or of unknown type
    """
    if isinstance(payload, dict):
        if payload.get("fallback") is True:
            return FallbackRequest(reason=str(payload.get("reason") or ""))
        payload = payload.get("operations", [])
    return _operations_adapter.validate_python(payload)


def find_fallback(operations: list[PlanOperation]) -> RequestFallback | None:
    for operation in operations:
        if isinstance(operation, RequestFallback):
            return operation
    return None


def dump_operation(operation: PlanOperation) -> dict[str, Any]:
    """Serialize an operation in the camelCase form tool-calling providers use."""
    return operation.model_dump(by_alias=True, exclude_none=True)


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class WorkoutState(BaseModel):
    scheduled_date: date
    workout_type: str
    description: str
    distance_km: float | None = None
    intensity_target: str = ""


class AffectedWorkout(BaseModel):
    workout_id: int
    week_number: int
    day: int
    before: WorkoutState
    after: WorkoutState


class OperationPreview(BaseModel):
    operation: PlanOperation
    description: str
    affected_workouts: list[AffectedWorkout] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ApplyResult(BaseModel):
    """Outcome of applying a batch.

    operations_applied counts operations fully written before any failure;
    workouts_modified counts distinct workouts written.
    """

    success: bool
    operations_applied: int = 0
    workouts_modified: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    fallback_reason: str | None = None
