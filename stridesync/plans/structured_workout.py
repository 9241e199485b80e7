"""Structured workout payloads.

Simple workouts (easy, recovery, long run, rest, cross training) carry pace
guidance and notes only. Interval-family workouts additionally carry a
warmup, a main set of repeated intervals and a cooldown.

Payloads are validated here, at the boundary, so the rest of the code never
has to guess the JSON shape.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Discriminator, Field, Tag, TypeAdapter

STRUCTURED_WORKOUT_TYPES: frozenset[str] = frozenset({"intervals", "tempo", "speed", "race", "progression"})


class WorkoutSegment(BaseModel):
    """Warmup or cooldown block."""

    duration_minutes: int = Field(ge=0)
    intensity: str = "easy"


class Interval(BaseModel):
    distance_meters: int | None = Field(default=None, ge=0)
    duration_seconds: int | None = Field(default=None, ge=0)
    intensity: str


class IntervalSet(BaseModel):
    """One main-set block: `repeat` × the listed intervals."""

    repeat: int = Field(default=1, ge=1)
    intervals: list[Interval] = Field(min_length=1)


class SimpleWorkoutDetail(BaseModel):
    pace_guidance: str | None = None
    notes: str | None = None


class StructuredWorkoutDetail(BaseModel):
    warmup: WorkoutSegment | None = None
    main_set: list[IntervalSet]
    cooldown: WorkoutSegment | None = None
    pace_guidance: str | None = None
    notes: str | None = None


def _detail_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "structured" if "main_set" in value else "simple"
    return "structured" if isinstance(value, StructuredWorkoutDetail) else "simple"


WorkoutDetail = Annotated[
    Annotated[StructuredWorkoutDetail, Tag("structured")] | Annotated[SimpleWorkoutDetail, Tag("simple")],
    Discriminator(_detail_kind),
]

_detail_adapter: TypeAdapter[StructuredWorkoutDetail | SimpleWorkoutDetail] = TypeAdapter(WorkoutDetail)


def parse_structured_workout(
    workout_type: str,
    payload: dict[str, Any] | None,
) -> StructuredWorkoutDetail | SimpleWorkoutDetail | None:
    """Validate a stored structured_workout payload.

    Interval-family types without a main_set fall back to the simple form
    (older plans were generated before main sets existed).

    Raises:
        pydantic.ValidationError: If the payload does not match either form
    """
    if payload is None:
        return None
    detail = _detail_adapter.validate_python(payload)
    if isinstance(detail, StructuredWorkoutDetail) and workout_type not in STRUCTURED_WORKOUT_TYPES:
        # Simple types never carry a main set; keep guidance and notes only
        return SimpleWorkoutDetail(pace_guidance=detail.pace_guidance, notes=detail.notes)
    return detail


def build_structured_workout(
    workout_type: str,
    distance_meters: int | None = None,
    intensity: str | None = None,
    pace_guidance: str | None = None,
    notes: str | None = None,
    main_set: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build the stored structured_workout payload for a workout.

    Warmup and cooldown are fixed per type; only interval main sets come
    from the caller. Tempo main sets are derived from the total distance.
    """
    if workout_type == "intervals":
        detail: StructuredWorkoutDetail | SimpleWorkoutDetail = StructuredWorkoutDetail(
            warmup=WorkoutSegment(duration_minutes=15),
            main_set=[IntervalSet.model_validate(block) for block in main_set or []],
            cooldown=WorkoutSegment(duration_minutes=10),
            pace_guidance=pace_guidance,
            notes=notes,
        )
    elif workout_type == "tempo":
        detail = StructuredWorkoutDetail(
            warmup=WorkoutSegment(duration_minutes=10),
            main_set=[
                IntervalSet(
                    repeat=1,
                    intervals=[
                        Interval(
                            distance_meters=distance_meters or 0,
                            intensity="marathon" if intensity == "marathon" else "tempo",
                        )
                    ],
                )
            ],
            cooldown=WorkoutSegment(duration_minutes=10),
            pace_guidance=pace_guidance,
            notes=notes,
        )
    else:
        detail = SimpleWorkoutDetail(pace_guidance=pace_guidance, notes=notes)

    return detail.model_dump(mode="json")


def describe_main_set(detail: StructuredWorkoutDetail) -> str:
    """Render a main set compactly, e.g. "3 × (3219m hard / 800m recovery)"."""
    parts: list[str] = []
    for block in detail.main_set:
        steps = " / ".join(
            f"{step.distance_meters}m {step.intensity}"
            if step.distance_meters is not None
            else f"{step.duration_seconds or 0}s {step.intensity}"
            for step in block.intervals
        )
        parts.append(f"{block.repeat} × ({steps})" if block.repeat > 1 else steps)
    return ", ".join(parts)
