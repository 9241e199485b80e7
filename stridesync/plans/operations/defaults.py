"""Derived fields for a workout whose type changes.

Changing a workout's type without touching its description or intensity
leaves stale text like "Tempo run" on an easy day, so type changes carry
these defaults unless the caller supplies an explicit description.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

METERS_PER_MILE = 1609.34

VALID_WORKOUT_TYPES: frozenset[str] = frozenset(
    {
        "rest",
        "recovery",
        "easy",
        "easy_run",
        "long_run",
        "progression",
        "tempo",
        "intervals",
        "speed",
        "race",
        "cross_training",
    }
)

HARD_WORKOUT_TYPES: frozenset[str] = frozenset({"tempo", "intervals", "speed", "race", "long_run"})

VALID_INTENSITIES: frozenset[str] = frozenset({"easy", "moderate", "hard"})

# Sentinel: the workout keeps its current value for this field
_KEEP = object()


@dataclass(frozen=True)
class WorkoutTypeDefaults:
    description: str
    intensity_target: str | None = None
    distance_target_meters: int | None | object = _KEEP
    duration_target_seconds: int | None | object = _KEEP

    def field_updates(self) -> dict[str, object]:
        """Fields to write, leaving out the ones the type keeps."""
        updates: dict[str, object] = {"description": self.description}
        if self.intensity_target is not None:
            updates["intensity_target"] = self.intensity_target
        if self.distance_target_meters is not _KEEP:
            updates["distance_target_meters"] = self.distance_target_meters
        if self.duration_target_seconds is not _KEEP:
            updates["duration_target_seconds"] = self.duration_target_seconds
        return updates


def round_half_up(value: float) -> int:
    """Round to whole meters, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def get_workout_type_defaults(new_type: str, current_distance_meters: int | None = None) -> WorkoutTypeDefaults:
    if new_type == "race":
        if current_distance_meters:
            return WorkoutTypeDefaults(f"{current_distance_meters / METERS_PER_MILE:.1f} mile race", "hard")
        return WorkoutTypeDefaults("Race", "hard")
    if new_type == "long_run":
        return WorkoutTypeDefaults("Long run", "moderate")
    if new_type == "tempo":
        return WorkoutTypeDefaults("Tempo run", "hard")
    if new_type in ("intervals", "speed"):
        return WorkoutTypeDefaults("Interval training", "hard")
    if new_type in ("easy_run", "easy"):
        return WorkoutTypeDefaults("Easy run", "easy")
    if new_type == "rest":
        return WorkoutTypeDefaults("Rest day", "easy", distance_target_meters=0, duration_target_seconds=None)
    if new_type == "recovery":
        return WorkoutTypeDefaults("Recovery", "easy")
    if new_type == "progression":
        return WorkoutTypeDefaults("Progression run", "moderate")
    if new_type == "cross_training":
        return WorkoutTypeDefaults("Cross training", "easy")
    return WorkoutTypeDefaults(new_type)
