"""Activity type normalization.

Maps raw Garmin/Strava activity types onto planned workout types so a
completed activity can be compared with a planned one.
"""

from __future__ import annotations

from typing import Any

RUNNING_WORKOUT_TYPES: frozenset[str] = frozenset(
    {"easy_run", "long_run", "intervals", "tempo", "recovery", "race"}
)

_TYPE_MAP: dict[str, str] = {
    # Running variations
    "run": "easy_run",
    "running": "easy_run",
    "street_running": "easy_run",
    "track_running": "intervals",
    "trail_running": "easy_run",
    "treadmill_running": "easy_run",
    "virtualrun": "easy_run",
    "easy run": "easy_run",
    "easy": "easy_run",
    "long run": "long_run",
    "long": "long_run",
    "tempo": "tempo",
    "tempo run": "tempo",
    "threshold": "tempo",
    "interval": "intervals",
    "intervals": "intervals",
    "speed": "intervals",
    "workout": "intervals",
    "race": "race",
    "race pace": "race",
    "recovery": "recovery",
    "recovery run": "recovery",
    # Cross-training
    "ride": "cross_training",
    "cycling": "cross_training",
    "bike": "cross_training",
    "biking": "cross_training",
    "virtualride": "cross_training",
    "swim": "cross_training",
    "swimming": "cross_training",
    "lap_swimming": "cross_training",
    "pool swim": "cross_training",
    "open water swim": "cross_training",
    "elliptical": "cross_training",
    "yoga": "cross_training",
    "pilates": "cross_training",
    # Strength
    "strength": "strength",
    "strength_training": "strength",
    "strength training": "strength",
    "weighttraining": "strength",
    "weight training": "strength",
    "weights": "strength",
    "gym": "strength",
    # Rest
    "rest": "rest",
    "rest day": "rest",
}

# Strava run "workout_type" field
_STRAVA_RUN_WORKOUT_TYPES: dict[int, str] = {
    1: "race",
    2: "long_run",
    3: "intervals",
}


def _raw_type_key(raw_type: Any) -> str | None:
    # Garmin bridges sometimes return {"typeKey": "running", ...}
    if isinstance(raw_type, dict):
        raw_type = raw_type.get("typeKey") or raw_type.get("type")
    if not raw_type:
        return None
    return str(raw_type).lower().strip()


def normalize_activity_type(raw_type: Any, metadata: dict[str, Any] | None = None) -> str:
    """Normalize a raw activity type to a planned workout type.

    Args:
        raw_type: Source activity type ("Run", "running", {"typeKey": ...})
        metadata: Source-specific payload; a Strava run's workout_type
            (1 race, 2 long run, 3 workout) refines a generic run

    Returns:
        Canonical workout type, or "default" when the type is unknown
    """
    key = _raw_type_key(raw_type)
    if key is None:
        return "default"

    normalized = _TYPE_MAP.get(key, "default")

    if normalized == "easy_run" and metadata:
        strava_workout_type = metadata.get("workout_type")
        if isinstance(strava_workout_type, int) and strava_workout_type in _STRAVA_RUN_WORKOUT_TYPES:
            return _STRAVA_RUN_WORKOUT_TYPES[strava_workout_type]

    return normalized


def is_running_type(workout_type: str | None) -> bool:
    return workout_type in RUNNING_WORKOUT_TYPES
