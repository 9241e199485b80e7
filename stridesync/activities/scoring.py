"""Confidence scoring for activity reconciliation.

Two scorers live here:
- activity ↔ activity (0-100): are two records from different platforms the
  same real-world session?
- activity ↔ planned workout (0.0-1.0): does a completed activity satisfy a
  workout planned for the same day?

Both are pure functions over already-loaded records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

from stridesync.activities.normalize import is_running_type, normalize_activity_type
from stridesync.db.models import Activity, PlannedWorkout

# Activity ↔ activity
TIME_PENALTY_PER_MINUTE = 0.1  # soft: cross-platform timestamps can carry timezone skew
MAX_TIME_PENALTY = 20.0
DISTANCE_PENALTY_PER_PERCENT = 20.0
DATE_ONLY_DISTANCE_PENALTY_PER_PERCENT = 10.0
DURATION_PENALTY_PER_PERCENT = 10.0
PRECISE_WINDOW_MINUTES = 12 * 60
DATE_ONLY_WINDOW_MINUTES = 24 * 60

# Activity ↔ planned workout
SAME_DAY_BASE_SCORE = 0.5
EXACT_TYPE_BONUS = 0.3
SAME_FAMILY_TYPE_BONUS = 0.15
DISTANCE_CLOSE_BONUS = 0.2  # within 10%
DISTANCE_NEAR_BONUS = 0.1  # within 20%
DURATION_BONUS = 0.1  # within 15%


@dataclass(frozen=True)
class PairScore:
    """Similarity between two activity records.

    Attributes:
        score: Confidence score 0-100
        time_diff_minutes: Absolute start-time difference in minutes
        distance_diff_percent: Absolute distance difference relative to the existing record
        duration_diff_percent: Absolute duration difference (0 when either side lacks a duration)
        date_only: True when either timestamp carries no time of day
    """

    score: float
    time_diff_minutes: float
    distance_diff_percent: float
    duration_diff_percent: float
    date_only: bool


def as_utc(ts: datetime) -> datetime:
    """Treat naive timestamps as UTC so mixed-source values compare."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def is_date_only(ts: datetime) -> bool:
    """True when a timestamp has no time-of-day component (coarse import artifact)."""
    return ts.hour == 0 and ts.minute == 0 and ts.second == 0 and ts.microsecond == 0


def _relative_diff_percent(new_value: float | None, existing_value: float | None) -> float:
    new_value = new_value or 0
    existing_value = existing_value or 0
    # Two non-distance activities (strength, yoga) are equivalent on this axis
    if new_value == 0 and existing_value == 0:
        return 0.0
    if existing_value == 0:
        return 100.0
    return abs(new_value - existing_value) / existing_value * 100


def score_activity_pair(new: Activity, existing: Activity) -> PairScore | None:
    """Score how likely two activity records describe the same session.

    Args:
        new: Incoming activity
        existing: Stored activity it is compared against

    Returns:
        PairScore, or None when the two start times are too far apart to compare
        (12 hours for precise timestamps, 24 hours when either side is date-only)
    """
    date_only = is_date_only(new.start_time) or is_date_only(existing.start_time)
    time_diff_minutes = abs((as_utc(new.start_time) - as_utc(existing.start_time)).total_seconds()) / 60

    window = DATE_ONLY_WINDOW_MINUTES if date_only else PRECISE_WINDOW_MINUTES
    if time_diff_minutes > window:
        return None

    distance_diff = _relative_diff_percent(new.distance_meters, existing.distance_meters)

    has_durations = bool(new.duration_seconds) and bool(existing.duration_seconds)
    duration_diff = _relative_diff_percent(new.duration_seconds, existing.duration_seconds) if has_durations else 0.0

    score = 100.0
    if date_only:
        score -= distance_diff * DATE_ONLY_DISTANCE_PENALTY_PER_PERCENT
    else:
        score -= min(time_diff_minutes * TIME_PENALTY_PER_MINUTE, MAX_TIME_PENALTY)
        score -= distance_diff * DISTANCE_PENALTY_PER_PERCENT
    if has_durations:
        score -= duration_diff * DURATION_PENALTY_PER_PERCENT

    return PairScore(
        score=max(0.0, min(100.0, score)),
        time_diff_minutes=time_diff_minutes,
        distance_diff_percent=distance_diff,
        duration_diff_percent=duration_diff,
        date_only=date_only,
    )


def activity_day(activity: Activity) -> date:
    return activity.start_time.date()


def distance_variance_percent(activity: Activity, workout: PlannedWorkout) -> float:
    """Signed actual-vs-target distance difference in percent (0 when either is missing)."""
    if not activity.distance_meters or not workout.distance_target_meters:
        return 0.0
    diff = activity.distance_meters - workout.distance_target_meters
    return diff / workout.distance_target_meters * 100


def duration_variance_percent(activity: Activity, workout: PlannedWorkout) -> float:
    """Signed actual-vs-target duration difference in percent (0 when either is missing)."""
    if not activity.duration_seconds or not workout.duration_target_seconds:
        return 0.0
    diff = activity.duration_seconds - workout.duration_target_seconds
    return diff / workout.duration_target_seconds * 100


def score_activity_workout(
    activity: Activity,
    workout: PlannedWorkout,
    normalized_type: str | None = None,
) -> float:
    """Score how well a completed activity satisfies a planned workout.

    Same calendar day is a hard prerequisite: a workout on another day scores 0.

    Args:
        activity: Completed activity
        workout: Planned workout
        normalized_type: Pre-normalized activity type; computed from the
            activity's raw type and source payload when omitted

    Returns:
        Confidence in [0.0, 1.0]
    """
    if activity_day(activity) != workout.scheduled_date:
        return 0.0

    if normalized_type is None:
        normalized_type = normalize_activity_type(activity.activity_type, activity.raw_data)

    score = SAME_DAY_BASE_SCORE

    if normalized_type == workout.workout_type:
        score += EXACT_TYPE_BONUS
    elif is_running_type(normalized_type) and is_running_type(workout.workout_type):
        score += SAME_FAMILY_TYPE_BONUS

    if activity.distance_meters and workout.distance_target_meters:
        distance_ratio = abs(distance_variance_percent(activity, workout)) / 100
        if distance_ratio < 0.1:
            score += DISTANCE_CLOSE_BONUS
        elif distance_ratio < 0.2:
            score += DISTANCE_NEAR_BONUS

    if activity.duration_seconds and workout.duration_target_seconds:
        duration_ratio = abs(duration_variance_percent(activity, workout)) / 100
        if duration_ratio < 0.15:
            score += DURATION_BONUS

    return max(0.0, min(1.0, score))
