"""Workout matcher for linking completed activities to planned workouts.

Pairing rules:
- Same athlete, same calendar day (hard prerequisite)
- One workout that day → accept when confidence > 0.6 (auto_time)
- Several workouts that day → best confidence above 0.75 (auto_distance)
- A workout matched in a pass is removed from the pool for the rest of that pass

The link is bidirectional (activity.planned_workout_id ↔
workout.completed_activity_id). link_activity_to_workout and
unlink_workout are the only functions allowed to write either side.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from stridesync.activities.errors import ActivityNotFoundError, WorkoutNotFoundError
from stridesync.activities.normalize import normalize_activity_type
from stridesync.activities.scoring import (
    activity_day,
    distance_variance_percent,
    duration_variance_percent,
    score_activity_workout,
)
from stridesync.db.models import Activity, PlannedWorkout

SINGLE_WORKOUT_THRESHOLD = 0.6
MULTIPLE_WORKOUT_THRESHOLD = 0.75

COMPLETED_TOLERANCE_PERCENT = 20.0
PARTIAL_TOLERANCE_PERCENT = 50.0

MatchMethod = Literal["auto_time", "auto_distance", "manual"]
CompletionStatus = Literal["completed", "partial", "skipped"]


class MatchResult(BaseModel):
    """A decided activity → workout link.

    Attributes:
        activity_id: Linked activity
        workout_id: Linked planned workout
        confidence: 0.0-1.0 (1.0 for manual links)
        method: auto_time, auto_distance or manual
        metadata: Variances and the reason for manual links
    """

    activity_id: int
    workout_id: int
    confidence: float
    method: MatchMethod
    metadata: dict[str, float | str | None] = Field(default_factory=dict)


def classify_completion(activity: Activity, workout: PlannedWorkout) -> CompletionStatus:
    """Classify how completely an activity fulfilled its workout.

    Both distance and duration within 20% → completed; either within 50% →
    partial; otherwise skipped. A missing target counts as on target.
    """
    distance_diff = abs(distance_variance_percent(activity, workout))
    duration_diff = abs(duration_variance_percent(activity, workout))

    if distance_diff < COMPLETED_TOLERANCE_PERCENT and duration_diff < COMPLETED_TOLERANCE_PERCENT:
        return "completed"
    if distance_diff < PARTIAL_TOLERANCE_PERCENT or duration_diff < PARTIAL_TOLERANCE_PERCENT:
        return "partial"
    return "skipped"


def _variance_metadata(activity: Activity, workout: PlannedWorkout) -> dict[str, float | str | None]:
    return {
        "distance_diff_percent": round(distance_variance_percent(activity, workout), 2),
        "duration_diff_percent": round(duration_variance_percent(activity, workout), 2),
    }


def find_best_workout_match(
    activity: Activity,
    workouts: Sequence[PlannedWorkout],
) -> MatchResult | None:
    """Pick the planned workout a completed activity most likely fulfilled.

    Args:
        activity: Completed activity
        workouts: Candidate (unlinked) workouts

    Returns:
        MatchResult, or None when no same-day workout clears its threshold
    """
    if activity.start_time is None:
        return None

    day = activity_day(activity)
    same_day = [w for w in workouts if w.scheduled_date == day]
    if not same_day:
        return None

    normalized_type = normalize_activity_type(activity.activity_type, activity.raw_data)

    if len(same_day) == 1:
        workout = same_day[0]
        confidence = score_activity_workout(activity, workout, normalized_type)
        logger.debug(
            f"Single-workout day: activity_id={activity.id} workout_id={workout.id} "
            f"type={normalized_type}/{workout.workout_type} confidence={confidence:.2f}"
        )
        if confidence > SINGLE_WORKOUT_THRESHOLD:
            return MatchResult(
                activity_id=activity.id,
                workout_id=workout.id,
                confidence=confidence,
                method="auto_time",
                metadata=_variance_metadata(activity, workout),
            )
        return None

    best: MatchResult | None = None
    for workout in same_day:
        confidence = score_activity_workout(activity, workout, normalized_type)
        if confidence > MULTIPLE_WORKOUT_THRESHOLD and (best is None or confidence > best.confidence):
            best = MatchResult(
                activity_id=activity.id,
                workout_id=workout.id,
                confidence=confidence,
                method="auto_distance",
                metadata=_variance_metadata(activity, workout),
            )

    logger.debug(
        f"Multi-workout day: activity_id={activity.id} candidates={len(same_day)} "
        f"best={best.workout_id if best else None}"
    )
    return best


def _clear_workout_link(workout: PlannedWorkout) -> None:
    workout.completed_activity_id = None
    workout.completion_status = "pending"
    workout.completion_metadata = None


def _clear_activity_link(activity: Activity) -> None:
    activity.planned_workout_id = None
    activity.match_confidence = None
    activity.match_method = None
    activity.match_metadata = None


def link_activity_to_workout(
    session: Session,
    activity: Activity,
    workout: PlannedWorkout,
    match: MatchResult,
) -> CompletionStatus:
    """Link an activity and a workout on both sides.

    Any link either side already holds to a third record is cleared first so
    the relationship never ends up one-sided. Does not bump workout.version.

    Returns:
        Completion status written to the workout
    """
    if activity.planned_workout_id is not None and activity.planned_workout_id != workout.id:
        previous_workout = session.get(PlannedWorkout, activity.planned_workout_id)
        if previous_workout is not None:
            _clear_workout_link(previous_workout)

    if workout.completed_activity_id is not None and workout.completed_activity_id != activity.id:
        previous_activity = session.get(Activity, workout.completed_activity_id)
        if previous_activity is not None:
            _clear_activity_link(previous_activity)

    completion_status = classify_completion(activity, workout)

    activity.planned_workout_id = workout.id
    activity.match_confidence = match.confidence
    activity.match_method = match.method
    activity.match_metadata = dict(match.metadata)

    workout.completed_activity_id = activity.id
    workout.completion_status = completion_status
    workout.completion_metadata = {
        "actual_distance_meters": activity.distance_meters,
        "actual_duration_seconds": activity.duration_seconds,
        "distance_variance_percent": round(distance_variance_percent(activity, workout), 2),
        "duration_variance_percent": round(duration_variance_percent(activity, workout), 2),
    }

    session.flush()

    logger.info(
        f"Linked activity {activity.id} ↔ workout {workout.id} "
        f"(method={match.method}, confidence={match.confidence:.2f}, status={completion_status})"
    )
    return completion_status


def _day_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    return datetime.combine(start_date, time.min), datetime.combine(end_date, time.max)


def match_activities_to_workouts(
    session: Session,
    athlete_id: str,
    start_date: date,
    end_date: date,
) -> list[MatchResult]:
    """Match unlinked activities to unlinked workouts in a date range.

    Args:
        session: Database session (caller commits)
        athlete_id: Athlete whose records are matched
        start_date: First day of the range (inclusive)
        end_date: Last day of the range (inclusive)

    Returns:
        Accepted matches, in activity start order
    """
    range_start, range_end = _day_bounds(start_date, end_date)

    activities = list(
        session.scalars(
            select(Activity)
            .where(
                Activity.athlete_id == athlete_id,
                Activity.planned_workout_id.is_(None),
                Activity.start_time >= range_start,
                Activity.start_time <= range_end,
            )
            .order_by(Activity.start_time, Activity.id)
        ).all()
    )
    workouts = list(
        session.scalars(
            select(PlannedWorkout)
            .where(
                PlannedWorkout.athlete_id == athlete_id,
                PlannedWorkout.completed_activity_id.is_(None),
                PlannedWorkout.scheduled_date >= start_date,
                PlannedWorkout.scheduled_date <= end_date,
            )
            .order_by(PlannedWorkout.scheduled_date, PlannedWorkout.id)
        ).all()
    )

    logger.info(
        f"Matching {len(activities)} unlinked activities against {len(workouts)} open workouts "
        f"for athlete_id={athlete_id} ({start_date} → {end_date})"
    )

    matches: list[MatchResult] = []
    workouts_by_id = {w.id: w for w in workouts}
    matched_workout_ids: set[int] = set()

    for activity in activities:
        pool = [w for w in workouts if w.id not in matched_workout_ids]
        match = find_best_workout_match(activity, pool)
        if match is None:
            continue

        link_activity_to_workout(session, activity, workouts_by_id[match.workout_id], match)
        matched_workout_ids.add(match.workout_id)
        matches.append(match)

    logger.info(f"Auto-matched {len(matches)} activities for athlete_id={athlete_id}")
    return matches


def manually_link_workout(
    session: Session,
    activity_id: int,
    workout_id: int,
    athlete_id: str,
    reason: str | None = None,
) -> MatchResult:
    """Link an activity to a workout chosen by the athlete.

    Bypasses scoring: confidence is always 1.0 and method is "manual".

    Raises:
        ActivityNotFoundError: If the activity does not belong to the athlete
        WorkoutNotFoundError: If the workout does not belong to the athlete
    """
    activity = session.get(Activity, activity_id)
    if activity is None or activity.athlete_id != athlete_id:
        raise ActivityNotFoundError(activity_id)

    workout = session.get(PlannedWorkout, workout_id)
    if workout is None or workout.athlete_id != athlete_id:
        raise WorkoutNotFoundError(workout_id)

    match = MatchResult(
        activity_id=activity.id,
        workout_id=workout.id,
        confidence=1.0,
        method="manual",
        metadata={"manual_link_reason": reason},
    )
    link_activity_to_workout(session, activity, workout, match)
    return match


def unlink_workout(session: Session, activity_id: int, athlete_id: str) -> bool:
    """Clear both sides of an activity's workout link.

    The workout goes back to "pending". Call before re-matching so stale links
    do not survive.

    Returns:
        True if a link was removed, False if the activity was not linked

    Raises:
        ActivityNotFoundError: If the activity does not belong to the athlete
    """
    activity = session.get(Activity, activity_id)
    if activity is None or activity.athlete_id != athlete_id:
        raise ActivityNotFoundError(activity_id)

    if activity.planned_workout_id is None:
        return False

    workout = session.get(PlannedWorkout, activity.planned_workout_id)
    if workout is not None:
        _clear_workout_link(workout)
    _clear_activity_link(activity)
    session.flush()

    logger.info(f"Unlinked activity {activity_id} from workout {workout.id if workout else None}")
    return True
