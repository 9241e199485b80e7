"""Manual review of cross-platform merge candidates.

Lower-than-high confidence duplicates are stored side by side with a
merge_candidate flag. The athlete then either approves the merge (the second
record is folded into the first and deleted) or keeps both.

Approve and reject are idempotent: repeating either on an already-resolved
pair is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from stridesync.activities.errors import ActivityNotFoundError, MergeConflictError
from stridesync.activities.merge_detector import MergeCandidate
from stridesync.activities.workout_matcher import MatchResult, link_activity_to_workout, unlink_workout
from stridesync.db.models import Activity, PlannedWorkout, WorkoutFlag

MERGE_CANDIDATE_FLAG = "merge_candidate"


@dataclass(frozen=True)
class PendingMerge:
    """A flagged pair awaiting the athlete's decision."""

    flag_id: int
    activity: Activity
    potential_match: Activity
    confidence: str | None
    confidence_score: float | None


def record_merge_candidate(session: Session, activity: Activity, candidate: MergeCandidate) -> WorkoutFlag:
    """Flag a freshly inserted activity as a possible duplicate of a stored one."""
    flag = WorkoutFlag(
        athlete_id=activity.athlete_id,
        activity_id=activity.id,
        flag_type=MERGE_CANDIDATE_FLAG,
        severity="info",
        flag_data={
            "potential_match_id": candidate.activity2.id,
            "confidence": candidate.confidence,
            "confidence_score": round(candidate.confidence_score, 2),
        },
    )
    session.add(flag)
    session.flush()
    return flag


def list_merge_candidates(session: Session, athlete_id: str) -> list[PendingMerge]:
    """List unresolved merge candidates for an athlete, oldest first.

    Flags whose activities have since been deleted are skipped.
    """
    flags = session.scalars(
        select(WorkoutFlag)
        .where(
            WorkoutFlag.athlete_id == athlete_id,
            WorkoutFlag.flag_type == MERGE_CANDIDATE_FLAG,
        )
        .order_by(WorkoutFlag.created_at, WorkoutFlag.id)
    ).all()

    pending: list[PendingMerge] = []
    for flag in flags:
        flag_data = flag.flag_data or {}
        activity = session.get(Activity, flag.activity_id) if flag.activity_id is not None else None
        match_id = flag_data.get("potential_match_id")
        potential_match = session.get(Activity, match_id) if match_id is not None else None
        if activity is None or potential_match is None:
            logger.debug(f"Skipping orphaned merge flag {flag.id} for athlete_id={athlete_id}")
            continue
        pending.append(
            PendingMerge(
                flag_id=flag.id,
                activity=activity,
                potential_match=potential_match,
                confidence=flag_data.get("confidence"),
                confidence_score=flag_data.get("confidence_score"),
            )
        )
    return pending


def _get_owned_activity(session: Session, athlete_id: str, activity_id: int) -> Activity | None:
    activity = session.get(Activity, activity_id)
    if activity is None or activity.athlete_id != athlete_id:
        return None
    return activity


def _clear_merge_flags(session: Session, activity_ids: list[int]) -> None:
    session.execute(
        delete(WorkoutFlag).where(
            WorkoutFlag.flag_type == MERGE_CANDIDATE_FLAG,
            WorkoutFlag.activity_id.in_(activity_ids),
        )
    )


def _check_conflict(keep_value: str | None, absorb_value: str | None, field: str) -> None:
    if keep_value and absorb_value and keep_value != absorb_value:
        raise MergeConflictError(f"Both activities carry a different {field} ({keep_value} vs {absorb_value})")


def approve_merge(session: Session, athlete_id: str, keep_id: int, absorb_id: int) -> Activity:
    """Fold the absorbed activity into the kept one and delete it.

    The kept record takes over the absorbed record's external ids, sync
    timestamps and workout link (if it has none of its own).

    Args:
        session: Database session (caller commits)
        athlete_id: Owner of both activities
        keep_id: Activity that survives
        absorb_id: Activity that is merged away

    Returns:
        The surviving activity

    Raises:
        ActivityNotFoundError: If keep_id is unknown, or absorb_id is unknown
            and keep_id was never merged
        MergeConflictError: If both records carry different ids for one platform
    """
    keep = _get_owned_activity(session, athlete_id, keep_id)
    if keep is None:
        raise ActivityNotFoundError(keep_id)

    absorb = _get_owned_activity(session, athlete_id, absorb_id)
    if absorb is None:
        if keep.merge_status == "merged":
            logger.info(f"Merge {keep_id} ← {absorb_id} already approved, nothing to do")
            return keep
        raise ActivityNotFoundError(absorb_id)

    if keep.id == absorb.id:
        raise MergeConflictError("Cannot merge an activity with itself")

    _check_conflict(keep.garmin_id, absorb.garmin_id, "garmin_id")
    _check_conflict(keep.strava_id, absorb.strava_id, "strava_id")

    if absorb.planned_workout_id is not None:
        if keep.planned_workout_id is None:
            workout = session.get(PlannedWorkout, absorb.planned_workout_id)
            if workout is not None:
                link_activity_to_workout(
                    session,
                    keep,
                    workout,
                    MatchResult(
                        activity_id=keep.id,
                        workout_id=workout.id,
                        confidence=absorb.match_confidence if absorb.match_confidence is not None else 1.0,
                        method=absorb.match_method or "manual",
                        metadata=dict(absorb.match_metadata or {}),
                    ),
                )
        else:
            unlink_workout(session, absorb.id, athlete_id)

    garmin_id = keep.garmin_id or absorb.garmin_id
    strava_id = keep.strava_id or absorb.strava_id
    synced_from_garmin = keep.synced_from_garmin or absorb.synced_from_garmin
    synced_from_strava = keep.synced_from_strava or absorb.synced_from_strava

    _clear_merge_flags(session, [keep.id, absorb.id])
    # Delete first: the unique (athlete_id, *_id) constraints forbid two rows holding the same id
    session.delete(absorb)
    session.flush()

    keep.garmin_id = garmin_id
    keep.strava_id = strava_id
    keep.synced_from_garmin = synced_from_garmin
    keep.synced_from_strava = synced_from_strava
    keep.source = "merged"
    keep.merge_status = "merged"
    session.flush()

    logger.info(f"Approved merge for athlete_id={athlete_id}: kept {keep_id}, absorbed {absorb_id}")
    return keep


def reject_merge(session: Session, athlete_id: str, activity_id: int) -> Activity:
    """Keep a flagged activity as a separate record and drop its merge flags.

    Raises:
        ActivityNotFoundError: If the activity does not belong to the athlete
    """
    activity = _get_owned_activity(session, athlete_id, activity_id)
    if activity is None:
        raise ActivityNotFoundError(activity_id)

    activity.merge_status = "kept_separate"
    _clear_merge_flags(session, [activity.id])
    session.flush()

    logger.info(f"Rejected merge for activity {activity_id} (athlete_id={athlete_id})")
    return activity
