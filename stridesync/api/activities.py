"""Activity reconciliation endpoints: merge review and workout matching."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stridesync.activities.errors import ActivityNotFoundError, MergeConflictError, WorkoutNotFoundError
from stridesync.activities.merge_review import approve_merge, list_merge_candidates, reject_merge
from stridesync.activities.workout_matcher import (
    MatchResult,
    manually_link_workout,
    match_activities_to_workouts,
    unlink_workout,
)
from stridesync.api.dependencies import get_athlete_id
from stridesync.db.models import Activity
from stridesync.db.session import get_db

router = APIRouter(prefix="/activities", tags=["activities"])


class ActivitySummary(BaseModel):
    id: int
    source: str
    activity_name: str | None
    activity_type: str | None
    start_time: str
    distance_meters: float | None
    duration_seconds: int | None
    garmin_id: str | None
    strava_id: str | None
    merge_status: str | None
    planned_workout_id: int | None


class MergeCandidateResponse(BaseModel):
    flag_id: int
    activity: ActivitySummary
    potential_match: ActivitySummary
    confidence: str | None
    confidence_score: float | None


class ApproveMergeRequest(BaseModel):
    keep_id: int
    absorb_id: int


class RejectMergeRequest(BaseModel):
    activity_id: int


class MatchRequest(BaseModel):
    start_date: date
    end_date: date


class LinkRequest(BaseModel):
    activity_id: int
    workout_id: int
    reason: str | None = None


class UnlinkRequest(BaseModel):
    activity_id: int


def _summary(activity: Activity) -> ActivitySummary:
    return ActivitySummary(
        id=activity.id,
        source=activity.source,
        activity_name=activity.activity_name,
        activity_type=activity.activity_type,
        start_time=activity.start_time.isoformat(),
        distance_meters=activity.distance_meters,
        duration_seconds=activity.duration_seconds,
        garmin_id=activity.garmin_id,
        strava_id=activity.strava_id,
        merge_status=activity.merge_status,
        planned_workout_id=activity.planned_workout_id,
    )


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/merge/candidates", response_model=list[MergeCandidateResponse])
def get_merge_candidates(
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    """List activities flagged as possible cross-platform duplicates."""
    pending = list_merge_candidates(session, athlete_id)
    return [
        MergeCandidateResponse(
            flag_id=p.flag_id,
            activity=_summary(p.activity),
            potential_match=_summary(p.potential_match),
            confidence=p.confidence,
            confidence_score=p.confidence_score,
        )
        for p in pending
    ]


@router.post("/merge/approve", response_model=ActivitySummary)
def post_approve_merge(
    request: ApproveMergeRequest,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    try:
        kept = approve_merge(session, athlete_id, request.keep_id, request.absorb_id)
    except ActivityNotFoundError as e:
        session.rollback()
        raise _not_found(e) from e
    except MergeConflictError as e:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    session.commit()
    return _summary(kept)


@router.post("/merge/reject", response_model=ActivitySummary)
def post_reject_merge(
    request: RejectMergeRequest,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    try:
        activity = reject_merge(session, athlete_id, request.activity_id)
    except ActivityNotFoundError as e:
        session.rollback()
        raise _not_found(e) from e
    session.commit()
    return _summary(activity)


@router.post("/match", response_model=list[MatchResult])
def post_match_activities(
    request: MatchRequest,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    """Auto-match unlinked activities to planned workouts in a date range."""
    if request.end_date < request.start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date is before start_date")

    matches = match_activities_to_workouts(session, athlete_id, request.start_date, request.end_date)
    session.commit()
    logger.info(f"[ACTIVITIES] Matched {len(matches)} activities for athlete_id={athlete_id}")
    return matches


@router.post("/link", response_model=MatchResult)
def post_link_activity(
    request: LinkRequest,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    try:
        match = manually_link_workout(session, request.activity_id, request.workout_id, athlete_id, request.reason)
    except (ActivityNotFoundError, WorkoutNotFoundError) as e:
        session.rollback()
        raise _not_found(e) from e
    session.commit()
    return match


@router.post("/unlink")
def post_unlink_activity(
    request: UnlinkRequest,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
):
    try:
        unlinked = unlink_workout(session, request.activity_id, athlete_id)
    except ActivityNotFoundError as e:
        session.rollback()
        raise _not_found(e) from e
    session.commit()
    return {"activity_id": request.activity_id, "unlinked": unlinked}
