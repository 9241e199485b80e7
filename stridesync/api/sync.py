"""Activity sync endpoint."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stridesync.api.dependencies import get_athlete_id
from stridesync.config.settings import settings
from stridesync.db.session import get_db
from stridesync.ingestion.bridge import BridgeClient, BridgeError
from stridesync.ingestion.sync import ActivityFetcher, sync_activities

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncRequest(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    limit: int | None = Field(default=None, ge=1)


class SyncResponse(BaseModel):
    success: bool
    message: str
    synced: int
    merged: int
    pending_review: int
    updated: int


def get_bridge() -> ActivityFetcher:
    return BridgeClient()


@router.post("/{source}", response_model=SyncResponse)
def post_sync(
    source: Literal["garmin", "strava"],
    request: SyncRequest | None = None,
    athlete_id: str = Depends(get_athlete_id),
    session: Session = Depends(get_db),
    bridge: ActivityFetcher = Depends(get_bridge),
):
    """Pull activities from a bridge and reconcile them with stored ones.

    Defaults to the last SYNC_DEFAULT_LOOKBACK_DAYS days.
    """
    request = request or SyncRequest()
    end_date = request.end_date or date.today()
    start_date = request.start_date or end_date - timedelta(days=settings.sync_default_lookback_days)
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date is before start_date")

    try:
        result = sync_activities(session, athlete_id, source, start_date, end_date, bridge, limit=request.limit)
    except BridgeError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    if not result.lock_acquired:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A sync is already running for athlete {athlete_id}",
        )

    return SyncResponse(
        success=True,
        message=f"{source.capitalize()} sync completed",
        synced=result.synced,
        merged=result.merged,
        pending_review=result.pending_review,
        updated=result.updated,
    )
