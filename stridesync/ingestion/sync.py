"""Activity sync orchestrator.

One sync pulls a date range from one bridge and reconciles every fetched
activity against what is already stored:

- known external id → updated in place
- high-confidence duplicate from the other platform → absorbed into the
  stored record (source becomes "merged")
- medium/low-confidence duplicate → inserted as pending_review with a
  merge_candidate flag for the athlete to decide
- otherwise → inserted as a new activity

The whole run holds the athlete's sync lock and commits once at the end.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from stridesync.activities.merge_detector import find_merge_candidates, should_auto_merge
from stridesync.activities.merge_review import record_merge_candidate
from stridesync.db.models import Activity, Athlete
from stridesync.ingestion.bridge import ActivitySource, BridgeActivity
from stridesync.ingestion.sync_lock import sync_lock

# Stored activities this far outside the requested range can still be duplicates
MERGE_SEARCH_MARGIN = timedelta(hours=12)


class ActivityFetcher(Protocol):
    def fetch_activities(self, source: ActivitySource, start_date: date, end_date: date) -> list[BridgeActivity]: ...


@dataclass
class SyncResult:
    synced: int = 0
    merged: int = 0
    pending_review: int = 0
    updated: int = 0
    lock_acquired: bool = True


def _external_id_column(source: ActivitySource):
    return Activity.garmin_id if source == "garmin" else Activity.strava_id


def _synced_field(source: ActivitySource) -> str:
    return "synced_from_garmin" if source == "garmin" else "synced_from_strava"


def ensure_athlete(session: Session, athlete_id: str) -> Athlete:
    athlete = session.get(Athlete, athlete_id)
    if athlete is None:
        logger.info(f"Creating athlete record for athlete_id={athlete_id}")
        athlete = Athlete(id=athlete_id)
        session.add(athlete)
        session.commit()
    return athlete


def _find_by_external_id(session: Session, athlete_id: str, source: ActivitySource, external_id: str) -> Activity | None:
    column = _external_id_column(source)
    return session.execute(
        select(Activity).where(Activity.athlete_id == athlete_id, column == external_id)
    ).scalar_one_or_none()


def _load_existing(session: Session, athlete_id: str, start_date: date, end_date: date) -> list[Activity]:
    window_start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) - MERGE_SEARCH_MARGIN
    window_end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc) + MERGE_SEARCH_MARGIN
    return list(
        session.execute(
            select(Activity)
            .where(
                Activity.athlete_id == athlete_id,
                Activity.start_time >= window_start,
                Activity.start_time < window_end,
            )
            .order_by(Activity.start_time, Activity.id)
        ).scalars()
    )


def _update_in_place(activity: Activity, incoming: BridgeActivity, synced_at: datetime) -> None:
    activity.activity_name = incoming.activity_name or activity.activity_name
    activity.activity_type = incoming.activity_type or activity.activity_type
    activity.start_time = incoming.start_time
    if incoming.distance_meters is not None:
        activity.distance_meters = incoming.distance_meters
    if incoming.duration_seconds is not None:
        activity.duration_seconds = incoming.duration_seconds
    activity.raw_data = incoming.raw
    setattr(activity, _synced_field(incoming.source), synced_at)


def _absorb(existing: Activity, incoming: BridgeActivity, synced_at: datetime) -> None:
    setattr(existing, _external_id_column(incoming.source).key, incoming.external_id)
    setattr(existing, _synced_field(incoming.source), synced_at)
    existing.source = "merged"
    existing.merge_status = "merged"
    if existing.distance_meters is None:
        existing.distance_meters = incoming.distance_meters
    if existing.duration_seconds is None:
        existing.duration_seconds = incoming.duration_seconds
    if not existing.activity_name:
        existing.activity_name = incoming.activity_name


def _to_activity(athlete_id: str, incoming: BridgeActivity, synced_at: datetime) -> Activity:
    activity = Activity(
        athlete_id=athlete_id,
        source=incoming.source,
        activity_name=incoming.activity_name,
        activity_type=incoming.activity_type,
        start_time=incoming.start_time,
        distance_meters=incoming.distance_meters,
        duration_seconds=incoming.duration_seconds,
        raw_data=incoming.raw,
    )
    setattr(activity, _external_id_column(incoming.source).key, incoming.external_id)
    setattr(activity, _synced_field(incoming.source), synced_at)
    return activity


def sync_activities(
    session: Session,
    athlete_id: str,
    source: ActivitySource,
    start_date: date,
    end_date: date,
    bridge: ActivityFetcher,
    limit: int | None = None,
) -> SyncResult:
    """Fetch one source's activities and reconcile them with stored ones.

    Args:
        session: Database session (committed by this function)
        athlete_id: Athlete to sync
        source: "garmin" or "strava"
        start_date: First day of the range (inclusive)
        end_date: Last day of the range (inclusive)
        bridge: Activity fetcher, normally a BridgeClient
        limit: Process at most this many fetched activities

    Returns:
        SyncResult with lock_acquired=False when another sync holds the lock

    Raises:
        BridgeError: If the bridge fetch fails (nothing is written)
    """
    log = logger.bind(athlete_id=athlete_id)
    ensure_athlete(session, athlete_id)

    with sync_lock(session, athlete_id) as acquired:
        if not acquired:
            log.info(f"Sync already running, skipping {source} sync")
            return SyncResult(lock_acquired=False)

        fetched = bridge.fetch_activities(source, start_date, end_date)
        to_process = fetched[:limit] if limit else fetched
        log.info(
            f"Syncing {len(to_process)}/{len(fetched)} {source} activities "
            f"({start_date} to {end_date}, limit: {limit or 'none'})"
        )

        existing = _load_existing(session, athlete_id, start_date, end_date)
        synced_at = datetime.now(timezone.utc)
        result = SyncResult()

        for incoming in to_process:
            known = _find_by_external_id(session, athlete_id, source, incoming.external_id)
            if known is not None:
                _update_in_place(known, incoming, synced_at)
                result.updated += 1
                result.synced += 1
                continue

            candidate_activity = _to_activity(athlete_id, incoming, synced_at)
            candidate = find_merge_candidates(candidate_activity, existing)

            if candidate is not None and should_auto_merge(candidate):
                _absorb(candidate.activity2, incoming, synced_at)
                session.flush()
                log.info(
                    f"Auto-merged {source} activity {incoming.external_id} into activity {candidate.activity2.id} "
                    f"(score={candidate.confidence_score:.1f})"
                )
                result.merged += 1
                result.synced += 1
                continue

            if candidate is not None:
                candidate_activity.merge_status = "pending_review"
                candidate_activity.confidence_score = candidate.confidence_score

            session.add(candidate_activity)
            session.flush()
            existing.append(candidate_activity)
            result.synced += 1

            if candidate is not None:
                record_merge_candidate(session, candidate_activity, candidate)
                result.pending_review += 1
                log.info(
                    f"Flagged {source} activity {candidate_activity.id} for merge review with activity "
                    f"{candidate.activity2.id} ({candidate.confidence}, score={candidate.confidence_score:.1f})"
                )

        session.commit()

    log.info(
        f"{source} sync complete: synced={result.synced} merged={result.merged} "
        f"pending_review={result.pending_review} updated={result.updated}"
    )
    return result
