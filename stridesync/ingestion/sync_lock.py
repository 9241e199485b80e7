"""Per-athlete sync lock.

At most one sync runs per athlete. The lock is a timestamp on the athlete
row set with a conditional UPDATE, so two workers racing for it cannot both
win. A lock older than SYNC_LOCK_TIMEOUT_MINUTES is treated as abandoned.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from stridesync.config.settings import settings
from stridesync.db.models import Athlete


def acquire_sync_lock(session: Session, athlete_id: str, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    stale_before = now - timedelta(minutes=settings.sync_lock_timeout_minutes)

    result = session.execute(
        update(Athlete)
        .where(
            Athlete.id == athlete_id,
            or_(Athlete.sync_locked_at.is_(None), Athlete.sync_locked_at < stale_before),
        )
        .values(sync_locked_at=now)
        .execution_options(synchronize_session=False)
    )
    # Committed immediately so other sessions see the lock
    session.commit()
    return result.rowcount == 1


def release_sync_lock(session: Session, athlete_id: str) -> None:
    session.execute(
        update(Athlete)
        .where(Athlete.id == athlete_id)
        .values(sync_locked_at=None)
        .execution_options(synchronize_session=False)
    )
    session.commit()


@contextmanager
def sync_lock(session: Session, athlete_id: str) -> Generator[bool, None, None]:
    """Hold the athlete's sync lock for the duration of the block.

    If the lock is held elsewhere, yields False.
    If acquired, yields True and guarantees release.
    """
    key = f"sync:{athlete_id}"
    if not acquire_sync_lock(session, athlete_id):
        logger.debug(f"Lock busy, skipping: {key}")
        yield False
        return

    try:
        logger.debug(f"Lock acquired: {key}")
        yield True
    finally:
        # Drop whatever the block left uncommitted so the release can commit
        session.rollback()
        release_sync_lock(session, athlete_id)
        logger.debug(f"Lock released: {key}")
