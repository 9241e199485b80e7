from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""


class Athlete(Base):
    """Athlete account and per-athlete sync state.

    Stores:
    - id: Athlete ID (string, matches the auth provider's user id)
    - week_starts_on: First day of the training week (0=Sunday, 1=Monday, ...)
    - sync_locked_at: Advisory sync lock timestamp (NULL = unlocked)
    """

    __tablename__ = "athletes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    week_starts_on: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sync_locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Activity(Base):
    """Completed exercise record from Garmin, Strava or manual entry.

    An activity with both garmin_id and strava_id set has already been
    reconciled across platforms and is never offered as a merge candidate.

    Link to a planned workout goes through
    stridesync.activities.workout_matcher only; planned_workout_id and
    PlannedWorkout.completed_activity_id must always agree.
    """

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    athlete_id: Mapped[str] = mapped_column(String, ForeignKey("athletes.id"), nullable=False, index=True)
    source: Mapped[str] = mapped_column(String, nullable=False)  # garmin, strava, merged, manual
    garmin_id: Mapped[str | None] = mapped_column(String, nullable=True)
    strava_id: Mapped[str | None] = mapped_column(String, nullable=True)

    activity_name: Mapped[str | None] = mapped_column(String, nullable=True)
    activity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    distance_meters: Mapped[float | None] = mapped_column(Float, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    raw_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Workout link (see workout_matcher)
    planned_workout_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("planned_workouts.id", ondelete="SET NULL", use_alter=True), nullable=True
    )
    match_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    match_method: Mapped[str | None] = mapped_column(String, nullable=True)  # auto_time, auto_distance, manual
    match_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Merge tracking
    merge_status: Mapped[str | None] = mapped_column(String, nullable=True)  # pending_review, merged, kept_separate
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    synced_from_garmin: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_from_strava: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("athlete_id", "garmin_id", name="uq_activity_athlete_garmin_id"),
        UniqueConstraint("athlete_id", "strava_id", name="uq_activity_athlete_strava_id"),
        Index("idx_activities_athlete_start_time", "athlete_id", "start_time"),
    )


class TrainingPlan(Base):
    """Named multi-week training plan.

    At most one plan per athlete is active at a time (see plans.activation).
    """

    __tablename__ = "training_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    athlete_id: Mapped[str] = mapped_column(String, ForeignKey("athletes.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    plan_type: Mapped[str | None] = mapped_column(String, nullable=True)  # marathon, half_marathon, 10k, ...
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    vdot: Mapped[float | None] = mapped_column(Float, nullable=True)
    training_paces: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    user_criteria: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


class WeeklyPlan(Base):
    """One week of a training plan (1-indexed, ordered)."""

    __tablename__ = "weekly_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("training_plans.id", ondelete="CASCADE"), nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    phase_name: Mapped[str] = mapped_column(String, nullable=False)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    weekly_volume_target: Mapped[float | None] = mapped_column(Float, nullable=True)  # meters

    __table_args__ = (UniqueConstraint("plan_id", "week_number", name="uq_weekly_plan_week_number"),)


class PlannedWorkout(Base):
    """Scheduled training session.

    version is incremented by exactly one for every operations-engine edit.
    Linking an activity changes completion fields only and leaves version alone.

    garmin_sync_status: NULL (never sent), synced, stale (edited after send), failed.
    """

    __tablename__ = "planned_workouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("training_plans.id", ondelete="CASCADE"), nullable=True, index=True
    )
    weekly_plan_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("weekly_plans.id", ondelete="CASCADE"), nullable=True
    )
    athlete_id: Mapped[str] = mapped_column(String, ForeignKey("athletes.id"), nullable=False, index=True)

    workout_index: Mapped[str | None] = mapped_column(String, nullable=True)  # W<week>:D<day>
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    workout_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    distance_target_meters: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_target_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    intensity_target: Mapped[str | None] = mapped_column(String, nullable=True)
    structured_workout: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")

    # Completion tracking (see workout_matcher)
    completion_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    completion_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    completed_activity_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="SET NULL"), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    garmin_workout_id: Mapped[str | None] = mapped_column(String, nullable=True)
    garmin_sync_status: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        Index("idx_planned_workouts_completion", "athlete_id", "completion_status", "scheduled_date"),
    )


class WorkoutFlag(Base):
    """Flag raised against an activity for later review.

    merge_candidate flags carry flag_data = {potential_match_id, confidence, confidence_score}.
    """

    __tablename__ = "workout_flags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    athlete_id: Mapped[str] = mapped_column(String, ForeignKey("athletes.id"), nullable=False, index=True)
    activity_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=True, index=True
    )
    flag_type: Mapped[str] = mapped_column(String, nullable=False)
    severity: Mapped[str] = mapped_column(String, nullable=False, default="info")
    flag_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
