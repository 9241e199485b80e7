"""Root conftest for all tests.

Every test gets its own in-memory SQLite database with the full schema.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stridesync.db.models import Activity, Athlete, Base, PlannedWorkout, TrainingPlan, WeeklyPlan

TEST_ATHLETE_ID = "athlete-test-1"
PLAN_START = date(2024, 1, 1)  # Monday

# (day, workout_type, distance_meters, intensity, description)
BASE_WEEK = [
    (1, "rest", 0, "easy", "Rest day"),
    (2, "easy_run", 8000, "easy", "Easy run"),
    (3, "intervals", 10000, "hard", "6x800m"),
    (4, "easy_run", 6000, "easy", "Easy run"),
    (5, "recovery", 5000, "easy", "Recovery"),
    (6, "rest", 0, "easy", "Rest day"),
    (7, "long_run", 20000, "moderate", "Long run"),
]

BUILD_WEEK = [
    (1, "rest", 0, "easy", "Rest day"),
    (2, "easy_run", 8000, "easy", "Easy run"),
    (3, "tempo", 9000, "hard", "Tempo run"),
    (4, "easy_run", 6000, "easy", "Easy run"),
    (5, "long_run", 22000, "moderate", "Long run"),
    (6, "easy_run", 5000, "easy", "Shakeout"),
    (7, "rest", 0, "easy", "Rest day"),
]

PLAN_WEEKS = [("Base", BASE_WEEK), ("Base", BASE_WEEK), ("Build", BUILD_WEEK)]


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every connection in one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        """Enable foreign key constraints in SQLite connections."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def athlete_id():
    """Test athlete ID."""
    return TEST_ATHLETE_ID


@pytest.fixture
def athlete(db_session, athlete_id):
    athlete = Athlete(id=athlete_id, email="runner@example.com", week_starts_on=1)
    db_session.add(athlete)
    db_session.commit()
    return athlete


def build_plan(session, athlete_id, weeks=PLAN_WEEKS, start=PLAN_START, name="Spring Marathon"):
    """Persist a plan with one WeeklyPlan per (phase_name, workouts) entry."""
    plan = TrainingPlan(
        athlete_id=athlete_id,
        name=name,
        plan_type="marathon",
        start_date=start,
        end_date=start + timedelta(days=7 * len(weeks) - 1),
        status="draft",
        user_criteria={"preferred_rest_days": [1], "days_per_week": 5},
    )
    session.add(plan)
    session.flush()

    for offset, (phase_name, workouts) in enumerate(weeks):
        week_number = offset + 1
        week_start = start + timedelta(days=7 * offset)
        weekly_plan = WeeklyPlan(
            plan_id=plan.id,
            week_number=week_number,
            phase_name=phase_name,
            week_start_date=week_start,
            weekly_volume_target=float(sum(w[2] for w in workouts)),
        )
        session.add(weekly_plan)
        session.flush()

        for day, workout_type, distance, intensity, description in workouts:
            session.add(
                PlannedWorkout(
                    plan_id=plan.id,
                    weekly_plan_id=weekly_plan.id,
                    athlete_id=athlete_id,
                    workout_index=f"W{week_number}:D{day}",
                    scheduled_date=week_start + timedelta(days=day - 1),
                    workout_type=workout_type,
                    description=description,
                    distance_target_meters=distance,
                    intensity_target=intensity,
                )
            )
    session.commit()
    return plan


@pytest.fixture
def plan(db_session, athlete):
    """Three-week plan: two Base weeks and one Build week."""
    return build_plan(db_session, athlete.id)


def workouts_by_index(session, plan_id):
    """Map W#:D# → PlannedWorkout for a plan, freshly read."""
    session.expire_all()
    rows = session.query(PlannedWorkout).filter(PlannedWorkout.plan_id == plan_id).all()
    return {w.workout_index: w for w in rows}


def make_activity(
    athlete_id,
    source,
    start_time,
    distance_meters=None,
    duration_seconds=None,
    activity_type="running",
    **kwargs,
):
    """Build a transient Activity; external id defaults to a unique-ish value per source."""
    if source == "garmin":
        kwargs.setdefault("garmin_id", f"g-{start_time.isoformat()}")
    elif source == "strava":
        kwargs.setdefault("strava_id", f"s-{start_time.isoformat()}")
    return Activity(
        athlete_id=athlete_id,
        source=source,
        start_time=start_time,
        distance_meters=distance_meters,
        duration_seconds=duration_seconds,
        activity_type=activity_type,
        **kwargs,
    )


@pytest.fixture
def plan_builder(db_session, athlete):
    """Build extra plans for the test athlete: plan_builder(weeks=..., name=...)."""

    def _build(**kwargs):
        return build_plan(db_session, athlete.id, **kwargs)

    return _build


@pytest.fixture
def activity_factory():
    return make_activity


@pytest.fixture
def reload_workouts(db_session):
    """reload_workouts(plan_id) → {W#:D#: PlannedWorkout} read from the database."""

    def _reload(plan_id):
        return workouts_by_index(db_session, plan_id)

    return _reload
