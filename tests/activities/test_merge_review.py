"""Tests for the merge review workflow.

Tests cover:
- Recording and listing merge candidates
- Approving a merge (ids, sync timestamps and workout link move to the kept record)
- Approve is idempotent
- Conflicting platform ids are refused
- Rejecting keeps both records and clears the flags
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from stridesync.activities.errors import ActivityNotFoundError, MergeConflictError
from stridesync.activities.merge_detector import find_merge_candidates
from stridesync.activities.merge_review import (
    MERGE_CANDIDATE_FLAG,
    approve_merge,
    list_merge_candidates,
    record_merge_candidate,
    reject_merge,
)
from stridesync.activities.workout_matcher import manually_link_workout
from stridesync.db.models import Activity, PlannedWorkout, WorkoutFlag


@pytest.fixture
def flagged_pair(db_session, athlete, activity_factory):
    """Stored Garmin run plus a Strava copy flagged as a medium-confidence candidate."""
    garmin = activity_factory(
        athlete.id,
        "garmin",
        datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc),
        10000,
        2700,
        garmin_id="g-100",
        synced_from_garmin=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
    )
    db_session.add(garmin)
    db_session.flush()

    strava = activity_factory(
        athlete.id,
        "strava",
        datetime(2024, 6, 1, 7, 2, tzinfo=timezone.utc),
        10100,
        2700,
        strava_id="s-200",
        synced_from_strava=datetime(2024, 6, 1, 9, 5, tzinfo=timezone.utc),
    )
    candidate = find_merge_candidates(strava, [garmin])
    assert candidate is not None and candidate.confidence == "medium"

    strava.merge_status = "pending_review"
    strava.confidence_score = candidate.confidence_score
    db_session.add(strava)
    db_session.flush()
    record_merge_candidate(db_session, strava, candidate)
    db_session.commit()
    return garmin, strava


class TestRecordAndList:
    def test_flag_data_is_recorded(self, db_session, flagged_pair):
        garmin, strava = flagged_pair

        flag = db_session.scalars(select(WorkoutFlag).where(WorkoutFlag.activity_id == strava.id)).one()

        assert flag.flag_type == MERGE_CANDIDATE_FLAG
        assert flag.severity == "info"
        assert flag.flag_data["potential_match_id"] == garmin.id
        assert flag.flag_data["confidence"] == "medium"
        assert flag.flag_data["confidence_score"] == round(strava.confidence_score, 2)

    def test_list_returns_pending_pairs(self, db_session, athlete, flagged_pair):
        garmin, strava = flagged_pair

        pending = list_merge_candidates(db_session, athlete.id)

        assert len(pending) == 1
        assert pending[0].activity.id == strava.id
        assert pending[0].potential_match.id == garmin.id
        assert pending[0].confidence == "medium"

    def test_list_is_scoped_to_athlete(self, db_session, flagged_pair):
        assert list_merge_candidates(db_session, "someone-else") == []


class TestApproveMerge:
    def test_kept_record_takes_over_ids(self, db_session, athlete, flagged_pair):
        garmin, strava = flagged_pair
        garmin_id, strava_id = garmin.id, strava.id

        kept = approve_merge(db_session, athlete.id, garmin_id, strava_id)
        db_session.commit()

        assert kept.id == garmin_id
        assert kept.garmin_id == "g-100"
        assert kept.strava_id == "s-200"
        assert kept.synced_from_strava is not None
        assert kept.source == "merged"
        assert kept.merge_status == "merged"
        assert db_session.get(Activity, strava_id) is None
        assert list_merge_candidates(db_session, athlete.id) == []

    def test_approve_twice_is_a_no_op(self, db_session, athlete, flagged_pair):
        garmin, strava = flagged_pair
        garmin_id, strava_id = garmin.id, strava.id
        approve_merge(db_session, athlete.id, garmin_id, strava_id)
        db_session.commit()

        again = approve_merge(db_session, athlete.id, garmin_id, strava_id)

        assert again.id == garmin_id
        assert again.merge_status == "merged"

    def test_workout_link_moves_to_kept_record(self, db_session, athlete, flagged_pair):
        garmin, strava = flagged_pair
        workout = PlannedWorkout(
            athlete_id=athlete.id,
            scheduled_date=date(2024, 6, 1),
            workout_type="easy_run",
            distance_target_meters=10000,
        )
        db_session.add(workout)
        db_session.flush()
        manually_link_workout(db_session, strava.id, workout.id, athlete.id, reason="picked in calendar")
        db_session.commit()

        kept = approve_merge(db_session, athlete.id, garmin.id, strava.id)
        db_session.commit()

        db_session.refresh(workout)
        assert kept.planned_workout_id == workout.id
        assert kept.match_method == "manual"
        assert workout.completed_activity_id == kept.id
        assert workout.completion_status == "completed"

    def test_kept_record_link_wins(self, db_session, athlete, flagged_pair):
        garmin, strava = flagged_pair
        workouts = []
        for workout_type in ("easy_run", "recovery"):
            workout = PlannedWorkout(
                athlete_id=athlete.id,
                scheduled_date=date(2024, 6, 1),
                workout_type=workout_type,
                distance_target_meters=10000,
            )
            db_session.add(workout)
            workouts.append(workout)
        db_session.flush()
        manually_link_workout(db_session, garmin.id, workouts[0].id, athlete.id)
        manually_link_workout(db_session, strava.id, workouts[1].id, athlete.id)
        db_session.commit()

        kept = approve_merge(db_session, athlete.id, garmin.id, strava.id)
        db_session.commit()

        db_session.refresh(workouts[1])
        assert kept.planned_workout_id == workouts[0].id
        assert workouts[1].completed_activity_id is None
        assert workouts[1].completion_status == "pending"

    def test_conflicting_ids_are_refused(self, db_session, athlete, activity_factory):
        first = activity_factory(
            athlete.id, "merged", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000, garmin_id="g-1"
        )
        second = activity_factory(
            athlete.id, "garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000, garmin_id="g-2"
        )
        db_session.add_all([first, second])
        db_session.commit()

        with pytest.raises(MergeConflictError):
            approve_merge(db_session, athlete.id, first.id, second.id)

    def test_self_merge_is_refused(self, db_session, athlete, flagged_pair):
        garmin, _ = flagged_pair

        with pytest.raises(MergeConflictError):
            approve_merge(db_session, athlete.id, garmin.id, garmin.id)

    def test_unknown_activity_raises(self, db_session, athlete, flagged_pair):
        garmin, _ = flagged_pair

        with pytest.raises(ActivityNotFoundError):
            approve_merge(db_session, athlete.id, garmin.id, 99999)
        with pytest.raises(ActivityNotFoundError):
            approve_merge(db_session, athlete.id, 99999, garmin.id)

    def test_other_athletes_activity_is_not_found(self, db_session, flagged_pair):
        garmin, strava = flagged_pair

        with pytest.raises(ActivityNotFoundError):
            approve_merge(db_session, "someone-else", garmin.id, strava.id)


class TestRejectMerge:
    def test_reject_keeps_both_records(self, db_session, athlete, flagged_pair):
        garmin, strava = flagged_pair

        rejected = reject_merge(db_session, athlete.id, strava.id)
        db_session.commit()

        assert rejected.merge_status == "kept_separate"
        assert db_session.get(Activity, garmin.id) is not None
        assert list_merge_candidates(db_session, athlete.id) == []

    def test_reject_unknown_activity_raises(self, db_session, athlete):
        with pytest.raises(ActivityNotFoundError):
            reject_merge(db_session, athlete.id, 12345)
