"""Tests for the merge review and workout matching endpoints."""

from datetime import date, datetime, timezone

import pytest

from stridesync.activities.merge_detector import find_merge_candidates
from stridesync.activities.merge_review import record_merge_candidate
from stridesync.db.models import PlannedWorkout


@pytest.fixture
def flagged_pair(db_session, athlete, activity_factory):
    garmin = activity_factory(
        athlete.id, "garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000, 2700, garmin_id="g-100"
    )
    db_session.add(garmin)
    db_session.flush()
    strava = activity_factory(
        athlete.id, "strava", datetime(2024, 6, 1, 7, 2, tzinfo=timezone.utc), 10100, 2700, strava_id="s-200"
    )
    candidate = find_merge_candidates(strava, [garmin])
    strava.merge_status = "pending_review"
    strava.confidence_score = candidate.confidence_score
    db_session.add(strava)
    db_session.flush()
    record_merge_candidate(db_session, strava, candidate)
    db_session.commit()
    return garmin.id, strava.id


class TestMergeEndpoints:
    def test_list_candidates(self, client, headers, flagged_pair):
        garmin_id, strava_id = flagged_pair

        response = client.get("/activities/merge/candidates", headers=headers)

        assert response.status_code == 200
        (candidate,) = response.json()
        assert candidate["activity"]["id"] == strava_id
        assert candidate["potential_match"]["id"] == garmin_id
        assert candidate["confidence"] == "medium"

    def test_approve(self, client, headers, flagged_pair):
        garmin_id, strava_id = flagged_pair

        response = client.post(
            "/activities/merge/approve", json={"keep_id": garmin_id, "absorb_id": strava_id}, headers=headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == garmin_id
        assert data["strava_id"] == "s-200"
        assert data["source"] == "merged"
        assert client.get("/activities/merge/candidates", headers=headers).json() == []

    def test_approve_self_merge_is_bad_request(self, client, headers, flagged_pair):
        garmin_id, _ = flagged_pair

        response = client.post(
            "/activities/merge/approve", json={"keep_id": garmin_id, "absorb_id": garmin_id}, headers=headers
        )

        assert response.status_code == 400

    def test_approve_unknown_activity(self, client, headers, flagged_pair):
        garmin_id, _ = flagged_pair

        response = client.post(
            "/activities/merge/approve", json={"keep_id": garmin_id, "absorb_id": 9999}, headers=headers
        )

        assert response.status_code == 404

    def test_reject(self, client, headers, flagged_pair):
        _, strava_id = flagged_pair

        response = client.post("/activities/merge/reject", json={"activity_id": strava_id}, headers=headers)

        assert response.status_code == 200
        assert response.json()["merge_status"] == "kept_separate"


class TestMatchingEndpoints:
    @pytest.fixture
    def workout_and_run(self, db_session, athlete, activity_factory):
        workout = PlannedWorkout(
            athlete_id=athlete.id, scheduled_date=date(2024, 6, 1), workout_type="easy_run", distance_target_meters=8000
        )
        run = activity_factory(athlete.id, "garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 8100, 2500)
        db_session.add_all([workout, run])
        db_session.commit()
        return workout.id, run.id

    def test_match(self, client, headers, workout_and_run):
        workout_id, run_id = workout_and_run

        response = client.post(
            "/activities/match", json={"start_date": "2024-06-01", "end_date": "2024-06-01"}, headers=headers
        )

        assert response.status_code == 200
        (match,) = response.json()
        assert match["activity_id"] == run_id
        assert match["workout_id"] == workout_id
        assert match["method"] == "auto_time"

    def test_match_reversed_range(self, client, headers, athlete):
        response = client.post(
            "/activities/match", json={"start_date": "2024-06-02", "end_date": "2024-06-01"}, headers=headers
        )

        assert response.status_code == 400

    def test_link_and_unlink(self, client, headers, workout_and_run):
        workout_id, run_id = workout_and_run

        linked = client.post(
            "/activities/link",
            json={"activity_id": run_id, "workout_id": workout_id, "reason": "calendar"},
            headers=headers,
        )
        unlinked = client.post("/activities/unlink", json={"activity_id": run_id}, headers=headers)

        assert linked.status_code == 200
        assert linked.json()["method"] == "manual"
        assert linked.json()["confidence"] == 1.0
        assert unlinked.json() == {"activity_id": run_id, "unlinked": True}

    def test_link_unknown_workout(self, client, headers, workout_and_run):
        _, run_id = workout_and_run

        response = client.post("/activities/link", json={"activity_id": run_id, "workout_id": 9999}, headers=headers)

        assert response.status_code == 404
