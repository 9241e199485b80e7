"""Tests for activity confidence scoring.

Tests cover:
- Pair scoring for precise and date-only timestamps
- Comparison windows
- Zero-distance activities
- Activity vs planned workout scoring
"""

from datetime import date, datetime, timezone

import pytest

from stridesync.activities.scoring import (
    is_date_only,
    score_activity_pair,
    score_activity_workout,
)
from stridesync.db.models import Activity, PlannedWorkout


def _activity(source, start_time, distance=None, duration=None, activity_type="running"):
    return Activity(
        athlete_id="a1",
        source=source,
        start_time=start_time,
        distance_meters=distance,
        duration_seconds=duration,
        activity_type=activity_type,
    )


def _workout(workout_type, scheduled_date, distance=None, duration=None):
    return PlannedWorkout(
        athlete_id="a1",
        scheduled_date=scheduled_date,
        workout_type=workout_type,
        distance_target_meters=distance,
        duration_target_seconds=duration,
    )


class TestIsDateOnly:
    def test_midnight_is_date_only(self):
        assert is_date_only(datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc))

    def test_time_of_day_is_precise(self):
        assert not is_date_only(datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc))
        assert not is_date_only(datetime(2024, 6, 1, 0, 0, 1, tzinfo=timezone.utc))


class TestScoreActivityPair:
    """Test pair scoring between two activity records."""

    def test_identical_records_score_100(self):
        start = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)
        pair = score_activity_pair(_activity("strava", start, 10000, 2700), _activity("garmin", start, 10000, 2700))

        assert pair is not None
        assert pair.score == 100.0
        assert pair.time_diff_minutes == 0
        assert not pair.date_only

    def test_small_differences_are_penalized(self):
        """1 min, 0.2% distance and ~0.19% duration cost about 6 points."""
        new = _activity("strava", datetime(2024, 6, 1, 7, 1, tzinfo=timezone.utc), 10020, 2705)
        existing = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000, 2700)

        pair = score_activity_pair(new, existing)

        assert pair is not None
        assert pair.time_diff_minutes == pytest.approx(1.0)
        assert pair.distance_diff_percent == pytest.approx(0.2)
        assert pair.duration_diff_percent == pytest.approx(5 / 2700 * 100)
        assert pair.score == pytest.approx(100 - 0.1 - 4.0 - 5 / 2700 * 1000)

    def test_time_penalty_is_capped(self):
        start = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)
        later = datetime(2024, 6, 1, 11, 0, tzinfo=timezone.utc)

        pair = score_activity_pair(_activity("strava", later, 10000), _activity("garmin", start, 10000))

        assert pair is not None
        assert pair.score == pytest.approx(80.0)

    def test_precise_outside_12_hours_is_not_compared(self):
        new = _activity("strava", datetime(2024, 6, 1, 20, 1, tzinfo=timezone.utc), 10000)
        existing = _activity("garmin", datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc), 10000)

        assert score_activity_pair(new, existing) is None

    def test_date_only_uses_24_hour_window_and_no_time_penalty(self):
        new = _activity("strava", datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc), 10100)
        existing = _activity("garmin", datetime(2024, 6, 1, 18, 30, tzinfo=timezone.utc), 10000)

        pair = score_activity_pair(new, existing)

        assert pair is not None
        assert pair.date_only
        assert pair.score == pytest.approx(90.0)  # 1% distance * 10

    def test_missing_duration_is_not_penalized(self):
        start = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)
        pair = score_activity_pair(_activity("strava", start, 10000, None), _activity("garmin", start, 10000, 2700))

        assert pair is not None
        assert pair.duration_diff_percent == 0.0
        assert pair.score == 100.0

    @pytest.mark.parametrize("new_distance,existing_distance", [(0, 0), (None, None), (0, None)])
    def test_zero_distance_pairs_have_no_distance_difference(self, new_distance, existing_distance):
        start = datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)
        pair = score_activity_pair(
            _activity("strava", start, new_distance, 3600, "strength"),
            _activity("garmin", start, existing_distance, 3600, "strength"),
        )

        assert pair is not None
        assert pair.distance_diff_percent == 0.0

    def test_distance_against_zero_is_full_difference(self):
        start = datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)
        pair = score_activity_pair(_activity("strava", start, 5000), _activity("garmin", start, 0))

        assert pair is not None
        assert pair.distance_diff_percent == 100.0
        assert pair.score == 0.0

    def test_naive_timestamps_compare_as_utc(self):
        new = _activity("strava", datetime(2024, 6, 1, 7, 0), 10000)
        existing = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000)

        pair = score_activity_pair(new, existing)

        assert pair is not None
        assert pair.time_diff_minutes == 0


class TestScoreActivityWorkout:
    """Test activity vs planned workout scoring."""

    def test_different_day_scores_zero(self):
        activity = _activity("garmin", datetime(2024, 6, 2, 7, 0, tzinfo=timezone.utc), 10000)
        workout = _workout("easy_run", date(2024, 6, 1), 10000)

        assert score_activity_workout(activity, workout) == 0.0

    def test_exact_type_and_close_distance(self):
        activity = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 9800, activity_type="interval")
        workout = _workout("intervals", date(2024, 6, 1), 10000)

        assert score_activity_workout(activity, workout) == pytest.approx(1.0)

    def test_running_family_bonus(self):
        activity = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000, activity_type="running")
        workout = _workout("tempo", date(2024, 6, 1), 10000)

        # easy_run vs tempo: base + family + close distance
        assert score_activity_workout(activity, workout) == pytest.approx(0.85)

    def test_near_distance_bonus(self):
        activity = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 8500, activity_type="running")
        workout = _workout("easy_run", date(2024, 6, 1), 10000)

        assert score_activity_workout(activity, workout) == pytest.approx(0.9)

    def test_duration_bonus_and_clamp(self):
        activity = _activity(
            "garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 10000, 3600, activity_type="running"
        )
        workout = _workout("easy_run", date(2024, 6, 1), 10000, 3500)

        assert score_activity_workout(activity, workout) == 1.0

    def test_cross_training_vs_run_gets_base_only(self):
        activity = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 30000, activity_type="cycling")
        workout = _workout("easy_run", date(2024, 6, 1), 8000)

        assert score_activity_workout(activity, workout) == pytest.approx(0.5)

    def test_explicit_normalized_type_overrides_raw_type(self):
        activity = _activity("garmin", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc), 20000, activity_type="running")
        workout = _workout("long_run", date(2024, 6, 1), 20000)

        assert score_activity_workout(activity, workout, normalized_type="long_run") == pytest.approx(1.0)
