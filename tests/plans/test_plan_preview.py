"""Tests for operation previews and descriptions."""

from datetime import date

import pytest

from stridesync.plans.context import load_plan_context
from stridesync.plans.operations import describe_operation, parse_operations, preview_operations
from stridesync.plans.operations.describe import get_day_name


@pytest.fixture
def context(db_session, plan, athlete):
    return load_plan_context(db_session, plan.id, athlete.id)


class TestPreviewOperations:
    """Test before/after previews."""

    def test_move_long_run_preview(self, context):
        operations = parse_operations(
            [{"op": "move_workout_type", "workoutType": "long_run", "toDay": 7, "weekNumbers": [3]}]
        )

        (preview,) = preview_operations(operations, context)

        assert preview.description == "Move long_run workouts to Sunday in weeks 3"
        assert len(preview.affected_workouts) == 2
        by_day = {a.day: a for a in preview.affected_workouts}
        assert by_day[5].before.workout_type == "long_run"
        assert by_day[5].after.workout_type == "rest"
        assert by_day[7].after.workout_type == "long_run"
        assert by_day[7].after.distance_km == 22.0
        assert by_day[7].after.scheduled_date == date(2024, 1, 21)

    def test_one_preview_per_operation_in_order(self, context):
        operations = parse_operations(
            [
                {"op": "swap_days", "weekNumbers": [1], "dayA": 2, "dayB": 3},
                {"op": "change_intensity", "workoutIndex": "W1:D2", "newIntensity": "moderate"},
            ]
        )

        previews = preview_operations(operations, context)

        assert [p.operation.op for p in previews] == ["swap_days", "change_intensity"]
        # Second operation sees the swapped content
        (change,) = previews[1].affected_workouts
        assert change.before.workout_type == "intervals"
        assert change.before.intensity_target == "hard"
        assert change.after.intensity_target == "moderate"

    def test_no_op_has_empty_affected_list(self, context):
        operations = parse_operations([{"op": "scale_workout_distance", "workoutIndex": "W1:D2", "factor": 1.0}])

        (preview,) = preview_operations(operations, context)

        assert preview.affected_workouts == []

    def test_resolution_errors_surface_as_warnings(self, context):
        operations = parse_operations([{"op": "change_intensity", "workoutIndex": "W8:D1", "newIntensity": "easy"}])

        (preview,) = preview_operations(operations, context)

        assert preview.warnings == ["change_intensity: Workout W8:D1 not found"]

    def test_preview_writes_nothing(self, db_session, plan, context, reload_workouts):
        operations = parse_operations([{"op": "swap_days", "weekNumbers": "all", "dayA": 2, "dayB": 3}])

        preview_operations(operations, context)

        workouts = reload_workouts(plan.id)
        assert workouts["W1:D2"].workout_type == "easy_run"
        assert all(w.version == 1 for w in workouts.values())


class TestDescribeOperation:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (
                {"op": "swap_days", "weekNumbers": "all", "dayA": 1, "dayB": 3},
                "Swap Sunday and Tuesday in all weeks",
            ),
            (
                {"op": "reschedule_workout", "workoutIndex": "W2:D4", "newDate": "2024-01-12"},
                "Move workout W2:D4 to 2024-01-12",
            ),
            (
                {"op": "change_workout_distance", "workoutIndex": "W1:D2", "newDistanceMeters": 12500},
                "Change workout W1:D2 distance to 12.5km",
            ),
            (
                {"op": "scale_week_volume", "weekNumber": 4, "factor": 0.8},
                "Scale week 4 volume by 80%",
            ),
            (
                {"op": "scale_phase_volume", "phaseName": "Taper", "factor": 0.6},
                "Scale Taper phase volume by 60%",
            ),
            (
                {"op": "remove_workout_type", "workoutType": "intervals", "replacement": "easy_run", "weekNumbers": [2, 3]},
                "Replace intervals with easy_run in weeks 2, 3",
            ),
            (
                {"op": "change_intensity", "workoutId": 42, "newIntensity": "easy"},
                "Change workout #42 intensity to easy",
            ),
            ({"op": "request_fallback", "reason": "New goal race"}, "Regenerate plan: New goal race"),
        ],
    )
    def test_descriptions(self, raw, expected):
        (operation,) = parse_operations([raw])

        assert describe_operation(operation) == expected

    def test_week_start_shifts_day_names(self):
        (operation,) = parse_operations([{"op": "swap_days", "weekNumbers": [1], "dayA": 1, "dayB": 7}])

        assert describe_operation(operation, week_starts_on=1) == "Swap Monday and Sunday in weeks 1"

    @pytest.mark.parametrize("day,week_starts_on,expected", [(1, 0, "Sunday"), (7, 0, "Saturday"), (1, 1, "Monday"), (7, 1, "Sunday")])
    def test_get_day_name(self, day, week_starts_on, expected):
        assert get_day_name(day, week_starts_on) == expected
