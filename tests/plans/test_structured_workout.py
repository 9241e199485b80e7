"""Tests for structured workout payloads."""

import pytest
from pydantic import ValidationError

from stridesync.plans.structured_workout import (
    SimpleWorkoutDetail,
    StructuredWorkoutDetail,
    build_structured_workout,
    describe_main_set,
    parse_structured_workout,
)

INTERVALS = {
    "warmup": {"duration_minutes": 15, "intensity": "easy"},
    "main_set": [
        {
            "repeat": 6,
            "intervals": [
                {"distance_meters": 800, "intensity": "hard"},
                {"duration_seconds": 90, "intensity": "recovery"},
            ],
        }
    ],
    "cooldown": {"duration_minutes": 10, "intensity": "easy"},
    "pace_guidance": "3:45/km",
}


class TestParseStructuredWorkout:
    def test_interval_payload(self):
        detail = parse_structured_workout("intervals", INTERVALS)

        assert isinstance(detail, StructuredWorkoutDetail)
        assert detail.main_set[0].repeat == 6
        assert detail.pace_guidance == "3:45/km"

    def test_simple_payload(self):
        detail = parse_structured_workout("easy_run", {"pace_guidance": "5:30/km"})

        assert isinstance(detail, SimpleWorkoutDetail)
        assert detail.pace_guidance == "5:30/km"

    def test_main_set_on_simple_type_is_dropped(self):
        detail = parse_structured_workout("easy_run", INTERVALS)

        assert isinstance(detail, SimpleWorkoutDetail)
        assert detail.pace_guidance == "3:45/km"

    def test_none(self):
        assert parse_structured_workout("tempo", None) is None

    def test_invalid_payload_raises(self):
        with pytest.raises(ValidationError):
            parse_structured_workout("intervals", {"main_set": [{"repeat": 0, "intervals": []}]})


class TestBuildStructuredWorkout:
    def test_tempo_main_set_covers_distance(self):
        payload = build_structured_workout("tempo", distance_meters=8000, pace_guidance="4:20/km")

        assert payload["warmup"]["duration_minutes"] == 10
        assert payload["main_set"] == [
            {"repeat": 1, "intervals": [{"distance_meters": 8000, "duration_seconds": None, "intensity": "tempo"}]}
        ]
        assert payload["pace_guidance"] == "4:20/km"

    def test_intervals_keep_main_set(self):
        payload = build_structured_workout("intervals", main_set=INTERVALS["main_set"])

        assert payload["warmup"]["duration_minutes"] == 15
        assert payload["main_set"][0]["repeat"] == 6

    def test_simple_types(self):
        assert build_structured_workout("long_run", notes="Fuel every 5km") == {
            "pace_guidance": None,
            "notes": "Fuel every 5km",
        }


def test_describe_main_set():
    detail = parse_structured_workout("intervals", INTERVALS)

    assert describe_main_set(detail) == "6 × (800m hard / 90s recovery)"
