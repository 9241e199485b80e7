"""Tests for bridge payload normalization and the bridge HTTP client."""

from datetime import date, datetime, timezone

import httpx
import pytest

from stridesync.ingestion.bridge import (
    BridgeClient,
    BridgeError,
    normalize_garmin_activity,
    normalize_strava_activity,
    parse_bridge_timestamp,
)

GARMIN_RAW = {
    "activityId": 14523,
    "activityName": "Morning Run",
    "activityType": {"typeKey": "running"},
    "startTimeLocal": {"datetime": "2024-06-01T07:00:00"},
    "distance": {"meters": 10012.5},
    "duration": {"seconds": 2700.4},
}

STRAVA_RAW = {
    "id": 987654,
    "name": "Lunch Run",
    "sport_type": "Run",
    "start_date": "2024-06-01T12:00:00Z",
    "distance": 5012.3,
    "moving_time": 1500,
    "elapsed_time": 1620,
}


class TestParseBridgeTimestamp:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2024-06-01T07:00:00Z", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)),
            ("2024-06-01T07:00:00", datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)),
            ("2024-06-01", datetime(2024, 6, 1, tzinfo=timezone.utc)),
            (date(2024, 6, 1), datetime(2024, 6, 1, tzinfo=timezone.utc)),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_bridge_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_unparseable(self, value):
        assert parse_bridge_timestamp(value) is None


class TestNormalize:
    def test_garmin(self):
        activity = normalize_garmin_activity(GARMIN_RAW)

        assert activity.source == "garmin"
        assert activity.external_id == "14523"
        assert activity.activity_type == "running"
        assert activity.start_time == datetime(2024, 6, 1, 7, 0, tzinfo=timezone.utc)
        assert activity.distance_meters == 10012.5
        assert activity.duration_seconds == 2700
        assert activity.raw == GARMIN_RAW

    def test_garmin_date_only(self):
        activity = normalize_garmin_activity({**GARMIN_RAW, "startTimeLocal": {"date": "2024-06-01"}})

        assert activity.start_time == datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_garmin_without_id_is_skipped(self):
        raw = {k: v for k, v in GARMIN_RAW.items() if k != "activityId"}

        assert normalize_garmin_activity(raw) is None

    def test_strava(self):
        activity = normalize_strava_activity(STRAVA_RAW)

        assert activity.source == "strava"
        assert activity.external_id == "987654"
        assert activity.activity_type == "Run"
        assert activity.start_time == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        assert activity.duration_seconds == 1500

    def test_strava_falls_back_to_elapsed_time(self):
        activity = normalize_strava_activity({**STRAVA_RAW, "moving_time": None})

        assert activity.duration_seconds == 1620


@pytest.fixture
def mock_transport(monkeypatch):
    """Route every httpx.Client through a MockTransport; returns the recorded requests."""
    requests = []
    responses = {}
    real_client = httpx.Client

    def handler(request):
        requests.append(request)
        return responses["response"]

    def client_factory(*args, **kwargs):
        return real_client(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "Client", client_factory)

    def respond(response):
        responses["response"] = response
        return requests

    return respond


class TestBridgeClient:
    """Test fetching through a mocked HTTP transport."""

    def test_fetch_normalizes_payload(self, mock_transport):
        requests = mock_transport(httpx.Response(200, json=[STRAVA_RAW, {"name": "no id"}]))
        client = BridgeClient(garmin_url="http://garmin.test", strava_url="http://strava.test/")

        activities = client.fetch_activities("strava", date(2024, 6, 1), date(2024, 6, 7))

        assert [a.external_id for a in activities] == ["987654"]
        assert requests[0].url.path == "/activities"
        assert requests[0].url.host == "strava.test"
        assert requests[0].url.params["startDate"] == "2024-06-01"
        assert requests[0].url.params["endDate"] == "2024-06-07"

    def test_non_list_payload_is_empty(self, mock_transport):
        mock_transport(httpx.Response(200, json={"error": "not logged in"}))
        client = BridgeClient(garmin_url="http://garmin.test", strava_url="http://strava.test")

        assert client.fetch_activities("garmin", date(2024, 6, 1), date(2024, 6, 1)) == []

    def test_http_error_raises_bridge_error(self, mock_transport):
        mock_transport(httpx.Response(503))
        client = BridgeClient(garmin_url="http://garmin.test", strava_url="http://strava.test")

        with pytest.raises(BridgeError) as exc_info:
            client.fetch_activities("garmin", date(2024, 6, 1), date(2024, 6, 1))

        assert exc_info.value.source == "garmin"
        assert "HTTP 503" in str(exc_info.value)

    def test_invalid_json_raises_bridge_error(self, mock_transport):
        mock_transport(httpx.Response(200, content=b"<html>"))
        client = BridgeClient(garmin_url="http://garmin.test", strava_url="http://strava.test")

        with pytest.raises(BridgeError):
            client.fetch_activities("garmin", date(2024, 6, 1), date(2024, 6, 1))
