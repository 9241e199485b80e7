"""Activity bridge client.

Garmin and Strava activities are fetched through small local bridge
services that expose GET /activities?startDate=YYYY-MM-DD&endDate=YYYY-MM-DD.
Each bridge returns its platform's raw shape; this module flattens both into
BridgeActivity.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import BaseModel

from stridesync.config.settings import settings

ActivitySource = Literal["garmin", "strava"]


class BridgeError(Exception):
    """Raised when a bridge cannot be reached or returns an error."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"{source} bridge: {message}")


class BridgeActivity(BaseModel):
    source: ActivitySource
    external_id: str
    activity_name: str | None = None
    activity_type: str | None = None
    start_time: datetime
    distance_meters: float | None = None
    duration_seconds: int | None = None
    raw: dict[str, Any] | None = None


def _nested(value: Any, key: str) -> Any:
    # Garmin wraps units: {"meters": 10000}, {"seconds": 2700}
    if isinstance(value, dict):
        return value.get(key)
    return value


def parse_bridge_timestamp(value: Any) -> datetime | None:
    """Parse ISO datetimes and bare dates; naive values are treated as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return round(float(value))
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_garmin_activity(raw: dict[str, Any]) -> BridgeActivity | None:
    start_local = raw.get("startTimeLocal")
    if isinstance(start_local, dict):
        start_local = start_local.get("datetime") or start_local.get("date")
    start_time = parse_bridge_timestamp(start_local)

    activity_id = raw.get("activityId")
    if start_time is None or activity_id is None:
        logger.warning(f"Skipping Garmin activity without id or start time: {activity_id}")
        return None

    activity_type = raw.get("activityType")
    if isinstance(activity_type, dict):
        activity_type = activity_type.get("typeKey")

    return BridgeActivity(
        source="garmin",
        external_id=str(activity_id),
        activity_name=raw.get("activityName"),
        activity_type=activity_type,
        start_time=start_time,
        distance_meters=_as_float(_nested(raw.get("distance"), "meters")),
        duration_seconds=_as_int(_nested(raw.get("duration"), "seconds")),
        raw=raw,
    )


def normalize_strava_activity(raw: dict[str, Any]) -> BridgeActivity | None:
    start_time = parse_bridge_timestamp(raw.get("start_date"))
    activity_id = raw.get("id")
    if start_time is None or activity_id is None:
        logger.warning(f"Skipping Strava activity without id or start time: {activity_id}")
        return None

    return BridgeActivity(
        source="strava",
        external_id=str(activity_id),
        activity_name=raw.get("name"),
        activity_type=raw.get("sport_type") or raw.get("type"),
        start_time=start_time,
        distance_meters=_as_float(raw.get("distance")),
        duration_seconds=_as_int(raw.get("moving_time") or raw.get("elapsed_time")),
        raw=raw,
    )


_NORMALIZERS = {
    "garmin": normalize_garmin_activity,
    "strava": normalize_strava_activity,
}


class BridgeClient:
    """HTTP client for the Garmin/Strava activity bridges."""

    def __init__(
        self,
        garmin_url: str | None = None,
        strava_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._base_urls: dict[str, str] = {
            "garmin": (garmin_url or settings.garmin_bridge_url).rstrip("/"),
            "strava": (strava_url or settings.strava_bridge_url).rstrip("/"),
        }
        self._timeout = timeout if timeout is not None else settings.bridge_timeout_seconds

    def fetch_activities(self, source: ActivitySource, start_date: date, end_date: date) -> list[BridgeActivity]:
        """Fetch and normalize one source's activities for a date range.

        Raises:
            BridgeError: On connection failure, non-2xx status or a non-JSON body
        """
        if source not in self._base_urls:
            raise BridgeError(source, "unknown source")

        url = f"{self._base_urls[source]}/activities"
        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            raise BridgeError(source, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise BridgeError(source, f"request failed: {e}") from e
        except ValueError as e:
            raise BridgeError(source, f"invalid JSON: {e}") from e

        if not isinstance(payload, list):
            logger.warning(f"{source} bridge returned a non-list payload, treating as empty")
            return []

        normalize = _NORMALIZERS[source]
        activities = [a for a in (normalize(raw) for raw in payload if isinstance(raw, dict)) if a is not None]
        logger.info(f"Fetched {len(activities)} {source} activities for {start_date} to {end_date}")
        return activities
