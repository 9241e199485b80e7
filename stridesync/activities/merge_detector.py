"""Cross-platform duplicate detection.

The same run usually arrives twice: once from Garmin and once from Strava.
This module decides whether an incoming activity matches one already stored
and how confident that decision is.

Rules:
- Same-source records are never candidates
- Records already carrying both garmin_id and strava_id are never candidates
- Precise timestamps need tight distance/duration agreement for "high"
- Date-only timestamps are classified on distance alone
- The best candidate wins (highest tier, then highest score); ties keep the
  earliest in input order
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from stridesync.activities.scoring import PairScore, score_activity_pair
from stridesync.db.models import Activity

MergeConfidence = Literal["high", "medium", "low"]

# Precise timestamps: (min score, max distance %, max duration %)
PRECISE_THRESHOLDS: dict[MergeConfidence, tuple[float, float, float]] = {
    "high": (90.0, 0.5, 1.0),
    "medium": (70.0, 2.0, 3.0),
    "low": (50.0, float("inf"), float("inf")),
}

# Date-only timestamps: max distance %
DATE_ONLY_THRESHOLDS: dict[MergeConfidence, float] = {
    "high": 5.0,
    "medium": 10.0,
    "low": 20.0,
}

_TIER_RANK: dict[MergeConfidence, int] = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class MergeCandidate:
    """A pair of activities suspected to be the same session.

    Attributes:
        activity1: The incoming activity
        activity2: The stored activity it matches
        confidence: high, medium or low
        confidence_score: 0-100 similarity score
        time_diff_minutes: Start-time difference in minutes
        distance_diff_percent: Distance difference in percent
        duration_diff_percent: Duration difference in percent
    """

    activity1: Activity
    activity2: Activity
    confidence: MergeConfidence
    confidence_score: float
    time_diff_minutes: float
    distance_diff_percent: float
    duration_diff_percent: float


def is_fully_merged(activity: Activity) -> bool:
    return bool(activity.garmin_id) and bool(activity.strava_id)


def classify_confidence(pair: PairScore) -> MergeConfidence | None:
    """Map a pair score onto a confidence tier, or None when it is not a match."""
    if pair.date_only:
        for tier, max_distance in DATE_ONLY_THRESHOLDS.items():
            if pair.distance_diff_percent <= max_distance:
                return tier
        return None

    for tier, (min_score, max_distance, max_duration) in PRECISE_THRESHOLDS.items():
        if (
            pair.score >= min_score
            and pair.distance_diff_percent <= max_distance
            and pair.duration_diff_percent <= max_duration
        ):
            return tier
    return None


def find_merge_candidates(
    new_activity: Activity,
    existing_activities: Iterable[Activity],
) -> MergeCandidate | None:
    """Find the stored activity that most likely duplicates a new one.

    Args:
        new_activity: Incoming activity (may be transient, not yet persisted)
        existing_activities: Stored activities to compare against, in scan order

    Returns:
        Best MergeCandidate, or None when nothing qualifies
    """
    best: MergeCandidate | None = None

    for existing in existing_activities:
        if existing is new_activity:
            continue
        if new_activity.source == existing.source:
            continue
        if is_fully_merged(existing):
            continue

        pair = score_activity_pair(new_activity, existing)
        if pair is None:
            continue

        confidence = classify_confidence(pair)
        if confidence is None:
            continue

        rank = (_TIER_RANK[confidence], pair.score)
        if best is None or rank > (_TIER_RANK[best.confidence], best.confidence_score):
            best = MergeCandidate(
                activity1=new_activity,
                activity2=existing,
                confidence=confidence,
                confidence_score=pair.score,
                time_diff_minutes=pair.time_diff_minutes,
                distance_diff_percent=pair.distance_diff_percent,
                duration_diff_percent=pair.duration_diff_percent,
            )

    if best is not None:
        logger.debug(
            f"Merge candidate found: existing_id={best.activity2.id} confidence={best.confidence} "
            f"score={best.confidence_score:.1f} time_diff={best.time_diff_minutes:.1f}min "
            f"distance_diff={best.distance_diff_percent:.2f}% duration_diff={best.duration_diff_percent:.2f}%"
        )

    return best


def should_auto_merge(candidate: MergeCandidate) -> bool:
    """Only high-confidence candidates are merged without review."""
    return candidate.confidence == "high"
