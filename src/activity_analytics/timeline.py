"""Chronological analysis of activities: gaps, merge candidates and overlaps."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, Literal

from .models import (
    ActivityKey,
    ActivityRecord,
    Gap,
    GapStatistics,
    MergeableGroup,
    MergeSuggestion,
    OverlapConflict,
)
from .validation import validate_activity

logger = logging.getLogger(__name__)

MergeStrategy = Literal["longest", "earliest", "latest"]
MERGE_STRATEGIES: tuple[str, ...] = ("longest", "earliest", "latest")


def sort_chronologically(activities: list[ActivityRecord]) -> list[ActivityRecord]:
    """Activities with a start time, ascending by start; the sort is stable."""
    return sorted(
        (activity for activity in activities if activity.start_time is not None),
        key=lambda activity: activity.start_time,
    )


def _seconds_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds()


def iter_adjacent(
    activities: list[ActivityRecord],
) -> Iterator[tuple[ActivityRecord, ActivityRecord, float]]:
    """Yield ``(previous, next, gap_seconds)`` for each chronologically adjacent pair.

    ``gap_seconds`` is negative when the pair overlaps. It is measured from the
    start of a running timer, so callers skip pairs whose ``previous`` is open-ended.
    """
    ordered = sort_chronologically(activities)
    for previous, following in zip(ordered, ordered[1:]):
        yield previous, following, _seconds_between(previous.effective_end, following.start_time)


def detect_gaps(activities: list[ActivityRecord], min_gap_seconds: float = 0) -> list[Gap]:
    """Untracked intervals of at least ``min_gap_seconds`` between adjacent activities."""
    gaps: list[Gap] = []
    for previous, following, seconds in iter_adjacent(activities):
        if seconds <= 0 or previous.is_open_ended:
            continue
        duration = math.floor(seconds)
        if duration >= min_gap_seconds:
            gaps.append(
                Gap(
                    start_time=previous.effective_end,
                    end_time=following.start_time,
                    duration=duration,
                    before=previous,
                    after=following,
                )
            )
    return gaps


def gap_statistics(gaps: list[Gap]) -> GapStatistics:
    if not gaps:
        return GapStatistics()
    total = sum(gap.duration for gap in gaps)
    return GapStatistics(
        total_gaps=len(gaps),
        total_untracked_seconds=total,
        average_gap_seconds=total / len(gaps),
        longest_gap_seconds=max(gap.duration for gap in gaps),
    )


def find_mergeable_groups(
    activities: list[ActivityRecord], max_gap_seconds: float = 300
) -> list[MergeableGroup]:
    """Clusters of same-kind activities separated by gaps of at most ``max_gap_seconds``.

    Only candidates are returned; nothing is merged.
    """
    groups: list[MergeableGroup] = []
    current: list[ActivityRecord] = []
    current_gap = 0.0

    def close() -> None:
        if len(current) > 1:
            groups.append(MergeableGroup(list(current), math.floor(current_gap)))

    for previous, following, seconds in iter_adjacent(activities):
        if not current:
            current = [previous]
        head = current[0]
        if (
            seconds <= max_gap_seconds
            and not previous.is_open_ended
            and not following.is_open_ended
            and following.source_type == head.source_type
            and following.activity_type == head.activity_type
        ):
            current.append(following)
            current_gap += max(seconds, 0.0)
        else:
            close()
            current = [following]
            current_gap = 0.0
    close()
    return groups


def find_overlaps(activities: list[ActivityRecord]) -> list[OverlapConflict]:
    """Pairs of activities from the same source whose time ranges intersect."""
    ordered = sort_chronologically(activities)
    conflicts: list[OverlapConflict] = []
    for index, first in enumerate(ordered):
        first_end = first.effective_end
        for second in ordered[index + 1 :]:
            if second.start_time >= first_end:
                break
            if second.source_type != first.source_type:
                continue
            overlap_end = min(first_end, second.effective_end)
            conflicts.append(
                OverlapConflict(
                    activities=[first, second],
                    overlap_seconds=math.floor(_seconds_between(second.start_time, overlap_end)),
                    message=f'Activities overlap: "{first.title}" and "{second.title}"',
                )
            )
    return conflicts


def merge_activities(
    activities: list[ActivityRecord],
    strategy: MergeStrategy = "longest",
    now: datetime | None = None,
) -> ActivityRecord:
    """Build the single activity that replaces ``activities``.

    The strategy picks the record whose fields are kept; the time span always
    runs from the earliest start to the latest end.
    """
    if not activities:
        raise ValueError("Cannot merge an empty activity list")
    if strategy not in MERGE_STRATEGIES:
        raise ValueError(f"Unknown merge strategy: {strategy}")
    ordered = sort_chronologically(activities)
    if len(ordered) != len(activities):
        raise ValueError("Cannot merge activities without a start time")
    if any(activity.is_open_ended for activity in ordered):
        raise ValueError("Cannot merge an activity that is still running")
    if len(ordered) == 1:
        return ordered[0]

    if strategy == "longest":
        base = max(ordered, key=lambda activity: activity.seconds)
    elif strategy == "earliest":
        base = ordered[0]
    else:
        base = ordered[-1]

    start = ordered[0].start_time
    end = max(activity.effective_end for activity in ordered)
    merged = replace(
        base,
        start_time=start,
        end_time=end,
        duration=math.floor(_seconds_between(start, end)),
    )
    result = validate_activity(merged, now)
    if not result.is_valid:
        raise ValueError(f"Merged activity validation failed: {', '.join(result.errors)}")
    return merged


def split_activity(
    activity: ActivityRecord, split_points: Iterable[datetime]
) -> list[ActivityRecord]:
    """Cut ``activity`` at each split point strictly inside its time range.

    The first piece keeps the original id; later pieces are unsaved and carry id 0.
    """
    if activity.start_time is None or activity.is_open_ended:
        raise ValueError("Cannot split an activity without a fixed time range")
    start = activity.start_time
    end = activity.effective_end
    cuts = sorted({point for point in split_points if start < point < end})
    if not cuts:
        logger.warning("No split points within activity %s", activity.key)
        return [activity]

    boundaries = [start, *cuts, end]
    pieces: list[ActivityRecord] = []
    for index, (piece_start, piece_end) in enumerate(zip(boundaries, boundaries[1:])):
        pieces.append(
            replace(
                activity,
                id=activity.id if index == 0 else 0,
                start_time=piece_start,
                end_time=piece_end,
                duration=math.floor(_seconds_between(piece_start, piece_end)),
                title=f"{activity.title} (Part {index + 1})",
            )
        )
    return pieces


def apply_auto_merge(
    activities: list[ActivityRecord],
    threshold_seconds: float = 60,
    now: datetime | None = None,
) -> list[ActivityRecord]:
    """Collapse every mergeable cluster into one activity; the rest pass through unchanged."""
    grouped: set[ActivityKey] = set()
    merged: list[ActivityRecord] = []
    for group in find_mergeable_groups(activities, threshold_seconds):
        merged.append(merge_activities(group.activities, "longest", now))
        grouped.update(activity.key for activity in group.activities)
    untouched = [activity for activity in activities if activity.key not in grouped]
    return sort_chronologically(untouched + merged)


def _gap_confidence(max_gap_seconds: float) -> tuple[int, str]:
    minutes = round(max_gap_seconds / 60)
    if max_gap_seconds <= 0:
        return 100, "Activities are consecutive with no gaps"
    if max_gap_seconds <= 60:
        return 90, f"Small gaps (max {math.floor(max_gap_seconds)}s) between activities"
    if max_gap_seconds <= 300:
        return 70, f"Moderate gaps (max {minutes}min) between activities"
    if max_gap_seconds <= 900:
        return 50, f"Large gaps (max {minutes}min) between activities"
    return 20, f"Very large gaps (max {minutes}min) - not recommended"


def suggest_merge(
    activities: list[ActivityRecord], now: datetime | None = None
) -> MergeSuggestion:
    """Judge whether ``activities`` are good candidates for a manual merge."""
    if len(activities) < 2:
        return MergeSuggestion(False, "Need at least 2 activities to merge", 0)
    if len({activity.source_type for activity in activities}) > 1:
        return MergeSuggestion(False, "Cannot merge activities from different sources", 0)
    if any(activity.is_open_ended for activity in activities):
        return MergeSuggestion(False, "Cannot merge an activity that is still running", 0)

    widest = max((seconds for _, _, seconds in iter_adjacent(activities)), default=0.0)
    confidence, reason = _gap_confidence(widest)
    if len({activity.title.casefold() for activity in activities}) == 1:
        confidence += 10
        reason += " and identical titles"
    confidence = min(confidence, 100)

    if confidence < 50:
        return MergeSuggestion(False, reason, confidence)
    return MergeSuggestion(True, reason, confidence, merge_activities(activities, "longest", now))
