"""Detection of near-identical activities."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from .models import ActivityKey, ActivityRecord, DuplicateGroup, round_half_up
from .normalization import normalize_title, title_similarity

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 80

TIME_OVERLAP_WEIGHT = 40
TITLE_WEIGHT = 30
SOURCE_WEIGHT = 20
CATEGORY_WEIGHT = 10


def time_overlap_percentage(first: ActivityRecord, second: ActivityRecord) -> int:
    """Overlap of the two ranges relative to their mean length, 0-100."""
    if first.start_time is None or second.start_time is None:
        return 0
    first_end = first.effective_end
    second_end = second.effective_end
    overlap_start = max(first.start_time, second.start_time)
    overlap_end = min(first_end, second_end)
    if overlap_start >= overlap_end:
        return 0

    overlap = (overlap_end - overlap_start).total_seconds()
    mean_length = (
        (first_end - first.start_time).total_seconds()
        + (second_end - second.start_time).total_seconds()
    ) / 2
    if mean_length == 0:
        return 0
    return round_half_up(overlap / mean_length * 100)


def _title_key(activity: ActivityRecord) -> str:
    return normalize_title(activity.app_name, activity.title)


def calculate_similarity(first: ActivityRecord, second: ActivityRecord) -> int:
    score = time_overlap_percentage(first, second) / 100 * TIME_OVERLAP_WEIGHT
    titles = round_half_up(title_similarity(_title_key(first), _title_key(second)))
    score += titles / 100 * TITLE_WEIGHT
    if first.source_type == second.source_type:
        score += SOURCE_WEIGHT
    if first.category_id and first.category_id == second.category_id:
        score += CATEGORY_WEIGHT
    return round_half_up(score)


def detect_duplicates(
    anchor: ActivityRecord,
    pool: Iterable[ActivityRecord],
    threshold: int = DEFAULT_SIMILARITY_THRESHOLD,
) -> tuple[list[ActivityRecord], float]:
    """Return the activities in ``pool`` similar to ``anchor`` and their mean similarity."""
    matches: list[ActivityRecord] = []
    scores: list[int] = []
    for candidate in pool:
        if candidate.key == anchor.key:
            continue
        similarity = calculate_similarity(anchor, candidate)
        if similarity >= threshold:
            matches.append(candidate)
            scores.append(similarity)
    reported = sum(scores) / len(scores) if scores else 0.0
    return matches, reported


def find_duplicate_groups(
    activities: list[ActivityRecord],
    threshold: int = DEFAULT_SIMILARITY_THRESHOLD,
    stop_event: Optional[threading.Event] = None,
) -> list[DuplicateGroup]:
    """Group each unvisited anchor with its duplicates.

    An activity joins at most one group per call. The group's similarity is
    the similarity the detector reported for its anchor, not an average over
    every pair in the group. Setting ``stop_event`` ends the pass early with
    the groups found so far.
    """
    visited: set[ActivityKey] = set()
    groups: list[DuplicateGroup] = []
    for anchor in activities:
        if stop_event is not None and stop_event.is_set():
            logger.warning(
                "Duplicate detection stopped early after %d groups.", len(groups)
            )
            break
        if anchor.key in visited:
            continue
        pool = [activity for activity in activities if activity.key not in visited]
        matches, similarity = detect_duplicates(anchor, pool, threshold)
        if not matches:
            continue
        group = DuplicateGroup(activities=[anchor, *matches], similarity=similarity)
        groups.append(group)
        visited.update(member.key for member in group.activities)
    return groups
