"""Data-quality scans and the combined quality report."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Iterable, Optional

from .duplicates import find_duplicate_groups
from .models import (
    ActivityRecord,
    Category,
    QualityReport,
    RecalculationResult,
    Snapshot,
    ZeroDurationResult,
    round_half_up,
)
from .store import Store
from .timeline import detect_gaps
from .validation import DURATION_TOLERANCE_SECONDS, validate_batch

logger = logging.getLogger(__name__)


def find_orphaned(
    activities: Iterable[ActivityRecord], categories: Iterable[Category]
) -> list[ActivityRecord]:
    """Activities pointing at a category that no longer exists."""
    known = {category.id for category in categories}
    return [
        activity
        for activity in activities
        if activity.category_id and activity.category_id not in known
    ]


def find_zero_duration(activities: Iterable[ActivityRecord]) -> list[ActivityRecord]:
    """Finished activities shorter than one second; running timers are never included."""
    return [
        activity
        for activity in activities
        if activity.effective_seconds is not None and activity.effective_seconds < 1
    ]


def remove_zero_duration(
    store: Store, activities: Iterable[ActivityRecord], confirmed: bool = False
) -> ZeroDurationResult:
    """List zero-duration activities and delete them when ``confirmed``."""
    zero = find_zero_duration(activities)
    if not confirmed or not zero:
        return ZeroDurationResult(activities=zero, removed=0)
    outcome = store.bulk_delete([activity.key for activity in zero])
    logger.info("Removed %d zero-duration activities.", outcome["deleted"])
    return ZeroDurationResult(activities=zero, removed=outcome["deleted"])


def recalculate_durations(
    store: Store, activities: Iterable[ActivityRecord]
) -> RecalculationResult:
    """Rewrite stored durations that disagree with the timestamps by more than 1 s.

    A failing activity is recorded in ``errors`` and the batch carries on.
    """
    result = RecalculationResult(success=True)
    with store.transaction():
        for activity in activities:
            calculated = activity.timestamp_seconds
            if calculated is None:
                continue
            if abs(calculated - (activity.duration or 0)) <= DURATION_TOLERANCE_SECONDS:
                continue
            try:
                updated = store.update_activity(
                    activity.id, activity.source_type, {"duration": calculated}
                )
            except Exception as exc:
                logger.warning(
                    "Error recalculating activity %s (%s): %s",
                    activity.id,
                    activity.source_type,
                    exc,
                )
                result.errors.append(f"Error processing activity {activity.id}: {exc}")
                continue
            if updated:
                result.recalculated += 1
            else:
                result.errors.append(
                    f"Failed to update activity {activity.id} ({activity.source_type})"
                )
    return result


def quality_score(total: int, invalid: int, orphaned: int, zero_duration: int) -> int:
    if total == 0:
        return 100
    issues = invalid + orphaned + zero_duration
    return max(0, round_half_up(100 - issues / total * 100))


def build_quality_report(
    snapshot: Snapshot,
    *,
    now: Optional[datetime] = None,
    min_gap_seconds: float = 300,
    similarity_threshold: int = 80,
    stop_event: Optional[threading.Event] = None,
) -> QualityReport:
    activities = snapshot.activities
    results = validate_batch(activities, now)

    valid = 0
    invalid = 0
    warnings = 0
    for result in results.values():
        if result.is_valid:
            valid += 1
            warnings += len(result.warnings)
        else:
            invalid += 1

    orphaned = len(find_orphaned(activities, snapshot.categories))
    zero_duration = len(find_zero_duration(activities))
    gaps = detect_gaps(activities, min_gap_seconds)
    duplicates = find_duplicate_groups(activities, similarity_threshold, stop_event)

    return QualityReport(
        total_activities=len(activities),
        valid_activities=valid,
        invalid_activities=invalid,
        warnings_count=warnings,
        orphaned_count=orphaned,
        zero_duration_count=zero_duration,
        gaps_count=len(gaps),
        duplicate_groups_count=len(duplicates),
        quality_score=quality_score(len(activities), invalid, orphaned, zero_duration),
    )
