"""Structural and consistency checks for individual activities."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from .models import (
    SOURCE_TYPES,
    ActivityKey,
    ActivityRecord,
    BatchValidation,
    ValidatedActivity,
    ValidationResult,
)

DURATION_TOLERANCE_SECONDS = 1
LONG_ACTIVITY = timedelta(hours=24)


def validate_time_range(
    start_time: Optional[datetime],
    end_time: Optional[datetime],
    now: datetime,
) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if start_time is None:
        errors.append("Start time is required")
    if end_time is None:
        warnings.append("Activity has no end time")

    if start_time is not None and end_time is not None:
        if end_time < start_time:
            errors.append("End time must not be before start time")
        if start_time > now:
            warnings.append("Activity has a future start time")
        if end_time > now:
            warnings.append("Activity has a future end time")

        elapsed = end_time - start_time
        if elapsed > LONG_ACTIVITY:
            hours = elapsed.total_seconds() / 3600
            warnings.append(f"Activity duration is very long: {hours:.1f} hours")
        if timedelta(0) <= elapsed < timedelta(seconds=1):
            warnings.append("Activity duration is less than 1 second")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_field_values(activity: ActivityRecord) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if activity.duration is not None:
        if activity.duration < 0:
            errors.append("Duration cannot be negative")
        elif activity.duration == 0:
            warnings.append("Activity has zero duration")

        calculated = activity.timestamp_seconds
        if calculated is not None:
            diff = abs(calculated - activity.duration)
            if diff > DURATION_TOLERANCE_SECONDS:
                warnings.append(
                    f"Duration mismatch: stored {activity.duration}s, "
                    f"calculated {calculated}s (diff: {diff}s)"
                )

    if activity.category_id is not None and activity.category_id <= 0:
        errors.append("Category ID must be a positive number")

    if activity.source_type == "automatic" and not (activity.app_name or activity.domain):
        warnings.append("Automatic activity should have app name or domain")

    if activity.source_type == "pomodoro":
        if not activity.session_type:
            errors.append("Pomodoro activity must have session type")
        if activity.completed is None:
            warnings.append("Pomodoro activity missing completed status")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_activity(activity: ActivityRecord, now: Optional[datetime] = None) -> ValidationResult:
    """Run every check against one activity.

    ``is_valid`` is False exactly when at least one error was found; warnings
    never block.
    """
    now = now or datetime.now()
    errors: list[str] = []
    warnings: list[str] = []

    if not activity.id:
        errors.append("Activity ID is required")
    if not activity.title or not activity.title.strip():
        errors.append("Activity title is required")
    if activity.source_type not in SOURCE_TYPES:
        errors.append(f"Unknown activity source type: {activity.source_type!r}")
    if not activity.activity_type:
        errors.append("Activity type is required")

    for partial in (
        validate_time_range(activity.start_time, activity.end_time, now),
        validate_field_values(activity),
    ):
        errors.extend(partial.errors)
        warnings.extend(partial.warnings)

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_batch(
    activities: Iterable[ActivityRecord], now: Optional[datetime] = None
) -> dict[ActivityKey, ValidationResult]:
    """One result per activity, keyed by ``(id, source_type)``."""
    now = now or datetime.now()
    return {activity.key: validate_activity(activity, now) for activity in activities}


def split_batch(
    activities: list[ActivityRecord], results: dict[ActivityKey, ValidationResult]
) -> BatchValidation:
    """Partition results into invalid activities and valid ones that carry warnings."""
    batch = BatchValidation()
    for activity in activities:
        result = results.get(activity.key)
        if result is None:
            continue
        if not result.is_valid:
            batch.invalid.append(
                ValidatedActivity(activity, list(result.errors), list(result.warnings))
            )
        elif result.warnings:
            batch.valid.append(ValidatedActivity(activity, warnings=list(result.warnings)))
    return batch
